from rest_framework import generics, permissions

from .models import Appointment
from .serializers import AppointmentSerializer
from .utils import filter_appointments


class AppointmentListCreateView(generics.ListCreateAPIView):
    serializer_class = AppointmentSerializer
    permission_classes = [permissions.IsAuthenticated]

    def get_queryset(self):
        queryset = Appointment.objects.select_related("plan").filter(user=self.request.user)
        return filter_appointments(queryset, self.request.query_params).order_by("scheduled_for")

    def perform_create(self, serializer):
        serializer.save(user=self.request.user)


class AppointmentDetailView(generics.RetrieveUpdateDestroyAPIView):
    serializer_class = AppointmentSerializer
    permission_classes = [permissions.IsAuthenticated]

    def get_queryset(self):
        # owner only
        return Appointment.objects.select_related("plan").filter(user=self.request.user)
