from django.urls import path

from .integrations.views import (
    CalendarExportView,
    CalendarOAuthCallbackView,
    CalendarOAuthRefreshView,
    CalendarOAuthStartView,
    CalendarOAuthStatusView,
    CalendarSettingsView,
)
from .views import AppointmentDetailView, AppointmentListCreateView

app_name = "appointments"


urlpatterns = [
    path('', AppointmentListCreateView.as_view(), name='appointment-list-create'),
    path('<int:pk>/', AppointmentDetailView.as_view(), name='appointment-detail'),
    path('calendar/settings/', CalendarSettingsView.as_view(), name='calendar-settings'),
    path('calendar/export/', CalendarExportView.as_view(), name='calendar-export'),
    path('calendar/oauth/<str:provider>/start/', CalendarOAuthStartView.as_view(), name='calendar-oauth-start'),
    path('calendar/oauth/<str:provider>/callback/', CalendarOAuthCallbackView.as_view(), name='calendar-oauth-callback'),
    path('calendar/oauth/<str:provider>/refresh/', CalendarOAuthRefreshView.as_view(), name='calendar-oauth-refresh'),
    path('calendar/oauth/<str:provider>/status/', CalendarOAuthStatusView.as_view(), name='calendar-oauth-status'),
]
