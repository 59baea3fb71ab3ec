from django.urls import path

from .views import PlanDetailView, PlanListCreateView, PlanPreviewView

app_name = "plans"

urlpatterns = [
    path("", PlanListCreateView.as_view(), name="plan-list-create"),
    path("preview/", PlanPreviewView.as_view(), name="plan-preview"),
    path("<int:pk>/", PlanDetailView.as_view(), name="plan-detail"),
]
