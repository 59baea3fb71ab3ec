import os

from celery import Celery

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "HabitPlanner.settings")

app = Celery("HabitPlanner")
app.config_from_object("django.conf:settings", namespace="CELERY")
app.autodiscover_tasks()

app.conf.beat_schedule = {
    "send-activity-reminders-every-5-min": {
        "task": "appointments.tasks.send_activity_reminders_task",
        "schedule": 300,
    },
}
