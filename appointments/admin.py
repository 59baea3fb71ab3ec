from django.contrib import admin

from .models import Appointment, CalendarIntegration


@admin.register(Appointment)
class AppointmentAdmin(admin.ModelAdmin):
    list_display = ('details', 'user', 'plan', 'scheduled_for', 'amount', 'measure_unit', 'completed')
    list_filter = ('completed', 'is_reminder_sent')
    search_fields = ('details', 'user__email', 'plan__name')


@admin.register(CalendarIntegration)
class CalendarIntegrationAdmin(admin.ModelAdmin):
    list_display = ('user', 'export_as_task', 'add_reminders', 'reminder_minutes', 'last_synced_at')
    search_fields = ('user__email',)
