from django.contrib import admin

from .models import Plan


@admin.register(Plan)
class PlanAdmin(admin.ModelAdmin):
    list_display = ('id', 'name', 'user', 'category', 'created_at')
    list_filter = ('category',)
    search_fields = ('name', 'goal', 'user__email')
