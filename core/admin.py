from django.contrib import admin
from django.contrib.auth.admin import UserAdmin

from .models import User, SystemEvent


@admin.register(User)
class CreatorUserAdmin(UserAdmin):
    list_display = ['username', 'email', 'display_name', 'plan', 'created_at']
    list_filter = ['plan', 'is_staff']
    fieldsets = UserAdmin.fieldsets + (
        ('Creator', {'fields': ('display_name', 'plan')}),
    )


@admin.register(SystemEvent)
class SystemEventAdmin(admin.ModelAdmin):
    list_display = ['type', 'user', 'created_at']
    list_filter = ['type']
    search_fields = ['type', 'user__email']
    readonly_fields = ['user', 'type', 'metadata', 'created_at']
