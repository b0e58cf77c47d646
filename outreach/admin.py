from django.contrib import admin

from .models import EmailConnection, SentEmail


@admin.register(EmailConnection)
class EmailConnectionAdmin(admin.ModelAdmin):
    list_display = ['email_address', 'user', 'provider', 'is_active', 'is_primary', 'token_expires_at', 'last_used_at']
    list_filter = ['provider', 'is_active', 'is_primary']
    search_fields = ['email_address', 'user__email']
    raw_id_fields = ['user']
    # Tokens are stored encrypted and never shown
    exclude = ['_access_token', '_refresh_token']
    readonly_fields = ['created_at', 'updated_at', 'last_used_at']


@admin.register(SentEmail)
class SentEmailAdmin(admin.ModelAdmin):
    list_display = ['recipient_email', 'subject', 'user', 'via', 'status', 'sent_at']
    list_filter = ['status', 'via']
    search_fields = ['recipient_email', 'subject', 'user__email']
    raw_id_fields = ['user', 'email_connection', 'brand_match']
    readonly_fields = ['created_at', 'sent_at', 'provider_message_id', 'thread_id']
