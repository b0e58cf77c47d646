from django.contrib import admin

from .models import ConversationLog, Deal, DealActivity, Invoice


class ReadOnlyAdminMixin:
    """Activity and conversation rows are append-only; admin only displays them."""

    def has_add_permission(self, request, obj=None):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


class DealActivityInline(ReadOnlyAdminMixin, admin.TabularInline):
    model = DealActivity
    fields = ['created_at', 'type', 'message', 'actor']
    readonly_fields = fields
    extra = 0


class ConversationLogInline(ReadOnlyAdminMixin, admin.TabularInline):
    model = ConversationLog
    fields = ['occurred_at', 'channel', 'direction', 'disposition', 'summary']
    readonly_fields = fields
    extra = 0


@admin.register(Deal)
class DealAdmin(admin.ModelAdmin):
    list_display = ['title', 'user', 'brand', 'status', 'agreed_amount', 'created_at']
    list_filter = ['status']
    search_fields = ['title', 'brand__name', 'user__email']
    raw_id_fields = ['user', 'brand', 'invoice']
    # Status only moves through DealLifecycleService
    readonly_fields = [
        'status', 'outreach_sent_at', 'negotiation_started_at', 'agreement_locked_at',
        'invoiced_at', 'paid_at', 'closed_at', 'terms_snapshot', 'terms_history',
        'created_at', 'updated_at',
    ]
    inlines = [DealActivityInline, ConversationLogInline]

    def has_delete_permission(self, request, obj=None):
        # Deals end as DECLINED, never removed
        return False


@admin.register(DealActivity)
class DealActivityAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    list_display = ['deal', 'type', 'actor', 'created_at']
    list_filter = ['type']
    search_fields = ['message', 'deal__title']


@admin.register(ConversationLog)
class ConversationLogAdmin(ReadOnlyAdminMixin, admin.ModelAdmin):
    list_display = ['deal', 'channel', 'direction', 'disposition', 'occurred_at']
    list_filter = ['channel', 'direction', 'disposition']


@admin.register(Invoice)
class InvoiceAdmin(admin.ModelAdmin):
    list_display = ['brand_name', 'user', 'amount', 'currency', 'status', 'sent_at', 'paid_at']
    list_filter = ['status', 'payment_method_type']
    search_fields = ['brand_name', 'user__email', 'payment_reference']
    raw_id_fields = ['user', 'deal']
    readonly_fields = ['created_at', 'updated_at']
