import uuid

from django.conf import settings
from django.db import models
from django.utils import timezone

from core.exceptions import ValidationError

from .state_machine import DealStatus


class AppendOnlyModel(models.Model):
    """Rows may be inserted but never updated or deleted through the ORM instance."""

    class Meta:
        abstract = True

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValidationError(f"{type(self).__name__} entries are immutable")
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValidationError(f"{type(self).__name__} entries cannot be deleted")


class Deal(models.Model):
    """
    A creator-brand partnership moving through the lifecycle in
    deals.state_machine. Never hard-deleted; closed_at marks the logical end.
    """

    class Status(models.TextChoices):
        PROSPECT = DealStatus.PROSPECT, 'Prospect'
        OUTREACH_SENT = DealStatus.OUTREACH_SENT, 'Outreach sent'
        NEGOTIATION = DealStatus.NEGOTIATION, 'Negotiation'
        AGREEMENT_LOCKED = DealStatus.AGREEMENT_LOCKED, 'Agreement locked'
        INVOICED = DealStatus.INVOICED, 'Invoiced'
        PAID = DealStatus.PAID, 'Paid'
        DECLINED = DealStatus.DECLINED, 'Declined'

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='deals',
    )
    brand = models.ForeignKey(
        'matching.Brand',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='deals',
    )
    title = models.CharField(max_length=255)
    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.PROSPECT,
    )
    proposed_amount = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    agreed_amount = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)

    outreach_sent_at = models.DateTimeField(null=True, blank=True)
    negotiation_started_at = models.DateTimeField(null=True, blank=True)
    agreement_locked_at = models.DateTimeField(null=True, blank=True)
    invoiced_at = models.DateTimeField(null=True, blank=True)
    paid_at = models.DateTimeField(null=True, blank=True)
    closed_at = models.DateTimeField(null=True, blank=True)

    terms_snapshot = models.JSONField(
        null=True,
        blank=True,
        help_text='Latest locked terms: version, locked_at, price, deliverables, ...',
    )
    terms_history = models.JSONField(
        default=list,
        blank=True,
        help_text='Superseded terms snapshots, oldest first',
    )
    lost_reason = models.TextField(blank=True)
    invoice = models.ForeignKey(
        'deals.Invoice',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='+',
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at']
        verbose_name = 'Deal'
        verbose_name_plural = 'Deals'
        indexes = [
            models.Index(fields=['user', 'status'], name='deals_deal_user_status_idx'),
            models.Index(fields=['user', 'created_at'], name='deals_deal_user_created_idx'),
        ]

    def __str__(self):
        return f"{self.title} ({self.status})"

    @property
    def terms_version(self) -> int:
        return (self.terms_snapshot or {}).get('version', 0)

    def to_response(self) -> dict:
        """Deal with the brand's contact fields flattened alongside."""
        brand = self.brand
        contact = (brand.contact_info or {}) if brand else {}
        return {
            'id': str(self.id),
            'title': self.title,
            'status': self.status,
            'brand_id': str(brand.id) if brand else None,
            'brand_name': brand.name if brand else None,
            'brand_website': brand.website if brand else None,
            'contact_name': contact.get('contactPerson'),
            'contact_email': contact.get('email'),
            'contact_phone': contact.get('phone'),
            'proposed_amount': _money(self.proposed_amount),
            'agreed_amount': _money(self.agreed_amount),
            'outreach_sent_at': _iso(self.outreach_sent_at),
            'negotiation_started_at': _iso(self.negotiation_started_at),
            'agreement_locked_at': _iso(self.agreement_locked_at),
            'invoiced_at': _iso(self.invoiced_at),
            'paid_at': _iso(self.paid_at),
            'closed_at': _iso(self.closed_at),
            'terms_snapshot': self.terms_snapshot,
            'lost_reason': self.lost_reason or None,
            'invoice_id': str(self.invoice_id) if self.invoice_id else None,
            'created_at': _iso(self.created_at),
            'updated_at': _iso(self.updated_at),
        }


class DealActivity(AppendOnlyModel):
    """Append-only audit entry for a deal."""

    deal = models.ForeignKey(Deal, on_delete=models.CASCADE, related_name='activities')
    type = models.CharField(max_length=50)
    message = models.CharField(max_length=500)
    actor = models.CharField(max_length=255, blank=True)
    metadata = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ['-created_at', '-id']
        verbose_name = 'Deal Activity'
        verbose_name_plural = 'Deal Activities'

    def __str__(self):
        return f"{self.type}: {self.message}"

    def to_response(self) -> dict:
        return {
            'id': self.id,
            'deal_id': str(self.deal_id),
            'type': self.type,
            'message': self.message,
            'actor': self.actor,
            'metadata': self.metadata,
            'created_at': _iso(self.created_at),
        }


class ConversationLog(AppendOnlyModel):
    """One inbound or outbound exchange about a deal."""

    class Channel(models.TextChoices):
        EMAIL = 'EMAIL', 'Email'
        IG_DM = 'IG_DM', 'Instagram DM'
        X_DM = 'X_DM', 'X DM'
        DISCORD = 'DISCORD', 'Discord'
        OTHER = 'OTHER', 'Other'

    class Direction(models.TextChoices):
        OUTBOUND = 'OUTBOUND', 'Outbound'
        INBOUND = 'INBOUND', 'Inbound'

    class Disposition(models.TextChoices):
        NO_REPLY = 'NO_REPLY', 'No reply'
        INTERESTED = 'INTERESTED', 'Interested'
        DECLINED = 'DECLINED', 'Declined'
        NEEDS_INFO = 'NEEDS_INFO', 'Needs info'
        COUNTER = 'COUNTER', 'Counter offer'

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    deal = models.ForeignKey(Deal, on_delete=models.CASCADE, related_name='conversations')
    channel = models.CharField(max_length=10, choices=Channel.choices)
    direction = models.CharField(max_length=10, choices=Direction.choices)
    occurred_at = models.DateTimeField(default=timezone.now)
    summary = models.TextField()
    disposition = models.CharField(max_length=12, choices=Disposition.choices)
    amount_discussed = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    terms_delta = models.TextField(blank=True)
    attachments = models.JSONField(default=list, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-occurred_at', '-created_at']
        verbose_name = 'Conversation Log'
        verbose_name_plural = 'Conversation Logs'

    def __str__(self):
        return f"{self.direction} {self.channel} ({self.disposition})"

    def to_response(self) -> dict:
        return {
            'id': str(self.id),
            'deal_id': str(self.deal_id),
            'channel': self.channel,
            'direction': self.direction,
            'occurred_at': _iso(self.occurred_at),
            'summary': self.summary,
            'disposition': self.disposition,
            'amount_discussed': _money(self.amount_discussed),
            'terms_delta': self.terms_delta or None,
            'attachments': self.attachments,
            'created_at': _iso(self.created_at),
        }


class Invoice(models.Model):
    """
    Invoice owned by the invoicing collaborator. The deal engine only reacts
    to its sent and paid callbacks.
    """

    class Status(models.TextChoices):
        UNPAID = 'unpaid', 'Unpaid'
        SENT = 'sent', 'Sent'
        PAID = 'paid', 'Paid'
        VOID = 'void', 'Void'
        REFUNDED = 'refunded', 'Refunded'

    class PaymentMethodType(models.TextChoices):
        STRIPE_ADMIN = 'STRIPE_ADMIN', 'Platform hosted'
        CUSTOM_LINK = 'CUSTOM_LINK', 'Custom link'

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='invoices',
    )
    deal = models.ForeignKey(
        Deal,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='invoices',
    )
    brand_name = models.CharField(max_length=255)
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    currency = models.CharField(max_length=3, default='USD')
    status = models.CharField(max_length=10, choices=Status.choices, default=Status.UNPAID)
    payment_method_type = models.CharField(
        max_length=20,
        choices=PaymentMethodType.choices,
        default=PaymentMethodType.STRIPE_ADMIN,
    )
    custom_payment_link = models.URLField(max_length=500, blank=True)
    custom_payment_instructions = models.TextField(blank=True)
    payment_method = models.CharField(max_length=50, blank=True)
    payment_reference = models.CharField(max_length=255, blank=True)
    sent_at = models.DateTimeField(null=True, blank=True)
    paid_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at']
        verbose_name = 'Invoice'
        verbose_name_plural = 'Invoices'

    def __str__(self):
        return f"{self.brand_name} {self.amount} {self.currency} ({self.status})"

    def to_response(self) -> dict:
        return {
            'id': str(self.id),
            'deal_id': str(self.deal_id) if self.deal_id else None,
            'brand_name': self.brand_name,
            'amount': _money(self.amount),
            'currency': self.currency,
            'status': self.status,
            'payment_method_type': self.payment_method_type,
            'payment_method': self.payment_method or None,
            'payment_reference': self.payment_reference or None,
            'sent_at': _iso(self.sent_at),
            'paid_at': _iso(self.paid_at),
        }


def _iso(value):
    return value.isoformat() if value else None


def _money(value):
    return float(value) if value is not None else None
