import base64
import hashlib
import logging
from datetime import timedelta

from cryptography.fernet import Fernet, InvalidToken
from django.conf import settings
from django.db import models
from django.utils import timezone

logger = logging.getLogger(__name__)


def token_cipher() -> Fernet:
    """Fernet cipher for OAuth tokens at rest."""
    key = settings.EMAIL_TOKEN_ENCRYPTION_KEY
    if key:
        return Fernet(key.encode())
    digest = hashlib.sha256(settings.SECRET_KEY.encode()).digest()
    return Fernet(base64.urlsafe_b64encode(digest))


class EmailConnection(models.Model):
    """
    Stores OAuth tokens for a connected Gmail account.
    Lets creators send outreach from their own mailbox.
    """
    PROVIDER_CHOICES = [
        ('gmail', 'Gmail'),
    ]

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='email_connections'
    )
    provider = models.CharField(max_length=20, choices=PROVIDER_CHOICES, default='gmail')
    email_address = models.EmailField()

    # Encrypted OAuth tokens
    _access_token = models.TextField(db_column='access_token', blank=True)
    _refresh_token = models.TextField(db_column='refresh_token', blank=True)

    token_expires_at = models.DateTimeField()
    scopes = models.JSONField(default=list, blank=True)

    is_active = models.BooleanField(default=True)
    is_primary = models.BooleanField(default=False)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    last_used_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        verbose_name = 'Email Connection'
        verbose_name_plural = 'Email Connections'
        unique_together = ['user', 'email_address']
        ordering = ['-is_primary', '-created_at']

    def __str__(self):
        return f"{self.email_address} ({self.get_provider_display()})"

    def _decrypt(self, stored: str):
        if not stored:
            return None
        try:
            return token_cipher().decrypt(stored.encode()).decode()
        except InvalidToken:
            logger.warning("Stored token for %s cannot be decrypted; reconnect required", self.email_address)
            return None

    @property
    def access_token(self):
        return self._decrypt(self._access_token)

    @access_token.setter
    def access_token(self, value):
        self._access_token = token_cipher().encrypt(value.encode()).decode() if value else ''

    @property
    def refresh_token(self):
        return self._decrypt(self._refresh_token)

    @refresh_token.setter
    def refresh_token(self, value):
        self._refresh_token = token_cipher().encrypt(value.encode()).decode() if value else ''

    def is_token_expired(self):
        """Expired, or expiring within the next minute."""
        return timezone.now() >= self.token_expires_at - timedelta(seconds=60)

    def mark_as_primary(self):
        """Set this connection as the primary email for the user."""
        EmailConnection.objects.filter(user=self.user, is_primary=True).update(is_primary=False)
        self.is_primary = True
        self.save(update_fields=['is_primary'])


class SentEmail(models.Model):
    """
    Tracks outreach emails sent through the platform, successful or not.
    """
    STATUS_CHOICES = [
        ('sent', 'Sent'),
        ('failed', 'Failed'),
    ]

    VIA_CHOICES = [
        ('system', 'System'),
        ('gmail', 'Gmail'),
    ]

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='sent_emails'
    )
    email_connection = models.ForeignKey(
        EmailConnection,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='sent_emails'
    )
    brand_match = models.ForeignKey(
        'matching.BrandMatch',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='sent_emails'
    )

    recipient_email = models.EmailField()
    subject = models.CharField(max_length=500)
    body = models.TextField()
    via = models.CharField(max_length=10, choices=VIA_CHOICES, default='system')

    # Provider message ID for tracking
    provider_message_id = models.CharField(max_length=255, blank=True)
    thread_id = models.CharField(max_length=255, blank=True)

    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='sent')
    error_message = models.TextField(blank=True)
    sent_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = 'Sent Email'
        verbose_name_plural = 'Sent Emails'
        ordering = ['-created_at']

    def __str__(self):
        return f"To: {self.recipient_email} - {self.subject[:50]}"
