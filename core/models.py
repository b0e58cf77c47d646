from django.db import models
from django.contrib.auth.models import AbstractUser


class User(AbstractUser):
    """Creator account for the ManAIger platform."""

    class Plan(models.TextChoices):
        FREE = 'free', 'Free'
        STARTER = 'starter', 'Starter'
        PRO = 'pro', 'Pro'
        VIP = 'vip', 'VIP'

    display_name = models.CharField(max_length=255, blank=True)
    plan = models.CharField(
        max_length=10,
        choices=Plan.choices,
        default=Plan.FREE,
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'core_user'
        verbose_name = 'User'
        verbose_name_plural = 'Users'
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.username} ({self.get_plan_display()})"

    @property
    def actor_name(self):
        """Name recorded on activity entries this user initiates."""
        return self.display_name or self.get_full_name() or self.email or self.username


class SystemEvent(models.Model):
    """
    Append-only user-level event (generation batches, outreach sends,
    status updates). Deal-level history lives in deals.DealActivity.
    """

    user = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name='system_events',
    )
    type = models.CharField(max_length=100)
    metadata = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'core_system_event'
        verbose_name = 'System Event'
        verbose_name_plural = 'System Events'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['user', 'type'], name='core_sysevent_user_type_idx'),
        ]

    def __str__(self):
        return f"{self.type} - {self.user_id}"
