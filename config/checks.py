"""
Django system checks for required configuration.

Runs automatically on `manage.py runserver`, `migrate`, and `check`.
"""
import os

from django.conf import settings
from django.core.checks import Error, Warning, register


@register()
def check_required_settings(app_configs, **kwargs):
    errors = []

    # E001: DATABASE_URL required in production
    if not settings.DEBUG and not os.environ.get("DATABASE_URL"):
        errors.append(Error(
            "DATABASE_URL not set in production.",
            hint="Set DATABASE_URL for PostgreSQL connection.",
            id="manaiger.E001",
        ))

    # E002: Insecure SECRET_KEY in production
    if not settings.DEBUG and "insecure" in settings.SECRET_KEY:
        errors.append(Error(
            "SECRET_KEY contains 'insecure' and is not safe for production.",
            hint="Generate a secure SECRET_KEY.",
            id="manaiger.E002",
        ))

    # W001: brand suggestions need an OpenAI key
    if not getattr(settings, 'OPENAI_API_KEY', ''):
        errors.append(Warning(
            "No OpenAI API key configured.",
            hint="Set OPENAI_API_KEY in .env to enable AI brand suggestions.",
            id="manaiger.W001",
        ))

    # W002: Gmail sending needs OAuth client credentials
    if not settings.GOOGLE_OAUTH_CLIENT_ID or not settings.GOOGLE_OAUTH_CLIENT_SECRET:
        errors.append(Warning(
            "Google OAuth credentials not configured.",
            hint="Set GOOGLE_OAUTH_CLIENT_ID and GOOGLE_OAUTH_CLIENT_SECRET for Gmail outreach.",
            id="manaiger.W002",
        ))

    # W003: every plan must have a limit entry
    limits = settings.BRAND_MATCH_CONFIG.get("plan_limits", {})
    for plan in ("free", "starter", "pro", "vip"):
        if plan not in limits:
            errors.append(Warning(
                f"No brand match limit configured for plan '{plan}'.",
                hint="Add it to BRAND_MATCH_CONFIG['plan_limits'].",
                id="manaiger.W003",
            ))

    return errors
