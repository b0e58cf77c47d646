"""
Domain error taxonomy.

Every error raised by the deal engine, the brand match pipeline and the
outreach layer is an AppError subclass. Views turn them into JSON responses
with the matching HTTP status (see core.views.JSONAPIMixin).
"""

from typing import Any, Dict, Iterable, Optional


class AppError(Exception):
    """Base class for errors surfaced to API callers."""

    status_code = 400
    code = 'APP_ERROR'

    def __init__(self, message: str, extra: Optional[Dict[str, Any]] = None):
        self.message = message
        self.extra = extra or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        return {'error': self.code, 'message': self.message, **self.extra}


class ValidationError(AppError):
    """Missing or malformed input."""
    status_code = 400
    code = 'VALIDATION_ERROR'


class NotFoundError(AppError):
    """Entity missing, or owned by another creator."""
    status_code = 404
    code = 'NOT_FOUND'

    def __init__(self, resource: str, extra: Optional[Dict[str, Any]] = None):
        self.resource = resource
        super().__init__(f"{resource} not found", extra)


class InvalidTransitionError(AppError):
    """Illegal edge in the deal state machine."""
    status_code = 422
    code = 'INVALID_TRANSITION'

    def __init__(self, current: str, target: str, allowed: Iterable[str] = ()):
        self.current = current
        self.target = target
        self.allowed = sorted(allowed)
        super().__init__(
            f"Cannot move deal from {current} to {target}",
            {'from': current, 'to': target, 'allowed': self.allowed},
        )


class QuotaExceededError(AppError):
    """Monthly plan limit for brand matches reached."""
    status_code = 402
    code = 'QUOTA_EXCEEDED'

    def __init__(self, plan: str, limit: int, upgrade_hint: str):
        self.plan = plan
        self.limit = limit
        self.upgrade_hint = upgrade_hint
        super().__init__(
            f"{plan.upper()} plan limit reached: {limit} Brand Matches per month. {upgrade_hint}",
            {'plan': plan, 'limit': limit, 'upgrade_hint': upgrade_hint},
        )


class ConflictError(AppError):
    """Unique-constraint collision."""
    status_code = 409
    code = 'CONFLICT'


class ExternalCollaboratorError(AppError):
    """Suggestion, outreach or invoicing provider failure."""
    status_code = 502
    code = 'EXTERNAL_SERVICE_ERROR'

    def __init__(self, provider: str, message: str, extra: Optional[Dict[str, Any]] = None):
        self.provider = provider
        super().__init__(f"{provider}: {message}", {'provider': provider, **(extra or {})})
