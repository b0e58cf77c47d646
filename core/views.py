"""
Core views for the ManAIger API.

JSONAPIMixin is the shared base for every JSON endpoint: it enforces
authentication, parses request bodies, builds the caller's Principal, and
turns domain errors into JSON responses.
"""

import json
import logging

from django.contrib.auth.mixins import LoginRequiredMixin
from django.http import JsonResponse
from django.views import View

from .exceptions import AppError, ValidationError
from .principal import Principal

logger = logging.getLogger(__name__)


class JSONAPIMixin(LoginRequiredMixin):
    """Authenticated JSON endpoint with AppError -> status code mapping."""

    def handle_no_permission(self):
        return JsonResponse(
            {'error': 'UNAUTHENTICATED', 'message': 'Authentication required'},
            status=401,
        )

    def dispatch(self, request, *args, **kwargs):
        try:
            return super().dispatch(request, *args, **kwargs)
        except AppError as e:
            logger.warning(
                "%s %s -> %s: %s", request.method, request.path, e.status_code, e.message
            )
            return JsonResponse(e.to_dict(), status=e.status_code)

    @property
    def principal(self) -> Principal:
        return Principal.from_user(self.request.user)

    def parse_body(self) -> dict:
        """Decode a JSON object body; an empty body is an empty dict."""
        raw = self.request.body
        if not raw:
            return {}
        try:
            data = json.loads(raw)
        except (json.JSONDecodeError, UnicodeDecodeError):
            raise ValidationError("Request body must be valid JSON")
        if not isinstance(data, dict):
            raise ValidationError("Request body must be a JSON object")
        return data

    def query_int(self, name: str, default: int, minimum: int = 1) -> int:
        raw = self.request.GET.get(name)
        if raw in (None, ''):
            return default
        try:
            value = int(raw)
        except ValueError:
            raise ValidationError(f"'{name}' must be an integer")
        if value < minimum:
            raise ValidationError(f"'{name}' must be at least {minimum}")
        return value


class MeView(JSONAPIMixin, View):
    """Current creator, plan and remaining brand match quota."""

    def get(self, request):
        from matching.quota import remaining_quota

        user = request.user
        remaining = remaining_quota(self.principal)
        return JsonResponse({
            'id': user.pk,
            'email': user.email,
            'name': user.actor_name,
            'plan': user.plan,
            'niches': list(user.niches.values_list('name', flat=True)),
            'brand_matches_remaining': remaining,
        })
