"""
Health check endpoints for monitoring.

/health/       - Liveness check (always returns 200)
/health/ready/ - Readiness check (verifies DB and the OpenAI key)
"""
import logging

from django.db import connection
from django.http import JsonResponse
from django.utils.decorators import method_decorator
from django.views import View
from django.views.decorators.csrf import csrf_exempt

logger = logging.getLogger(__name__)


@method_decorator(csrf_exempt, name='dispatch')
class HealthCheckView(View):
    """Liveness probe: 200 whenever Django is up."""

    def get(self, request):
        return JsonResponse({"status": "ok"})


@method_decorator(csrf_exempt, name='dispatch')
class ReadinessCheckView(View):
    """Readiness probe: database plus critical config."""

    def get(self, request):
        from django.conf import settings

        checks = {}

        # 1. Database connectivity
        try:
            with connection.cursor() as cursor:
                cursor.execute("SELECT 1")
            checks["database"] = "ok"
        except Exception as e:
            logger.error(f"Readiness check database error: {e}")
            checks["database"] = f"error: {e}"

        # 2. Suggestion generator key present
        checks["api_keys"] = {
            "openai": bool(getattr(settings, 'OPENAI_API_KEY', '')),
        }

        # 3. Brand directory size (basic data sanity)
        try:
            from matching.models import Brand
            checks["brand_count"] = Brand.objects.count()
        except Exception as e:
            checks["brand_count"] = f"error: {e}"

        all_ok = (
            checks["database"] == "ok"
            and checks["api_keys"]["openai"]
            and isinstance(checks.get("brand_count"), int)
        )

        return JsonResponse(
            {"status": "ready" if all_ok else "degraded", "checks": checks},
            status=200 if all_ok else 503,
        )
