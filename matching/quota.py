"""
Monthly BrandMatch quotas per plan.

Windows are calendar months in UTC. Limits come from
settings.BRAND_MATCH_CONFIG['plan_limits']; a limit of None means the plan
is unbounded.
"""

import logging
from typing import Optional, Union

from django.conf import settings
from django.utils import timezone

from core.exceptions import QuotaExceededError
from core.principal import Principal

logger = logging.getLogger(__name__)


class Unbounded:
    """Returned by enforce_quota for plans without a monthly cap."""

    def __repr__(self):
        return 'UNBOUNDED'


UNBOUNDED = Unbounded()

PLAN_LIMITS = settings.BRAND_MATCH_CONFIG['plan_limits']


def plan_limit(plan: str) -> Optional[int]:
    try:
        return PLAN_LIMITS[plan]
    except KeyError:
        logger.warning("Unknown plan %r, applying free plan limit", plan)
        return PLAN_LIMITS['free']


def upgrade_hint(plan: str) -> str:
    if plan in ('free', 'starter'):
        return (
            f"Upgrade to Pro for up to {PLAN_LIMITS['pro']} matches "
            "or VIP for unlimited matches."
        )
    return "Upgrade to VIP for unlimited matches."


def month_start(now=None):
    now = now or timezone.now()
    return now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)


def matches_this_month(user_id) -> int:
    from .models import BrandMatch

    return BrandMatch.objects.filter(
        user_id=user_id,
        created_at__gte=month_start(),
    ).count()


def enforce_quota(principal: Principal, lock: bool = False) -> Union[int, Unbounded]:
    """
    Return the remaining BrandMatch slots for this month, or UNBOUNDED.

    With lock=True the creator's user row is locked first so that concurrent
    generation requests for the same creator serialize on it. The caller must
    already be inside transaction.atomic().

    Raises QuotaExceededError once the month's count reaches the plan limit.
    """
    plan = principal.plan
    if lock:
        from django.contrib.auth import get_user_model

        user = get_user_model().objects.select_for_update().get(pk=principal.id)
        plan = user.plan

    limit = plan_limit(plan)
    if limit is None:
        return UNBOUNDED

    used = matches_this_month(principal.id)
    if used >= limit:
        logger.info("Quota reached for user %s: %s/%s on %s", principal.id, used, limit, plan)
        raise QuotaExceededError(plan, limit, upgrade_hint(plan))
    return limit - used


def remaining_quota(principal: Principal) -> Optional[int]:
    """Non-raising variant for display; None when unbounded."""
    limit = plan_limit(principal.plan)
    if limit is None:
        return None
    return max(limit - matches_this_month(principal.id), 0)


def batch_target(remaining: Union[int, Unbounded]) -> int:
    """How many matches one generation request should aim for."""
    if remaining is UNBOUNDED:
        return settings.BRAND_MATCH_CONFIG['unbounded_batch_size']
    return remaining
