"""
Tests for matching/quota.py

Monthly windows are calendar months in UTC; only matches created in the
current month count against the plan limit.
"""

import os
os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'config.test_settings')

from datetime import datetime, timedelta, timezone as dt_timezone

import pytest

from core.exceptions import QuotaExceededError
from core.principal import Principal
from matching.models import BrandMatch
from matching.quota import (
    UNBOUNDED,
    batch_target,
    enforce_quota,
    month_start,
    plan_limit,
    remaining_quota,
    upgrade_hint,
)


def add_matches(user, count, prefix='Brand'):
    for i in range(count):
        BrandMatch.objects.create(user=user, brand_name=f'{prefix} {i}', fit_reason='x')


# =============================================================================
# Plan limits
# =============================================================================

class TestPlanLimits:

    @pytest.mark.parametrize('plan,limit', [
        ('free', 3),
        ('starter', 15),
        ('pro', 40),
        ('vip', None),
        ('enterprise', 3),
    ])
    def test_limits(self, plan, limit):
        assert plan_limit(plan) == limit

    def test_upgrade_hints(self):
        assert 'Pro for up to 40' in upgrade_hint('free')
        assert 'Pro for up to 40' in upgrade_hint('starter')
        assert upgrade_hint('pro') == 'Upgrade to VIP for unlimited matches.'

    def test_month_start(self):
        now = datetime(2024, 3, 15, 10, 30, 5, tzinfo=dt_timezone.utc)
        assert month_start(now) == datetime(2024, 3, 1, tzinfo=dt_timezone.utc)

    def test_batch_target(self):
        assert batch_target(UNBOUNDED) == 5
        assert batch_target(7) == 7


# =============================================================================
# enforce_quota / remaining_quota
# =============================================================================

@pytest.mark.django_db
class TestEnforceQuota:

    def test_fresh_free_creator(self, principal):
        assert enforce_quota(principal) == 3
        assert remaining_quota(principal) == 3

    def test_counts_this_months_matches(self, creator, principal):
        add_matches(creator, 2)
        assert enforce_quota(principal) == 1

    def test_fourth_free_match_rejected(self, creator, principal):
        add_matches(creator, 3)

        with pytest.raises(QuotaExceededError) as exc:
            enforce_quota(principal)

        assert exc.value.plan == 'free'
        assert exc.value.limit == 3
        assert exc.value.status_code == 402
        assert 'Upgrade to Pro' in exc.value.to_dict()['upgrade_hint']
        assert remaining_quota(principal) == 0

    def test_previous_month_not_counted(self, creator, principal):
        add_matches(creator, 3)
        BrandMatch.objects.filter(user=creator).update(created_at=month_start() - timedelta(days=1))

        assert enforce_quota(principal) == 3

    def test_other_creators_not_counted(self, other_creator, principal):
        add_matches(other_creator, 5)
        assert enforce_quota(principal) == 3

    def test_vip_never_rejected(self, make_user, principal_for):
        vip = make_user(plan='vip')
        add_matches(vip, 60)
        principal = principal_for(vip)

        assert enforce_quota(principal) is UNBOUNDED
        assert enforce_quota(principal, lock=True) is UNBOUNDED
        assert remaining_quota(principal) is None

    def test_lock_reads_current_plan(self, creator):
        add_matches(creator, 3)
        stale = Principal(id=creator.pk, plan='free')
        type(creator).objects.filter(pk=creator.pk).update(plan='pro')

        with pytest.raises(QuotaExceededError):
            enforce_quota(stale)
        assert enforce_quota(stale, lock=True) == 37
