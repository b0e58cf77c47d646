"""
Tests for matching/services.py

Covers:
- Generation routes: my niches, single niche, monthly
- Quota enforcement before the provider is called
- Manual creation, listing and status updates
"""

import os
os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'config.test_settings')

import pytest

from core.exceptions import ConflictError, NotFoundError, QuotaExceededError, ValidationError
from core.models import SystemEvent
from matching.models import Brand, BrandMatch
from matching.services import BrandMatchService


@pytest.fixture
def service(fake_generator):
    return BrandMatchService(generator=fake_generator)


def add_match(user, name, **fields):
    fields.setdefault('fit_reason', 'tracked')
    return BrandMatch.objects.create(user=user, brand_name=name, **fields)


# =============================================================================
# Generation routes
# =============================================================================

@pytest.mark.django_db
class TestSuggestFromMyNiches:

    def test_requires_niches(self, service, make_user, principal_for, fake_generator):
        principal = principal_for(make_user(plan='pro'))
        with pytest.raises(ValidationError, match='at least one niche'):
            service.suggest_from_my_niches(principal)
        assert fake_generator.calls == []

    def test_fills_remaining_quota(self, service, fake_generator, make_candidate, principal):
        fake_generator.queue([make_candidate(n) for n in ('Razer', 'HyperX', 'Corsair', 'Logitech')])

        result = service.suggest_from_my_niches(principal)

        assert result.target == 3
        assert len(result.matches) == 3
        assert fake_generator.calls[0]['kind'] == 'niche'
        assert fake_generator.calls[0]['niche'] == 'Gaming'
        assert SystemEvent.objects.filter(type='brand_match.generated').count() == 1

    def test_fourth_request_rejected_before_provider_call(self, service, fake_generator, creator, principal):
        for name in ('A', 'B', 'C'):
            add_match(creator, name)

        with pytest.raises(QuotaExceededError):
            service.suggest_from_my_niches(principal)
        assert fake_generator.calls == []

    def test_uses_profile_when_present(self, service, fake_generator, make_candidate, make_profile, creator, principal):
        make_profile(creator)
        fake_generator.queue([make_candidate('Razer')])

        result = service.suggest_from_my_niches(principal)

        assert fake_generator.calls[0]['kind'] == 'profile'
        assert result.enhanced is True

    def test_vip_gets_a_fixed_batch(self, service, fake_generator, make_user, principal_for):
        principal = principal_for(make_user(plan='vip', niches=('Gaming',)))

        result = service.suggest_from_my_niches(principal)

        assert result.target == 5
        assert result.matches == []


@pytest.mark.django_db
class TestSuggestForNiche:

    @pytest.mark.parametrize('niche', [None, '', '   ', 42])
    def test_niche_required(self, service, principal, niche):
        with pytest.raises(ValidationError):
            service.suggest_for_niche(principal, niche)

    def test_event_and_target(self, service, fake_generator, make_candidate, make_user, principal_for):
        principal = principal_for(make_user(plan='pro'))
        fake_generator.queue([make_candidate(n) for n in ('Sephora', 'Glossier', 'Fenty', 'Rare', 'Ulta', 'Dior')])

        result = service.suggest_for_niche(principal, '  Beauty ', existing_brands=['Dior'])

        assert result.target == 5
        assert len(result.matches) == 5
        assert fake_generator.calls[0]['niche'] == 'Beauty'
        assert 'dior' in fake_generator.calls[0]['exclusions']
        assert SystemEvent.objects.get().type == 'ai.brands.suggested'

    def test_nothing_new(self, service, principal):
        result = service.suggest_for_niche(principal, 'Gaming')
        assert result.matches == []
        assert result.message == 'AI could not generate new suggestions for this niche.'


@pytest.mark.django_db
class TestGenerateMonthly:

    def test_monthly_source_and_event(self, service, fake_generator, make_candidate, creator, principal):
        add_match(creator, 'Razer')
        fake_generator.queue([make_candidate('Razer'), make_candidate('HyperX'), make_candidate('Corsair')])

        result = service.generate_monthly(principal)

        assert result.target == 2
        assert sorted(m.brand_name for m in result.matches) == ['Corsair', 'HyperX']
        assert {m.source for m in result.matches} == {'monthly_ai_generation'}
        event = SystemEvent.objects.get()
        assert event.type == 'brand_match.monthly_generated'
        assert event.metadata['duplicates_filtered'] == 1

    def test_monthly_allows_more_attempts(self, service, fake_generator, make_user, principal_for):
        principal = principal_for(make_user(plan='vip', niches=('Gaming',)))
        result = service.generate_monthly(principal)
        # an empty batch is under the survival floor
        assert result.attempts_used == 1
        assert len(fake_generator.calls) == 1


# =============================================================================
# Manual CRUD
# =============================================================================

@pytest.mark.django_db
class TestCreateManual:

    def test_create(self, service, principal):
        brand = Brand.objects.create(name='Acme')
        match = service.create_manual(principal, {
            'brandName': 'acme',
            'fitReason': 'They sponsor speedrunners',
            'estimatedRate': 900,
            'requiresShipping': True,
        })
        assert match.brand == brand
        assert match.match_score == 75
        assert match.source == 'manual'
        assert match.estimated_rate == '900'
        assert match.requires_shipping is True
        assert match.status == BrandMatch.Status.DRAFT

    @pytest.mark.parametrize('raw,expected', [
        ('false', False),
        ('no', False),
        ('0', False),
        ('true', True),
        ('Yes', True),
        (False, False),
        (1, True),
    ])
    def test_shipping_flag_coercion(self, service, principal, raw, expected):
        match = service.create_manual(principal, {
            'brand_name': 'Acme', 'fit_reason': 'x', 'requires_shipping': raw,
        })
        assert match.requires_shipping is expected

    @pytest.mark.parametrize('data', [
        {'brand_name': 'Acme'},
        {'fit_reason': 'Good fit'},
        {'brand_name': '  ', 'fit_reason': 'Good fit'},
    ])
    def test_required_fields(self, service, principal, data):
        with pytest.raises(ValidationError):
            service.create_manual(principal, data)

    @pytest.mark.parametrize('score', [-1, 101, 'high'])
    def test_score_range(self, service, principal, score):
        with pytest.raises(ValidationError):
            service.create_manual(principal, {'brand_name': 'Acme', 'fit_reason': 'x', 'match_score': score})

    def test_duplicate_name_is_conflict(self, service, creator, principal):
        add_match(creator, 'Acme')
        with pytest.raises(ConflictError):
            service.create_manual(principal, {'brand_name': ' ACME ', 'fit_reason': 'again'})
        assert BrandMatch.objects.filter(user=creator).count() == 1

    def test_quota_applies(self, service, creator, principal):
        for name in ('A', 'B', 'C'):
            add_match(creator, name)
        with pytest.raises(QuotaExceededError):
            service.create_manual(principal, {'brand_name': 'Acme', 'fit_reason': 'x'})


@pytest.mark.django_db
class TestListMatches:

    def test_scoped_filtered_and_paginated(self, service, creator, other_creator, principal):
        add_match(creator, 'Razer', status=BrandMatch.Status.SENT)
        add_match(creator, 'HyperX', fit_reason='Headsets for gamers')
        add_match(creator, 'Corsair')
        add_match(other_creator, 'Sephora')

        everything = service.list_matches(principal)
        assert everything['total'] == 3
        assert 'Sephora' not in {m['brand_name'] for m in everything['items']}

        sent = service.list_matches(principal, status='sent')
        assert [m['brand_name'] for m in sent['items']] == ['Razer']

        searched = service.list_matches(principal, q='headsets')
        assert [m['brand_name'] for m in searched['items']] == ['HyperX']

        paged = service.list_matches(principal, page=2, page_size=2)
        assert paged['page'] == 2
        assert paged['total_pages'] == 2
        assert len(paged['items']) == 1

    def test_unknown_status(self, service, principal):
        with pytest.raises(ValidationError):
            service.list_matches(principal, status='archived')


@pytest.mark.django_db
class TestUpdateStatus:

    def test_update_logs_event(self, service, creator, principal):
        match = add_match(creator, 'Acme')

        updated = service.update_status(principal, match.pk, 'interested')

        assert updated.status == 'interested'
        event = SystemEvent.objects.get(type='brand_match.status_updated')
        assert event.metadata == {'match_id': str(match.pk), 'from': 'draft', 'to': 'interested'}

    def test_invalid_status(self, service, creator, principal):
        match = add_match(creator, 'Acme')
        with pytest.raises(ValidationError) as exc:
            service.update_status(principal, match.pk, 'archived')
        assert 'completed' in exc.value.extra['allowed']

    def test_completed_is_frozen(self, service, creator, principal):
        match = add_match(creator, 'Acme', status=BrandMatch.Status.COMPLETED)
        with pytest.raises(ValidationError):
            service.update_status(principal, match.pk, 'draft')
        match.refresh_from_db()
        assert match.status == BrandMatch.Status.COMPLETED
        assert SystemEvent.objects.count() == 0

    def test_other_creators_match(self, service, other_creator, principal):
        match = add_match(other_creator, 'Sephora')
        with pytest.raises(NotFoundError):
            service.update_status(principal, match.pk, 'sent')
