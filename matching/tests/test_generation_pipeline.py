"""
Tests for matching/pipeline.py

Covers:
- Duplicate filtering against existing matches, caller hints and the batch itself
- The attempt loop: early stops, exclusion growth, provider failures
- Profile-aware scoring and the acceptance threshold
- Persistence: quota re-check, sort and truncate, one SystemEvent per batch
"""

import os
os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'config.test_settings')

import pytest

from core.exceptions import ExternalCollaboratorError, QuotaExceededError
from core.models import SystemEvent
from matching.models import Brand, BrandMatch
from matching.pipeline import NO_NEW_BRANDS_MESSAGE, BrandMatchPipeline


# =============================================================================
# HELPER: Fixtures
# =============================================================================

@pytest.fixture
def vip(make_user):
    return make_user(plan='vip', niches=('Gaming',))


@pytest.fixture
def vip_principal(vip, principal_for):
    return principal_for(vip)


@pytest.fixture
def pipeline(fake_generator):
    return BrandMatchPipeline(generator=fake_generator)


def existing_match(user, name):
    return BrandMatch.objects.create(user=user, brand_name=name, fit_reason='already tracked')


def unrelated(make_candidate, name='Le Fromage'):
    return make_candidate(
        name,
        fitReason='Artisanal cheese shop',
        dealType='Gifted',
        estimatedRate='',
        brandCountry='France',
        category='Cooking',
        language='French',
    )


# =============================================================================
# Duplicate filtering
# =============================================================================

@pytest.mark.django_db
class TestDuplicateFiltering:

    def test_existing_matches_are_excluded(self, pipeline, fake_generator, make_candidate, vip, vip_principal):
        existing_match(vip, 'Nike')
        fake_generator.queue([make_candidate('Nike'), make_candidate('  nike '), make_candidate('Nike Shoes')])

        result = pipeline.generate(vip_principal, desired_count=3, niches=['Gaming'])

        assert [m.brand_name for m in result.matches] == ['Nike Shoes']
        assert result.duplicates_filtered == 2
        assert 'nike' in fake_generator.calls[0]['exclusions']

    def test_duplicates_within_one_batch(self, pipeline, fake_generator, make_candidate, vip_principal):
        fake_generator.queue([make_candidate('Razer'), make_candidate('RAZER'), make_candidate('HyperX')])

        result = pipeline.generate(vip_principal, desired_count=2, niches=['Gaming'])

        assert sorted(m.brand_name for m in result.matches) == ['HyperX', 'Razer']
        assert result.duplicates_filtered == 1

    def test_caller_hints_are_excluded(self, pipeline, fake_generator, make_candidate, vip_principal):
        fake_generator.queue([make_candidate('Logitech'), make_candidate('Corsair')])

        result = pipeline.generate(
            vip_principal, desired_count=1, niches=['Gaming'], existing_brands=['LOGITECH', None],
        )

        assert [m.brand_name for m in result.matches] == ['Corsair']
        assert fake_generator.calls[0]['exclusions'] == {'logitech'}

    def test_other_creators_matches_do_not_exclude(
        self, pipeline, fake_generator, make_candidate, other_creator, vip_principal,
    ):
        existing_match(other_creator, 'Razer')
        fake_generator.queue([make_candidate('Razer')])

        result = pipeline.generate(vip_principal, desired_count=1, niches=['Gaming'])

        assert [m.brand_name for m in result.matches] == ['Razer']

    def test_everything_duplicate(self, pipeline, fake_generator, make_candidate, vip, vip_principal):
        existing_match(vip, 'Razer')
        fake_generator.queue([make_candidate('Razer')])

        result = pipeline.generate(vip_principal, desired_count=2, niches=['Gaming'])

        assert result.matches == []
        assert result.message == NO_NEW_BRANDS_MESSAGE
        assert SystemEvent.objects.count() == 0


# =============================================================================
# Attempt loop
# =============================================================================

@pytest.mark.django_db
class TestAttemptLoop:

    def test_request_size(self, pipeline):
        assert pipeline.request_size(3, 12) == 6
        assert pipeline.request_size(10, 12) == 12
        assert pipeline.request_size(15, 12) == 15

    def test_needs_niches_or_profile(self, pipeline, vip_principal):
        with pytest.raises(ValueError):
            pipeline.generate(vip_principal, desired_count=3)

    def test_stops_when_good_enough(self, pipeline, fake_generator, make_candidate, vip_principal):
        fake_generator.queue([make_candidate(name) for name in ('A', 'B', 'C', 'D')])

        result = pipeline.generate(vip_principal, desired_count=5, niches=['Gaming'])

        assert len(result.matches) == 4
        assert result.attempts_used == 1
        assert len(fake_generator.calls) == 1
        assert fake_generator.calls[0]['count'] == 10

    def test_stops_when_survival_is_low(self, pipeline, fake_generator, make_candidate, vip, vip_principal):
        existing_match(vip, 'A')
        fake_generator.queue(
            [make_candidate('A'), make_candidate('B')],
            [make_candidate('C')],
        )

        result = pipeline.generate(vip_principal, desired_count=3, niches=['Gaming'])

        # 1 survivor out of 6 requested is under the survival floor
        assert result.attempts_used == 1
        assert [m.brand_name for m in result.matches] == ['B']

    def test_exclusions_grow_between_attempts(self, pipeline, fake_generator, make_candidate, vip_principal):
        fake_generator.queue([make_candidate('Razer')], [make_candidate('HyperX')])

        result = pipeline.generate(vip_principal, desired_count=2, niches=['Gaming'])

        assert result.attempts_used == 2
        assert 'razer' in fake_generator.calls[1]['exclusions']
        assert fake_generator.calls[1]['count'] == 2
        assert sorted(m.brand_name for m in result.matches) == ['HyperX', 'Razer']

    def test_provider_failure_moves_to_next_attempt(self, pipeline, fake_generator, make_candidate, vip_principal):
        fake_generator.queue(
            ExternalCollaboratorError('openai', 'timed out'),
            [make_candidate('Razer'), make_candidate('HyperX')],
        )

        result = pipeline.generate(vip_principal, desired_count=2, niches=['Gaming'])

        assert result.attempts_used == 2
        assert len(result.matches) == 2

    def test_every_attempt_failing_is_an_empty_result(self, pipeline, fake_generator, vip_principal):
        fake_generator.queue(*[ExternalCollaboratorError('openai', 'down') for _ in range(3)])

        result = pipeline.generate(vip_principal, desired_count=2, niches=['Gaming'])

        assert result.matches == []
        assert result.attempts_used == 3
        assert result.message == NO_NEW_BRANDS_MESSAGE
        assert BrandMatch.objects.count() == 0

    def test_multiple_niches_split_the_request(self, pipeline, fake_generator, make_candidate, vip_principal):
        fake_generator.queue([make_candidate('Razer'), make_candidate('Sephora'), make_candidate('Glossier')])

        pipeline.generate(vip_principal, desired_count=3, niches=['Gaming', 'Beauty'])

        call = fake_generator.calls[0]
        assert call['kind'] == 'niches'
        assert call['niches'] == ['Gaming', 'Beauty']
        assert call['count'] == 3


# =============================================================================
# Profile-aware scoring
# =============================================================================

@pytest.mark.django_db
class TestProfileScoring:

    def test_fit_brand_kept_and_unrelated_brand_excluded(
        self, pipeline, fake_generator, make_candidate, make_profile, vip, vip_principal,
    ):
        profile = make_profile(vip)
        fake_generator.queue([make_candidate('Razer', matchScore=40), unrelated(make_candidate)])

        result = pipeline.generate(vip_principal, desired_count=2, profile=profile)

        assert [m.brand_name for m in result.matches] == ['Razer']
        match = result.matches[0]
        # the computed score replaces the provider's guess
        assert match.match_score == 100
        assert match.source == 'creator_ai_enhanced'
        assert result.below_threshold == 1
        assert result.enhanced is True
        assert result.niches == ['Gaming']
        assert fake_generator.calls[0]['kind'] == 'profile'

    def test_niches_override_profile_niches(
        self, pipeline, fake_generator, make_candidate, make_profile, vip, vip_principal,
    ):
        profile = make_profile(vip, top_niches=['Beauty'])
        fake_generator.queue([make_candidate('Razer')])

        result = pipeline.generate(vip_principal, desired_count=1, niches=['Gaming'], profile=profile)

        assert fake_generator.calls[0]['niches'] == ['Gaming']
        assert result.niches == ['Gaming']
        assert result.matches[0].match_score == 100

    def test_custom_threshold(self, pipeline, fake_generator, make_candidate, make_profile, vip, vip_principal):
        profile = make_profile(vip)
        fake_generator.queue([unrelated(make_candidate)])

        result = pipeline.generate(vip_principal, desired_count=1, profile=profile, threshold=10)

        assert [m.match_score for m in result.matches] == [20]

    def test_niche_path_keeps_provider_score(self, pipeline, fake_generator, make_candidate, vip_principal):
        fake_generator.queue([unrelated(make_candidate, 'Cheese Co')])

        result = pipeline.generate(vip_principal, desired_count=1, niches=['Cooking'])

        assert result.matches[0].match_score == 80
        assert result.enhanced is False


# =============================================================================
# Persistence
# =============================================================================

@pytest.mark.django_db
class TestPersistence:

    def test_sorted_by_score_and_truncated(self, pipeline, fake_generator, make_candidate, vip_principal):
        fake_generator.queue([
            make_candidate('Low', matchScore=60),
            make_candidate('High', matchScore=95),
            make_candidate('Mid', matchScore=80),
        ])

        result = pipeline.generate(vip_principal, desired_count=2, niches=['Gaming'])

        assert [(m.brand_name, m.match_score) for m in result.matches] == [('High', 95), ('Mid', 80)]
        assert BrandMatch.objects.filter(brand_name='Low').count() == 0

    def test_rows_are_drafts_linked_to_brands(self, pipeline, fake_generator, make_candidate, vip_principal):
        brand = Brand.objects.create(name='Razer')
        fake_generator.queue([make_candidate('razer', sourceNiche='Esports'), make_candidate('HyperX')])

        result = pipeline.generate(vip_principal, desired_count=2, niches=['Gaming'])

        by_name = {m.brand_name: m for m in result.matches}
        assert by_name['razer'].brand == brand
        assert by_name['razer'].source == 'Esports'
        assert by_name['HyperX'].brand is None
        assert by_name['HyperX'].source == 'ai_suggestion'
        assert all(m.status == BrandMatch.Status.DRAFT for m in result.matches)
        assert by_name['HyperX'].deal_type == 'Sponsored video'

    def test_one_event_per_batch(self, pipeline, fake_generator, make_candidate, vip_principal):
        fake_generator.queue([make_candidate('Razer'), make_candidate('HyperX')])

        pipeline.generate(vip_principal, desired_count=2, niches=['Gaming'], event_type='ai.brands.suggested')

        event = SystemEvent.objects.get()
        assert event.type == 'ai.brands.suggested'
        assert event.user_id == vip_principal.id
        assert event.metadata['count'] == 2
        assert event.metadata['niches'] == ['Gaming']

    def test_batch_trimmed_to_remaining_quota(self, pipeline, fake_generator, make_candidate, creator, principal):
        existing_match(creator, 'Old One')
        existing_match(creator, 'Old Two')
        fake_generator.queue([
            make_candidate('Razer', matchScore=70),
            make_candidate('HyperX', matchScore=90),
            make_candidate('Corsair', matchScore=80),
        ])

        result = pipeline.generate(principal, desired_count=3, niches=['Gaming'])

        assert [m.brand_name for m in result.matches] == ['HyperX']
        assert BrandMatch.objects.filter(user=creator).count() == 3
        assert SystemEvent.objects.get().metadata['count'] == 1

    def test_quota_used_up_before_persisting(self, pipeline, fake_generator, make_candidate, creator, principal):
        for name in ('One', 'Two', 'Three'):
            existing_match(creator, name)
        fake_generator.queue([make_candidate('Razer')])

        with pytest.raises(QuotaExceededError):
            pipeline.generate(principal, desired_count=1, niches=['Gaming'])

        assert BrandMatch.objects.filter(user=creator).count() == 3
        assert SystemEvent.objects.count() == 0

    def test_summary_message(self, pipeline, fake_generator, make_candidate, vip, vip_principal):
        existing_match(vip, 'Razer')
        fake_generator.queue([make_candidate('Razer'), make_candidate('HyperX')])

        result = pipeline.generate(vip_principal, desired_count=3, niches=['Gaming'])

        assert result.message.startswith('Generated 1 new brand match (2 fewer than requested')
        assert '1 duplicates were filtered out.' in result.message
        payload = result.to_dict()
        assert payload['count'] == 1
        assert payload['data'][0]['brand_name'] == 'HyperX'


# =============================================================================
# Concurrent inserts between fetch and persist
# =============================================================================

def insert_during_fetch(generator, user, name):
    """Make the generator's next niche call race a second request for `user`."""
    original = generator.suggest_for_niche

    def suggest(niche, count, exclusions=()):
        existing_match(user, name)
        return original(niche, count, exclusions)

    generator.suggest_for_niche = suggest


@pytest.mark.django_db
class TestConcurrentInserts:

    def test_name_added_mid_request_is_not_duplicated(
        self, pipeline, fake_generator, make_candidate, vip, vip_principal,
    ):
        insert_during_fetch(fake_generator, vip, 'Razer')
        fake_generator.queue([make_candidate('RAZER')])

        result = pipeline.generate(vip_principal, desired_count=1, niches=['Gaming'])

        names = [n.lower() for n in BrandMatch.objects.filter(user=vip).values_list('brand_name', flat=True)]
        assert names == ['razer']
        assert result.matches == []
        assert result.duplicates_filtered == 1
        assert result.message == NO_NEW_BRANDS_MESSAGE
        assert SystemEvent.objects.count() == 0

    def test_other_survivors_still_persisted(
        self, pipeline, fake_generator, make_candidate, vip, vip_principal,
    ):
        insert_during_fetch(fake_generator, vip, 'Razer')
        fake_generator.queue([make_candidate('razer'), make_candidate('HyperX')])

        result = pipeline.generate(vip_principal, desired_count=2, niches=['Gaming'])

        assert [m.brand_name for m in result.matches] == ['HyperX']
        assert result.duplicates_filtered == 1
        assert SystemEvent.objects.get().metadata['duplicates_filtered'] == 1
