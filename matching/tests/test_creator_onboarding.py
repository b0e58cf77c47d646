"""
Tests for matching/onboarding.py and the onboarding and niche endpoints.

Covers:
- Profile create and partial update, with per-field validation errors
- Completing onboarding and the status summary
- Niche directory and the creator's own niche list
"""

import os
os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'config.test_settings')

import json

import pytest
from django.urls import reverse

from core.exceptions import NotFoundError, ValidationError
from core.models import SystemEvent
from matching import views
from matching.models import CreatorProfile, Niche
from matching.onboarding import CreatorProfileService, NicheService, find_or_create_niche
from matching.services import BrandMatchService


def post_json(client, url, data=None):
    return client.post(url, data=json.dumps(data or {}), content_type='application/json')


def profile_body(**overrides):
    body = {
        'country': 'USA',
        'timezone': 'America/New_York',
        'primaryLanguages': ['English'],
        'primaryPlatforms': ['Twitch', 'YouTube'],
        'audienceSizes': {'Twitch': '10k-50k'},
        'topNiches': ['Gaming', 'Tech Reviews'],
        'brandCategories': ['Peripherals'],
        'dealTypes': ['Sponsored stream'],
        'minimumRates': {'Twitch': 400},
        'preferredCurrency': 'USD',
        'acceptsInternationalBrands': 'false',
    }
    body.update(overrides)
    return body


@pytest.fixture
def service():
    return CreatorProfileService()


# =============================================================================
# Creator profile
# =============================================================================

@pytest.mark.django_db
class TestUpsertProfile:

    def test_create(self, service, creator, principal):
        profile = service.upsert(principal, profile_body())

        assert profile.user_id == creator.pk
        assert profile.primary_languages == ['English']
        assert profile.top_niches == ['Gaming', 'Tech Reviews']
        assert profile.accepts_international_brands is False
        assert profile.onboarding_completed is False
        assert SystemEvent.objects.get().type == 'creator_profile.created'

    def test_top_niches_join_my_niches(self, service, creator, principal):
        service.upsert(principal, profile_body(topNiches=['gaming', 'Tech Reviews']))

        names = sorted(n.name for n in creator.niches.all())
        # 'gaming' matches the existing 'Gaming' niche
        assert names == ['Gaming', 'Tech Reviews']
        assert Niche.objects.filter(name__iexact='gaming').count() == 1

    def test_partial_update(self, service, principal):
        service.upsert(principal, profile_body())

        profile = service.upsert(principal, {'country': 'CAN', 'deal_types': ['Affiliate']})

        assert profile.country == 'CAN'
        assert profile.deal_types == ['Affiliate']
        assert profile.top_niches == ['Gaming', 'Tech Reviews']
        assert CreatorProfile.objects.count() == 1
        assert SystemEvent.objects.filter(type='creator_profile.updated').count() == 1

    @pytest.mark.parametrize('niches', [
        [],
        ['Gaming', 'Beauty', 'Fitness', 'Cooking'],
    ])
    def test_top_niche_count(self, service, principal, niches):
        with pytest.raises(ValidationError) as exc:
            service.upsert(principal, profile_body(topNiches=niches))
        assert 'top_niches' in exc.value.extra['fields']
        assert CreatorProfile.objects.count() == 0
        assert SystemEvent.objects.count() == 0

    def test_invalid_update_leaves_profile_alone(self, service, principal):
        service.upsert(principal, profile_body())
        with pytest.raises(ValidationError):
            service.upsert(principal, {'top_niches': ['A', 'B', 'C', 'D']})
        assert CreatorProfile.objects.get().top_niches == ['Gaming', 'Tech Reviews']

    def test_country_required_on_create(self, service, principal):
        with pytest.raises(ValidationError) as exc:
            service.upsert(principal, profile_body(country=''))
        assert 'country' in exc.value.extra['fields']

    @pytest.mark.parametrize('field,value', [
        ('primaryPlatforms', 'Twitch'),
        ('minimumRates', [400]),
    ])
    def test_field_shapes(self, service, principal, field, value):
        with pytest.raises(ValidationError) as exc:
            service.upsert(principal, profile_body(**{field: value}))
        assert len(exc.value.extra['fields']) == 1

    def test_unknown_shipping_preference(self, service, principal):
        with pytest.raises(ValidationError) as exc:
            service.upsert(principal, profile_body(shippingPreference='by_pigeon'))
        assert 'shipping_preference' in exc.value.extra['fields']


@pytest.mark.django_db
class TestCompleteOnboarding:

    def test_requires_profile(self, service, principal):
        with pytest.raises(NotFoundError):
            service.complete_onboarding(principal)

    def test_complete_and_status(self, service, principal):
        assert service.onboarding_status(principal) == {
            'has_profile': False, 'is_completed': False, 'profile': None,
        }
        service.upsert(principal, profile_body())

        service.complete_onboarding(principal)
        service.complete_onboarding(principal)

        status = service.onboarding_status(principal)
        assert status['has_profile'] is True
        assert status['is_completed'] is True
        assert status['profile']['country'] == 'USA'
        assert SystemEvent.objects.filter(type='creator_profile.onboarding_completed').count() == 1


# =============================================================================
# Niches
# =============================================================================

@pytest.mark.django_db
class TestNicheService:

    @pytest.mark.parametrize('name', [None, '', '   ', 42, 'x' * 101])
    def test_name_required(self, name):
        with pytest.raises(ValidationError):
            find_or_create_niche(name)

    def test_add_is_idempotent(self, make_user, principal_for):
        principal = principal_for(make_user(plan='pro'))
        niches = NicheService()

        first = niches.add_mine(principal, ' Cooking ')
        second = niches.add_mine(principal, 'COOKING')

        assert first.pk == second.pk
        assert first.name == 'Cooking'
        assert [n.name for n in niches.list_mine(principal)] == ['Cooking']

    def test_remove_only_own(self, creator, other_creator, principal):
        beauty = Niche.objects.get(name='Beauty')
        with pytest.raises(NotFoundError):
            NicheService().remove_mine(principal, beauty.pk)
        assert other_creator.niches.filter(pk=beauty.pk).exists()

        gaming = Niche.objects.get(name='Gaming')
        NicheService().remove_mine(principal, gaming.pk)
        assert not creator.niches.exists()
        assert Niche.objects.filter(pk=gaming.pk).exists()

    def test_directory_search_and_pages(self, creator, other_creator):
        Niche.objects.create(name='Board Games')
        data = NicheService().list_all(search='gam', page_size=1)
        assert data['total'] == 2
        assert data['total_pages'] == 2
        assert data['items'] == [{'id': Niche.objects.get(name='Board Games').pk, 'name': 'Board Games'}]


# =============================================================================
# Endpoints
# =============================================================================

@pytest.mark.django_db
class TestOnboardingEndpoints:

    def test_unauthenticated(self, client):
        assert client.get(reverse('matching:creator-profile')).status_code == 401
        assert client.get(reverse('matching:my-niches')).status_code == 401

    def test_profile_round_trip(self, api_client):
        url = reverse('matching:creator-profile')
        assert api_client.get(url).json() == {'data': None}

        saved = post_json(api_client, url, profile_body())
        assert saved.status_code == 200
        assert saved.json()['data']['top_niches'] == ['Gaming', 'Tech Reviews']

        assert api_client.get(url).json()['data']['country'] == 'USA'

    @pytest.mark.parametrize('niches', [[], ['A', 'B', 'C', 'D']])
    def test_top_niche_count_is_400(self, api_client, niches):
        response = post_json(api_client, reverse('matching:creator-profile'), profile_body(topNiches=niches))
        assert response.status_code == 400
        body = response.json()
        assert body['error'] == 'VALIDATION_ERROR'
        assert 'top_niches' in body['fields']

    def test_complete_onboarding(self, api_client):
        url = reverse('matching:complete-onboarding')
        assert post_json(api_client, url).status_code == 404

        post_json(api_client, reverse('matching:creator-profile'), profile_body())
        assert post_json(api_client, url).json()['data']['onboarding_completed'] is True

        status = api_client.get(reverse('matching:onboarding-status')).json()['data']
        assert status['is_completed'] is True


@pytest.mark.django_db
class TestNicheEndpoints:

    @pytest.fixture
    def niche_client(self, client, make_user, monkeypatch, fake_generator):
        monkeypatch.setattr(
            views.BrandMatchServiceMixin,
            'get_service',
            lambda self: BrandMatchService(generator=fake_generator),
        )
        client.force_login(make_user(plan='pro', username='newcomer'))
        return client

    def test_added_niche_unlocks_generation(self, niche_client, fake_generator, make_candidate):
        suggest = reverse('matching:suggest-from-my-niches')
        assert post_json(niche_client, suggest).status_code == 400

        added = post_json(niche_client, reverse('matching:my-niches'), {'name': 'Fitness'})
        assert added.status_code == 201
        assert added.json()['name'] == 'Fitness'

        fake_generator.queue([make_candidate('Gymshark')])
        response = post_json(niche_client, suggest)
        assert response.status_code == 201
        assert response.json()['niches'] == ['Fitness']

    def test_list_and_remove(self, niche_client):
        post_json(niche_client, reverse('matching:my-niches'), {'name': 'Fitness'})
        mine = niche_client.get(reverse('matching:my-niches')).json()['items']
        assert [n['name'] for n in mine] == ['Fitness']

        url = reverse('matching:my-niche-detail', args=[mine[0]['id']])
        assert niche_client.delete(url).status_code == 204
        assert niche_client.delete(url).status_code == 404
        assert niche_client.get(reverse('matching:my-niches')).json()['items'] == []

    def test_blank_name_is_400(self, niche_client):
        assert post_json(niche_client, reverse('matching:my-niches'), {'name': ' '}).status_code == 400

    def test_directory(self, niche_client, creator):
        body = niche_client.get(reverse('matching:niche-list'), {'search': 'gam'}).json()
        assert [n['name'] for n in body['items']] == ['Gaming']
