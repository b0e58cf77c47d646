"""
Root conftest for the ManAIger backend test suite.

Handles:
- Django settings configuration (in-memory SQLite unless DATABASE_URL is set)
- Shared fixtures: creators per plan, principals, creator profiles
- A scripted suggestion generator standing in for the OpenAI-backed one
"""

import os
from typing import List

import pytest

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'config.test_settings')


# ---------------------------------------------------------------------------
# Scripted suggestion generator
# ---------------------------------------------------------------------------

class FakeGenerator:
    """
    Plays back queued batches of candidates, one per call.

    A queued exception instance is raised instead of returned. When the queue
    runs dry every further call returns an empty batch.
    """

    def __init__(self, batches=None):
        self.batches: List = list(batches or [])
        self.calls: List[dict] = []

    def queue(self, *batches):
        self.batches.extend(batches)

    def _next(self, **call):
        self.calls.append(call)
        if not self.batches:
            return []
        batch = self.batches.pop(0)
        if isinstance(batch, Exception):
            raise batch
        return _as_candidates(batch)

    def suggest_for_niche(self, niche, count, exclusions=()):
        return self._next(kind='niche', niche=niche, count=count, exclusions=set(exclusions))

    def suggest_for_niches(self, niches, per_niche, exclusions=()):
        return self._next(kind='niches', niches=list(niches), count=per_niche, exclusions=set(exclusions))

    def suggest_for_profile(self, profile, count, exclusions=(), niches=()):
        return self._next(kind='profile', niches=list(niches), count=count, exclusions=set(exclusions))


def _as_candidates(batch):
    from matching.suggestions import BrandCandidate

    return [
        item if isinstance(item, BrandCandidate) else BrandCandidate.model_validate(item)
        for item in batch
    ]


def candidate_data(name, **overrides):
    """Raw provider-shaped candidate dict."""
    data = {
        'brandName': name,
        'fitReason': f'{name} sponsors gaming creators',
        'outreachDraft': f'Hi {name} team',
        'matchScore': 80,
        'dealType': 'Sponsored video',
        'estimatedRate': '$600',
        'brandCountry': 'USA',
        'category': 'Gaming',
        'language': 'English',
    }
    data.update(overrides)
    return data


# ---------------------------------------------------------------------------
# Users and principals
# ---------------------------------------------------------------------------

@pytest.fixture
def make_user(db):
    """Factory: make_user(plan='free', niches=('Gaming',), username=None)."""
    from django.contrib.auth import get_user_model
    from matching.models import Niche

    User = get_user_model()
    counter = {'n': 0}

    def _make(plan='free', niches=(), username=None, **extra):
        counter['n'] += 1
        username = username or f'creator{counter["n"]}_{plan}'
        user = User.objects.create_user(
            username=username,
            email=f'{username}@example.com',
            password='pass1234',
            plan=plan,
            **extra,
        )
        for name in niches:
            niche, _ = Niche.objects.get_or_create(name=name)
            niche.users.add(user)
        return user

    return _make


@pytest.fixture
def creator(make_user):
    return make_user(plan='free', niches=('Gaming',), display_name='Casey Creator')


@pytest.fixture
def other_creator(make_user):
    return make_user(plan='pro', niches=('Beauty',))


@pytest.fixture
def principal_for():
    from core.principal import Principal

    def _principal(user):
        user.refresh_from_db()
        return Principal.from_user(user)

    return _principal


@pytest.fixture
def principal(creator, principal_for):
    return principal_for(creator)


@pytest.fixture
def make_profile(db):
    """Factory for a CreatorProfile that a strong US gaming candidate fully satisfies."""
    from matching.models import CreatorProfile

    def _make(user, **overrides):
        fields = {
            'country': 'USA',
            'primary_languages': ['English'],
            'content_languages': [],
            'primary_platforms': ['YouTube'],
            'top_niches': ['Gaming'],
            'brand_categories': ['Tech'],
            'deal_types': ['Sponsored video'],
            'minimum_rates': {'YouTube': 500},
            'preferred_currency': 'USD',
            'accepts_international_brands': True,
            'onboarding_completed': True,
        }
        fields.update(overrides)
        return CreatorProfile.objects.create(user=user, **fields)

    return _make


@pytest.fixture
def fake_generator():
    return FakeGenerator()


@pytest.fixture
def api_client(client, creator):
    client.force_login(creator)
    return client


@pytest.fixture
def make_candidate():
    return candidate_data
