"""
Creator onboarding and niche membership.

CreatorProfileService stores the onboarding answers the scoring pipeline
reads; NicheService manages the niche list the niche-based generation routes
start from. Saving a profile also adds its top niches to the creator's niches.
"""

import logging
from typing import Iterable, List, Optional

from django.core.exceptions import ValidationError as DjangoValidationError
from django.core.paginator import Paginator
from django.db import IntegrityError, transaction

from core.exceptions import NotFoundError, ValidationError
from core.models import SystemEvent
from core.principal import Principal

from .models import CreatorProfile, Niche
from .suggestions import coerce_flag

logger = logging.getLogger(__name__)

MAX_NICHE_NAME = 100
MAX_PAGE_SIZE = 100

# field -> accepted request keys, snake_case first
PROFILE_FIELDS = {
    'country': ('country',),
    'timezone': ('timezone',),
    'primary_languages': ('primary_languages', 'primaryLanguages', 'primary_language', 'primaryLanguage'),
    'content_languages': ('content_languages', 'contentLanguages'),
    'primary_platforms': ('primary_platforms', 'primaryPlatforms'),
    'audience_sizes': ('audience_sizes', 'audienceSizes'),
    'average_views': ('average_views', 'averageViews'),
    'top_niches': ('top_niches', 'topNiches'),
    'brand_categories': ('brand_categories', 'brandCategories'),
    'deal_types': ('deal_types', 'dealTypes'),
    'minimum_rates': ('minimum_rates', 'minimumRates'),
    'preferred_currency': ('preferred_currency', 'preferredCurrency'),
    'accepts_international_brands': ('accepts_international_brands', 'acceptsInternationalBrands'),
    'shipping_preference': ('shipping_preference', 'shippingPreference', 'shipping_preferences'),
    'onboarding_completed': ('onboarding_completed', 'onboardingCompleted'),
}

LIST_FIELDS = {
    'primary_languages', 'content_languages', 'primary_platforms',
    'top_niches', 'brand_categories', 'deal_types',
}
DICT_FIELDS = {'audience_sizes', 'average_views', 'minimum_rates'}
FLAG_FIELDS = {'accepts_international_brands', 'onboarding_completed'}


def _pick(data: dict, keys) -> tuple:
    for key in keys:
        if key in data:
            return True, data[key]
    return False, None


def clean_profile_data(data: dict) -> dict:
    """
    Pull the known profile fields out of a request body.

    Shape errors (a string where a list belongs, and so on) are reported per
    field; value rules are left to CreatorProfile.full_clean().
    """
    cleaned, errors = {}, {}
    for field, keys in PROFILE_FIELDS.items():
        present, value = _pick(data, keys)
        if not present:
            continue
        if field in LIST_FIELDS:
            if value is None:
                value = []
            if not isinstance(value, list):
                errors[field] = ['Must be a list.']
                continue
            if field == 'top_niches':
                value = [n.strip() for n in value if isinstance(n, str) and n.strip()]
        elif field in DICT_FIELDS:
            if value is None:
                value = {}
            if not isinstance(value, dict):
                errors[field] = ['Must be an object.']
                continue
        elif field in FLAG_FIELDS:
            value = coerce_flag(value)
        else:
            value = value.strip() if isinstance(value, str) else value
            if value is None:
                value = ''
        cleaned[field] = value

    if errors:
        raise ValidationError('Invalid creator profile', {'fields': errors})
    return cleaned


def find_or_create_niche(name: str) -> Niche:
    """Case-insensitive lookup; a new niche keeps the name as given."""
    name = name.strip() if isinstance(name, str) else ''
    if not name:
        raise ValidationError("A niche 'name' is required.")
    if len(name) > MAX_NICHE_NAME:
        raise ValidationError(f"A niche name can be at most {MAX_NICHE_NAME} characters.")

    existing = Niche.objects.filter(name__iexact=name).first()
    if existing:
        return existing
    try:
        with transaction.atomic():
            return Niche.objects.create(name=name)
    except IntegrityError:
        existing = Niche.objects.filter(name__iexact=name).first()
        if existing is None:
            raise
        return existing


class NicheService:
    """
    The niche directory and each creator's niche list.

    Usage:
        niche = NicheService().add_mine(principal, 'Gaming')
    """

    def list_all(self, search: Optional[str] = None, page: int = 1, page_size: int = 50) -> dict:
        qs = Niche.objects.all()
        if search:
            qs = qs.filter(name__icontains=search)
        page_size = max(1, min(int(page_size), MAX_PAGE_SIZE))
        paginator = Paginator(qs.order_by('name'), page_size)
        page_obj = paginator.get_page(page)
        return {
            'items': [n.to_response() for n in page_obj.object_list],
            'total': paginator.count,
            'page': page_obj.number,
            'page_size': page_size,
            'total_pages': paginator.num_pages,
        }

    def list_mine(self, principal: Principal) -> List[Niche]:
        return list(Niche.objects.filter(users__id=principal.id).order_by('name'))

    def add_mine(self, principal: Principal, name: str) -> Niche:
        """Attach a niche to the creator, creating it if needed. Idempotent."""
        niche = find_or_create_niche(name)
        niche.users.add(principal.id)
        logger.info("Niche %s (%s) added for user %s", niche.pk, niche.name, principal.id)
        return niche

    def add_many(self, principal: Principal, names: Iterable[str]) -> List[Niche]:
        return [self.add_mine(principal, name) for name in names if isinstance(name, str) and name.strip()]

    def remove_mine(self, principal: Principal, niche_id) -> None:
        niche = Niche.objects.filter(pk=niche_id, users__id=principal.id).first()
        if niche is None:
            raise NotFoundError('Niche')
        niche.users.remove(principal.id)
        logger.info("Niche %s removed for user %s", niche.pk, principal.id)


class CreatorProfileService:
    """
    Create, update and complete a creator's onboarding profile.

    Usage:
        service = CreatorProfileService()
        profile = service.upsert(principal, request_body)
    """

    def __init__(self, niches: Optional[NicheService] = None):
        self.niches = niches or NicheService()

    def get(self, principal: Principal) -> Optional[CreatorProfile]:
        return CreatorProfile.objects.filter(user_id=principal.id).first()

    @transaction.atomic
    def upsert(self, principal: Principal, data: dict) -> CreatorProfile:
        """
        Create the profile or update the fields present in data.

        Raises:
            ValidationError: with a per-field 'fields' map when the result
                would not pass CreatorProfile validation (e.g. 0 or 4 top niches).
        """
        fields = clean_profile_data(data)
        profile = self.get(principal)
        created = profile is None
        if created:
            profile = CreatorProfile(user_id=principal.id)
        for name, value in fields.items():
            setattr(profile, name, value)

        try:
            profile.full_clean(exclude=['user'])
        except DjangoValidationError as e:
            raise ValidationError('Invalid creator profile', {'fields': e.message_dict})
        profile.save()

        self.niches.add_many(principal, profile.top_niches)
        SystemEvent.objects.create(
            user_id=principal.id,
            type='creator_profile.created' if created else 'creator_profile.updated',
            metadata={'fields': sorted(fields), 'top_niches': profile.top_niches},
        )
        logger.info("Creator profile %s for user %s", 'created' if created else 'updated', principal.id)
        return profile

    @transaction.atomic
    def complete_onboarding(self, principal: Principal) -> CreatorProfile:
        profile = self.get(principal)
        if profile is None:
            raise NotFoundError('Creator profile')
        if not profile.onboarding_completed:
            profile.onboarding_completed = True
            profile.save(update_fields=['onboarding_completed', 'updated_at'])
            SystemEvent.objects.create(
                user_id=principal.id,
                type='creator_profile.onboarding_completed',
                metadata={'top_niches': profile.top_niches},
            )
        self.niches.add_many(principal, profile.top_niches)
        return profile

    def onboarding_status(self, principal: Principal) -> dict:
        profile = self.get(principal)
        return {
            'has_profile': profile is not None,
            'is_completed': bool(profile and profile.onboarding_completed),
            'profile': profile.to_response() if profile else None,
        }
