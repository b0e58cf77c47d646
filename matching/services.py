"""
Brand match services.

BrandMatchService is the entry point the views and the monthly command use:
quota checks, the generation routes, manual creation, listing and status
updates. All methods take the calling Principal explicitly.
"""

import logging
from typing import Iterable, Optional

from django.conf import settings
from django.core.paginator import Paginator
from django.db import transaction
from django.db.models import Q

from core.exceptions import ConflictError, ValidationError
from core.models import SystemEvent
from core.principal import Principal, get_owned

from .models import Brand, BrandMatch, CreatorProfile, Niche
from .pipeline import BrandMatchPipeline, GenerationResult
from .quota import batch_target, enforce_quota
from .suggestions import SuggestionGenerator, coerce_flag, normalize_brand_name

logger = logging.getLogger(__name__)

SINGLE_NICHE_BATCH = 5
DEFAULT_MANUAL_SCORE = 75
MAX_PAGE_SIZE = 100

NO_NICHES_MESSAGE = (
    "You must have at least one niche to generate brand suggestions. "
    "Please add niches first."
)


class BrandMatchService:
    """
    Generation and bookkeeping for a creator's brand matches.

    Usage:
        service = BrandMatchService()
        result = service.suggest_from_my_niches(principal)
    """

    def __init__(self, generator: Optional[SuggestionGenerator] = None):
        self.pipeline = BrandMatchPipeline(generator=generator)

    # ----- lookups -----

    @staticmethod
    def niches_for(principal: Principal) -> list:
        return list(
            Niche.objects.filter(users__id=principal.id)
            .order_by('name')
            .values_list('name', flat=True)
        )

    @staticmethod
    def profile_for(principal: Principal) -> Optional[CreatorProfile]:
        return CreatorProfile.objects.filter(user_id=principal.id).first()

    def get_match(self, principal: Principal, match_id) -> BrandMatch:
        return get_owned(BrandMatch.objects.all(), principal, match_id, 'Brand match')

    # ----- generation -----

    def suggest_from_my_niches(self, principal: Principal, existing_brands: Iterable[str] = ()) -> GenerationResult:
        niches = self.niches_for(principal)
        if not niches:
            raise ValidationError(NO_NICHES_MESSAGE)

        desired = batch_target(enforce_quota(principal))
        return self.pipeline.generate(
            principal,
            desired_count=desired,
            niches=niches,
            profile=self.profile_for(principal),
            existing_brands=existing_brands,
            event_type='brand_match.generated',
        )

    def generate_monthly(self, principal: Principal, existing_brands: Iterable[str] = ()) -> GenerationResult:
        """Fill the rest of this month's quota (one batch for unbounded plans)."""
        niches = self.niches_for(principal)
        if not niches:
            raise ValidationError(NO_NICHES_MESSAGE)

        target = batch_target(enforce_quota(principal))
        return self.pipeline.generate(
            principal,
            desired_count=target,
            niches=niches,
            profile=self.profile_for(principal),
            existing_brands=existing_brands,
            max_attempts=settings.BRAND_MATCH_CONFIG['monthly_max_attempts'],
            event_type='brand_match.monthly_generated',
            source='monthly_ai_generation',
        )

    def suggest_for_niche(
        self, principal: Principal, niche: str, existing_brands: Iterable[str] = ()
    ) -> GenerationResult:
        niche = (niche or '').strip() if isinstance(niche, str) else ''
        if not niche:
            raise ValidationError("A 'niche' is required to generate suggestions.")

        desired = min(SINGLE_NICHE_BATCH, batch_target(enforce_quota(principal)))
        result = self.pipeline.generate(
            principal,
            desired_count=desired,
            niches=[niche],
            profile=self.profile_for(principal),
            existing_brands=existing_brands,
            event_type='ai.brands.suggested',
        )
        if not result.matches:
            result.message = "AI could not generate new suggestions for this niche."
        return result

    # ----- manual CRUD -----

    def create_manual(self, principal: Principal, data: dict) -> BrandMatch:
        brand_name = (data.get('brand_name') or data.get('brandName') or '').strip()
        fit_reason = (data.get('fit_reason') or data.get('fitReason') or '').strip()
        if not brand_name or not fit_reason:
            raise ValidationError('brand_name and fit_reason are required')

        raw_score = data.get('match_score', data.get('matchScore'))
        if raw_score is None:
            score = DEFAULT_MANUAL_SCORE
        else:
            try:
                score = int(raw_score)
            except (TypeError, ValueError):
                raise ValidationError('match_score must be a number between 0 and 100')
            if not 0 <= score <= 100:
                raise ValidationError('match_score must be a number between 0 and 100')

        with transaction.atomic():
            enforce_quota(principal, lock=True)
            key = normalize_brand_name(brand_name)
            if BrandMatch.objects.filter(user_id=principal.id, brand_name__iexact=key).exists():
                raise ConflictError(f"You already have a brand match for {brand_name}")

            match = BrandMatch.objects.create(
                user_id=principal.id,
                brand=Brand.objects.find_by_name(brand_name),
                source=data.get('source') or 'manual',
                brand_name=brand_name,
                fit_reason=fit_reason,
                outreach_draft=data.get('outreach_draft') or data.get('outreachDraft') or '',
                match_score=score,
                deal_type=data.get('deal_type') or data.get('dealType') or '',
                estimated_rate=str(data.get('estimated_rate') or data.get('estimatedRate') or ''),
                brand_country=data.get('brand_country') or data.get('brandCountry') or '',
                requires_shipping=coerce_flag(data.get('requires_shipping', data.get('requiresShipping', False))),
                brand_website=data.get('brand_website') or data.get('brandWebsite') or '',
                brand_email=data.get('brand_email') or data.get('brandEmail') or '',
            )
        logger.info("Manual brand match %s created for user %s", match.pk, principal.id)
        return match

    def list_matches(
        self,
        principal: Principal,
        status: Optional[str] = None,
        q: Optional[str] = None,
        page: int = 1,
        page_size: int = 20,
    ) -> dict:
        qs = BrandMatch.objects.filter(user_id=principal.id)
        if status:
            if status not in BrandMatch.Status.values:
                raise ValidationError(f"Unknown status '{status}'")
            qs = qs.filter(status=status)
        if q:
            qs = qs.filter(
                Q(brand_name__icontains=q) | Q(source__icontains=q) | Q(fit_reason__icontains=q)
            )

        page_size = max(1, min(int(page_size), MAX_PAGE_SIZE))
        paginator = Paginator(qs.order_by('-created_at'), page_size)
        page_obj = paginator.get_page(page)
        return {
            'items': [m.to_response() for m in page_obj.object_list],
            'total': paginator.count,
            'page': page_obj.number,
            'page_size': page_size,
            'total_pages': paginator.num_pages,
        }

    def update_status(self, principal: Principal, match_id, status: str) -> BrandMatch:
        if status not in BrandMatch.Status.values:
            raise ValidationError(
                f"Invalid status '{status}'",
                {'allowed': list(BrandMatch.Status.values)},
            )

        with transaction.atomic():
            match = get_owned(
                BrandMatch.objects.select_for_update(), principal, match_id, 'Brand match'
            )
            if match.status == BrandMatch.Status.COMPLETED:
                raise ValidationError('Completed brand matches cannot change status')

            previous = match.status
            match.status = status
            match.save(update_fields=['status', 'updated_at'])
            SystemEvent.objects.create(
                user_id=principal.id,
                type='brand_match.status_updated',
                metadata={'match_id': str(match.pk), 'from': previous, 'to': status},
            )
        return match
