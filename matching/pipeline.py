"""
Brand match generation pipeline.

Asks the suggestion generator for candidates, filters duplicates against the
creator's existing matches, scores them on the profile path, and persists the
best ones as draft BrandMatch rows. Attempts run sequentially because each one
extends the exclusion set used by the next.
"""

import logging
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Sequence

from django.conf import settings
from django.db import transaction

from core.exceptions import ExternalCollaboratorError
from core.models import SystemEvent
from core.principal import Principal

from .models import Brand, BrandMatch
from .quota import UNBOUNDED, enforce_quota
from .scoring import MIN_ACCEPTANCE_SCORE, score_candidate
from .suggestions import BrandCandidate, SuggestionGenerator, normalize_brand_name

logger = logging.getLogger(__name__)

NO_NEW_BRANDS_MESSAGE = (
    "All suggested brands are already in your matches. "
    "Try adding new niches for fresh suggestions."
)


@dataclass
class GenerationResult:
    """Outcome of one generation request."""
    matches: List[BrandMatch]
    target: int
    duplicates_filtered: int = 0
    below_threshold: int = 0
    attempts_used: int = 0
    niches: List[str] = field(default_factory=list)
    enhanced: bool = False
    message: str = ''

    def to_dict(self) -> dict:
        return {
            'message': self.message,
            'data': [m.to_response() for m in self.matches],
            'target': self.target,
            'count': len(self.matches),
            'duplicates_filtered': self.duplicates_filtered,
            'below_threshold': self.below_threshold,
            'attempts_used': self.attempts_used,
            'niches': self.niches,
            'enhanced': self.enhanced,
        }


class _NicheOverride:
    """A creator profile seen through a different list of top niches."""

    def __init__(self, profile, niches: Sequence[str]):
        self._profile = profile
        self.top_niches = list(niches)

    def __getattr__(self, name):
        return getattr(self._profile, name)


@dataclass
class _Scored:
    candidate: BrandCandidate
    score: int


class BrandMatchPipeline:
    """
    Generate, dedupe, score and persist BrandMatches for one creator.

    Usage:
        pipeline = BrandMatchPipeline()
        result = pipeline.generate(principal, desired_count=5, niches=['Gaming'], profile=profile)
    """

    def __init__(self, generator: Optional[SuggestionGenerator] = None, config: Optional[dict] = None):
        self.generator = generator or SuggestionGenerator()
        self.config = {**settings.BRAND_MATCH_CONFIG, **(config or {})}

    def build_exclusions(self, principal: Principal, existing_brands: Iterable[str] = ()) -> set:
        """Lowercased names of the creator's existing matches plus caller hints."""
        names = BrandMatch.objects.filter(user_id=principal.id).values_list('brand_name', flat=True)
        exclusions = {normalize_brand_name(n) for n in names}
        exclusions.update(
            normalize_brand_name(n) for n in existing_brands or () if isinstance(n, str)
        )
        exclusions.discard('')
        return exclusions

    def request_size(self, needed: int, cap: int) -> int:
        return max(needed, min(needed * 2, cap))

    def _fetch(self, request_count: int, niches: Sequence[str], profile, exclusions: set) -> List[BrandCandidate]:
        if profile is not None:
            return self.generator.suggest_for_profile(profile, request_count, exclusions, niches=niches)
        if len(niches) == 1:
            return self.generator.suggest_for_niche(niches[0], request_count, exclusions)
        per_niche = -(-request_count // max(len(niches), 1))
        return self.generator.suggest_for_niches(niches, per_niche, exclusions)

    def generate(
        self,
        principal: Principal,
        desired_count: int,
        niches: Sequence[str] = (),
        profile=None,
        existing_brands: Iterable[str] = (),
        max_attempts: Optional[int] = None,
        cap_per_request: Optional[int] = None,
        event_type: str = 'brand_match.generated',
        source: Optional[str] = None,
        threshold: Optional[int] = None,
    ) -> GenerationResult:
        """
        Run the attempt loop and persist the survivors.

        Args:
            principal: the creator the matches belong to
            desired_count: upper bound on matches persisted
            niches: niche names to generate for; override the profile's top niches
            profile: CreatorProfile; enables scoring and the acceptance threshold
            existing_brands: extra brand names to exclude
            event_type: SystemEvent type recorded for a non-empty batch
            source: BrandMatch.source for persisted rows (defaults per path)

        Returns:
            GenerationResult. An empty result is a normal outcome, not an error.
        """
        niches = [n for n in niches if n]
        if profile is not None and niches:
            profile = _NicheOverride(profile, niches)
        elif profile is None and not niches:
            raise ValueError('generate() needs niches or a profile')

        max_attempts = max_attempts or self.config['max_attempts']
        cap = cap_per_request or self.config['cap_per_request']
        threshold = MIN_ACCEPTANCE_SCORE if threshold is None else threshold
        min_survival = self.config['min_survival_rate']
        good_enough = self.config['good_enough_ratio']
        enhanced = profile is not None

        exclusions = self.build_exclusions(principal, existing_brands)
        accepted: List[_Scored] = []
        duplicates = below = attempts = 0

        while len(accepted) < desired_count and attempts < max_attempts:
            attempts += 1
            needed = desired_count - len(accepted)
            request_count = self.request_size(needed, cap)

            try:
                batch = self._fetch(request_count, niches, profile, exclusions)
            except ExternalCollaboratorError as e:
                logger.warning(
                    "Suggestion attempt %d/%d for user %s failed: %s",
                    attempts, max_attempts, principal.id, e,
                )
                continue

            survivors = 0
            for candidate in batch:
                key = candidate.key
                if key in exclusions:
                    duplicates += 1
                    continue
                exclusions.add(key)

                if enhanced:
                    score = score_candidate(candidate, profile).total
                    if score < threshold:
                        below += 1
                        continue
                else:
                    score = candidate.match_score
                accepted.append(_Scored(candidate, score))
                survivors += 1

            logger.info(
                "Attempt %d for user %s: requested %d, got %d, kept %d",
                attempts, principal.id, request_count, len(batch), survivors,
            )

            if survivors < request_count * min_survival:
                break
            if len(accepted) >= desired_count * good_enough:
                break

        accepted.sort(key=lambda s: s.score, reverse=True)
        accepted = accepted[:desired_count]

        result = GenerationResult(
            matches=[],
            target=desired_count,
            duplicates_filtered=duplicates,
            below_threshold=below,
            attempts_used=attempts,
            niches=list(niches) or list(getattr(profile, 'top_niches', []) or []),
            enhanced=enhanced,
        )

        if not accepted:
            result.message = NO_NEW_BRANDS_MESSAGE
            return result

        default_source = source or ('creator_ai_enhanced' if enhanced else 'ai_suggestion')
        result.matches = self._persist(principal, accepted, default_source, event_type, result)
        result.message = self._summary(result) if result.matches else NO_NEW_BRANDS_MESSAGE
        return result

    def _persist(self, principal, accepted, default_source, event_type, result) -> List[BrandMatch]:
        with transaction.atomic():
            remaining = enforce_quota(principal, lock=True)

            # Names may have been added since the exclusion set was built
            taken = self.build_exclusions(principal)
            fresh = [s for s in accepted if s.candidate.key not in taken]
            if len(fresh) < len(accepted):
                logger.info(
                    "Dropped %d brands for user %s already added by another request",
                    len(accepted) - len(fresh), principal.id,
                )
                result.duplicates_filtered += len(accepted) - len(fresh)
                accepted = fresh
            if not accepted:
                return []

            if remaining is not UNBOUNDED and len(accepted) > remaining:
                logger.info(
                    "Trimming batch for user %s from %d to %d after quota re-check",
                    principal.id, len(accepted), remaining,
                )
                accepted = accepted[:remaining]

            created = []
            for scored in accepted:
                c = scored.candidate
                created.append(BrandMatch.objects.create(
                    user_id=principal.id,
                    brand=Brand.objects.find_by_name(c.brand_name),
                    source=(c.source_niche if not result.enhanced and c.source_niche else default_source),
                    brand_name=c.brand_name,
                    fit_reason=c.fit_reason,
                    outreach_draft=c.outreach_draft,
                    status=BrandMatch.Status.DRAFT,
                    match_score=scored.score,
                    deal_type=c.deal_type,
                    estimated_rate=c.estimated_rate,
                    brand_country=c.brand_country,
                    requires_shipping=c.requires_shipping,
                    brand_website=c.brand_website,
                    brand_email=c.brand_email,
                ))

            SystemEvent.objects.create(
                user_id=principal.id,
                type=event_type,
                metadata={
                    'niches': result.niches,
                    'target': result.target,
                    'count': len(created),
                    'duplicates_filtered': result.duplicates_filtered,
                    'below_threshold': result.below_threshold,
                    'attempts_used': result.attempts_used,
                    'enhanced': result.enhanced,
                },
            )
        logger.info("Created %d brand matches for user %s (%s)", len(created), principal.id, event_type)
        return created

    @staticmethod
    def _summary(result: GenerationResult) -> str:
        count = len(result.matches)
        message = f"Generated {count} new brand match{'es' if count != 1 else ''}"
        if result.enhanced:
            message += " using your creator profile"
        if count < result.target:
            message += f" ({result.target - count} fewer than requested due to limited unique options)"
        message += "."
        if result.duplicates_filtered:
            message += f" {result.duplicates_filtered} duplicates were filtered out."
        return message
