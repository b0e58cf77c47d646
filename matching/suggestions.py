"""
Brand suggestion collaborator.

Provides:
  - BrandCandidate: validated shape of one suggested brand
  - parse_candidates(): best-effort structured parse of raw model output
  - SuggestionGenerator: OpenAI chat completions with tenacity retry

Nothing past this module sees raw model text. The pipeline only ever gets a
list of BrandCandidate (possibly empty) or an ExternalCollaboratorError.
"""

import json
import logging
import re
from typing import Iterable, List, Optional, Sequence

import openai
from django.conf import settings
from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationError as PydanticValidationError,
    field_validator,
)
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
    before_sleep_log,
)

from core.exceptions import ExternalCollaboratorError

logger = logging.getLogger(__name__)

DEFAULT_SUGGESTED_SCORE = 70


# ────────────────────────────────────────────────────────────────
# Candidate schema
# ────────────────────────────────────────────────────────────────

class BrandCandidate(BaseModel):
    """One brand suggested by the provider, coerced to a strict shape."""

    model_config = ConfigDict(extra='ignore', str_strip_whitespace=True)

    brand_name: str = Field(
        min_length=1,
        max_length=255,
        validation_alias=AliasChoices('brandName', 'brand_name', 'name'),
    )
    fit_reason: str = Field(default='', validation_alias=AliasChoices('fitReason', 'fit_reason', 'description'))
    outreach_draft: str = Field(default='', validation_alias=AliasChoices('outreachDraft', 'outreach_draft'))
    match_score: int = Field(default=DEFAULT_SUGGESTED_SCORE, validation_alias=AliasChoices('matchScore', 'match_score'))
    deal_type: str = Field(default='', validation_alias=AliasChoices('dealType', 'deal_type'))
    estimated_rate: str = Field(default='', validation_alias=AliasChoices('estimatedRate', 'estimated_rate'))
    brand_country: str = Field(default='', validation_alias=AliasChoices('brandCountry', 'brand_country'))
    requires_shipping: bool = Field(default=False, validation_alias=AliasChoices('requiresShipping', 'requires_shipping'))
    brand_website: str = Field(default='', validation_alias=AliasChoices('brandWebsite', 'brand_website'))
    brand_email: str = Field(default='', validation_alias=AliasChoices('brandEmail', 'brand_email'))
    category: Optional[str] = Field(default=None, validation_alias=AliasChoices('category', 'niche'))
    language: Optional[str] = None
    source_niche: Optional[str] = Field(default=None, validation_alias=AliasChoices('sourceNiche', 'source_niche'))

    @field_validator('brand_name', mode='before')
    @classmethod
    def require_name(cls, v):
        if not isinstance(v, str):
            raise ValueError('brand name must be a string')
        return v

    @field_validator(
        'fit_reason', 'outreach_draft', 'deal_type', 'estimated_rate',
        'brand_country', 'brand_website', 'brand_email',
        mode='before',
    )
    @classmethod
    def coerce_text(cls, v):
        if v is None:
            return ''
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            return str(v)
        return v

    @field_validator('match_score', mode='before')
    @classmethod
    def coerce_score(cls, v):
        if v is None or v == '':
            return DEFAULT_SUGGESTED_SCORE
        try:
            score = float(v)
        except (TypeError, ValueError):
            return DEFAULT_SUGGESTED_SCORE
        # Some responses use a 0-1 scale.
        if 0 < score <= 1:
            score *= 100
        return int(round(max(0.0, min(100.0, score))))

    @field_validator('requires_shipping', mode='before')
    @classmethod
    def coerce_shipping(cls, v):
        return coerce_flag(v)

    @property
    def key(self) -> str:
        """Duplicate-detection key: trimmed, lowercased name."""
        return normalize_brand_name(self.brand_name)


def normalize_brand_name(name: str) -> str:
    return (name or '').strip().lower()


def coerce_flag(value) -> bool:
    """Loose boolean: "true", "yes" and "1" strings count; "false" does not."""
    if isinstance(value, str):
        return value.strip().lower() in ('true', 'yes', '1')
    return bool(value)


# ────────────────────────────────────────────────────────────────
# Best-effort structured parse
# ────────────────────────────────────────────────────────────────

_FENCE_RE = re.compile(r'```(?:json)?\s*([\s\S]*?)\s*```')
_OBJECT_RE = re.compile(r'\{[^{}]*\}')


def _try_json(text: str):
    try:
        return json.loads(text)
    except (json.JSONDecodeError, ValueError):
        return None


def _as_items(data) -> Optional[list]:
    if isinstance(data, list):
        return data
    if isinstance(data, dict):
        # {"brands": [...]} style wrappers
        for value in data.values():
            if isinstance(value, list):
                return value
        return [data]
    return None


def _extract_items(raw: str) -> list:
    text = raw.strip()

    items = _as_items(_try_json(text))
    if items is not None:
        return items

    fenced = _FENCE_RE.search(text)
    if fenced:
        items = _as_items(_try_json(fenced.group(1)))
        if items is not None:
            return items

    start, end = text.find('['), text.rfind(']')
    if start != -1 and end > start:
        items = _as_items(_try_json(text[start:end + 1]))
        if items is not None:
            return items

    salvaged = []
    for chunk in _OBJECT_RE.findall(text):
        obj = _try_json(chunk)
        if isinstance(obj, dict):
            salvaged.append(obj)
    if salvaged:
        logger.info("Salvaged %d objects from malformed suggestion output", len(salvaged))
    return salvaged


def parse_candidates(raw: Optional[str]) -> List[BrandCandidate]:
    """
    Turn raw provider text into validated candidates.

    Tries, in order: the whole text as JSON, a fenced code block, the
    outermost [...] span, then individual {...} objects. Entries that fail
    validation are dropped.
    """
    if not raw or not raw.strip():
        return []

    candidates = []
    dropped = 0
    for item in _extract_items(raw):
        if not isinstance(item, dict):
            dropped += 1
            continue
        try:
            candidates.append(BrandCandidate.model_validate(item))
        except PydanticValidationError as e:
            dropped += 1
            logger.debug("Dropped malformed candidate %r: %s", item, e)
    if dropped:
        logger.warning("Dropped %d malformed suggestion entries", dropped)
    return candidates


# ────────────────────────────────────────────────────────────────
# OpenAI-backed generator
# ────────────────────────────────────────────────────────────────

RETRYABLE_ERRORS = (
    openai.RateLimitError,
    openai.APIConnectionError,
    openai.InternalServerError,
)

NICHE_SYSTEM_PROMPT = (
    "You generate brand partnership suggestions for content creators. "
    "Always respond with a valid JSON array only."
)

PROFILE_SYSTEM_PROMPT = (
    "You are a brand partnership specialist for creator marketing. Respond with "
    "ONLY a valid JSON array: no markdown, no commentary, just JSON starting "
    "with [ and ending with ]."
)


def _exclusion_text(exclusions: Sequence[str]) -> str:
    if not exclusions:
        return ''
    return (
        "\n\nIMPORTANT: The creator already has these brands. Do NOT suggest any of them:\n"
        + ', '.join(exclusions)
    )


def build_niche_prompt(niche: str, count: int, exclusions: Sequence[str] = ()) -> str:
    return f"""Suggest {count} real brands that partner with content creators in the "{niche}" niche.{_exclusion_text(exclusions)}

For each brand return an object with:
- brandName: the brand's actual name
- fitReason: 2-3 sentences on why the brand suits {niche} creators
- outreachDraft: a 100-150 word outreach message that leads with what the brand does, ties {niche} content to its market, and proposes mutual benefit
- matchScore: fit from 1 to 100
- category: the brand's main category

Prefer brands known to work with creators, mixing large and niche companies. Avoid controversial brands.

Return ONLY a JSON array of exactly {count} objects."""


def build_profile_prompt(profile, count: int, exclusions: Sequence[str] = (), niches: Sequence[str] = ()) -> str:
    top_niches = list(niches) or list(profile.top_niches or [])
    content_languages = ', '.join(profile.content_languages or []) or 'Same as primary'
    return f"""Suggest {count} brand partnership opportunities for this creator.

Creator profile:
- Location: {profile.country} ({profile.timezone or 'timezone unknown'})
- Primary languages: {', '.join(profile.primary_languages or [])}
- Content languages: {content_languages}
- Platforms: {', '.join(profile.primary_platforms or [])}
- Audience sizes: {json.dumps(profile.audience_sizes or {})}
- Average views: {json.dumps(profile.average_views or {})}
- Top niches: {', '.join(top_niches)}
- Brand categories of interest: {', '.join(profile.brand_categories or [])}
- Preferred deal types: {', '.join(profile.deal_types or [])}
- Minimum rates: {json.dumps(profile.minimum_rates or {})}
- Currency: {profile.preferred_currency}
- Accepts international brands: {profile.accepts_international_brands}
- Shipping preference: {profile.shipping_preference}{_exclusion_text(exclusions)}

Rank brands by geography first (same country, then same region, then international
only if accepted), then niche fit, deal type, language and currency, and rate fit.

For each brand return an object with:
- brandName, fitReason (cite the strongest matching factors), outreachDraft (150-200 words)
- matchScore (70-100), category, language (main language of the brand's campaigns)
- dealType (one of the creator's preferred types), estimatedRate (in {profile.preferred_currency})
- brandCountry (country name or ISO-3 code), requiresShipping (true/false)
- brandWebsite, brandEmail (a partnerships or marketing address)

Return ONLY a JSON array of exactly {count} objects."""


class SuggestionGenerator:
    """OpenAI-backed brand suggestion provider."""

    provider = 'openai'

    def __init__(self, api_key: str = None, model: str = None, base_url: str = None, client=None):
        ai_config = settings.AI_CONFIG
        self.api_key = settings.OPENAI_API_KEY if api_key is None else api_key
        self.base_url = base_url or settings.OPENAI_BASE_URL or None
        self.model = model or ai_config['model']
        self.temperature = ai_config['temperature']
        self.config = ai_config
        self._client = client

    def is_available(self) -> bool:
        return self._client is not None or bool(self.api_key)

    @property
    def client(self):
        if self._client is None:
            if not self.api_key:
                raise ExternalCollaboratorError(self.provider, 'OPENAI_API_KEY is not configured')
            # tenacity owns retries
            self._client = openai.OpenAI(api_key=self.api_key, base_url=self.base_url, max_retries=0)
        return self._client

    def suggest_for_niche(self, niche: str, count: int = 5, exclusions: Iterable[str] = ()) -> List[BrandCandidate]:
        if not niche or not isinstance(niche, str):
            raise ValueError('niche must be a non-empty string')
        prompt = build_niche_prompt(niche, count, sorted(exclusions))
        raw = self._complete(
            NICHE_SYSTEM_PROMPT,
            prompt,
            max_tokens=self.config['niche_max_tokens'],
            timeout=self.config['niche_timeout'],
        )
        candidates = parse_candidates(raw)
        for candidate in candidates:
            if not candidate.source_niche:
                candidate.source_niche = niche
        return candidates

    def suggest_for_niches(
        self, niches: Sequence[str], per_niche: int = 3, exclusions: Iterable[str] = ()
    ) -> List[BrandCandidate]:
        """
        One request per niche, sequentially. A failing niche is skipped;
        if every niche fails the last error is raised.
        """
        exclusions = sorted(exclusions)
        results = []
        last_error = None
        for niche in niches:
            try:
                results.extend(self.suggest_for_niche(niche, per_niche, exclusions))
            except ExternalCollaboratorError as e:
                logger.warning("Suggestions for niche %r failed: %s", niche, e)
                last_error = e
        if not results and last_error is not None:
            raise last_error
        return results

    def suggest_for_profile(
        self, profile, count: int = 10, exclusions: Iterable[str] = (), niches: Sequence[str] = ()
    ) -> List[BrandCandidate]:
        prompt = build_profile_prompt(profile, count, sorted(exclusions), niches)
        raw = self._complete(
            PROFILE_SYSTEM_PROMPT,
            prompt,
            max_tokens=self.config['profile_max_tokens'],
            timeout=self.config['profile_timeout'],
        )
        return parse_candidates(raw)

    def _complete(self, system: str, prompt: str, max_tokens: int, timeout: float) -> str:
        try:
            response = self._create(system, prompt, max_tokens, timeout)
        except openai.OpenAIError as e:
            logger.error("OpenAI suggestion call failed: %s", e)
            raise ExternalCollaboratorError(self.provider, str(e) or type(e).__name__) from e

        content = None
        if response.choices:
            content = response.choices[0].message.content
        if not content:
            raise ExternalCollaboratorError(self.provider, 'empty response')
        return content

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=30),
        retry=retry_if_exception_type(RETRYABLE_ERRORS),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )
    def _create(self, system: str, prompt: str, max_tokens: int, timeout: float):
        return self.client.chat.completions.create(
            model=self.model,
            temperature=self.temperature,
            max_tokens=max_tokens,
            timeout=timeout,
            messages=[
                {'role': 'system', 'content': system},
                {'role': 'user', 'content': prompt},
            ],
        )
