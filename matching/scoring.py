"""
Profile-aware scoring for brand suggestions.

Five components, each already carrying its weight in points:

    geo (35) + niche (25) + deal type (15) + language/currency (15) + rate fit (10)

The total is clamped to 0-100. Candidates below MIN_ACCEPTANCE_SCORE are
dropped on the profile path of the generation pipeline.
"""

import re
from dataclasses import dataclass, asdict
from typing import Iterable, Optional

from django.conf import settings

MIN_ACCEPTANCE_SCORE = settings.BRAND_MATCH_CONFIG['min_acceptance_score']

COUNTRY_CODES = {
    'united states': 'USA',
    'united states of america': 'USA',
    'us': 'USA',
    'canada': 'CAN',
    'mexico': 'MEX',
    'united kingdom': 'GBR',
    'uk': 'GBR',
    'germany': 'DEU',
    'france': 'FRA',
    'spain': 'ESP',
    'italy': 'ITA',
    'netherlands': 'NLD',
    'sweden': 'SWE',
    'norway': 'NOR',
    'denmark': 'DNK',
    'japan': 'JPN',
    'south korea': 'KOR',
    'singapore': 'SGP',
    'australia': 'AUS',
    'brazil': 'BRA',
    'argentina': 'ARG',
    'chile': 'CHL',
    'india': 'IND',
    'pakistan': 'PAK',
    'bangladesh': 'BGD',
    'south africa': 'ZAF',
    'uae': 'ARE',
    'united arab emirates': 'ARE',
    'saudi arabia': 'SAU',
    'turkey': 'TUR',
    'russia': 'RUS',
    'china': 'CHN',
}

# Turkey and Mexico sit in two regions each.
REGIONS = {
    'North America': {'USA', 'CAN', 'MEX'},
    'Europe': {'GBR', 'DEU', 'FRA', 'ESP', 'ITA', 'NLD', 'SWE', 'NOR', 'DNK', 'TUR', 'RUS'},
    'Asia Pacific': {'JPN', 'KOR', 'SGP', 'AUS', 'CHN'},
    'South Asia': {'IND', 'PAK', 'BGD'},
    'Middle East': {'ARE', 'SAU', 'TUR'},
    'Latin America': {'BRA', 'MEX', 'ARG', 'CHL'},
    'Africa': {'ZAF'},
}

COMMON_NICHES = ['Technology', 'Gaming', 'Beauty', 'Fashion', 'Fitness', 'Food', 'Travel', 'Lifestyle']

RELATED_NICHES = {
    'technology': ['Gaming', 'Gadgets', 'Electronics'],
    'gaming': ['Technology', 'Entertainment'],
    'beauty': ['Fashion', 'Lifestyle', 'Wellness'],
    'fashion': ['Beauty', 'Lifestyle'],
    'fitness': ['Health', 'Wellness', 'Sports'],
    'food': ['Lifestyle', 'Health'],
}

DEAL_TYPE_COMPATIBILITY = {
    'sponsored posts': ['Content Creation', 'Flat Fee'],
    'affiliate': ['Affiliate Marketing', 'Rev-Share'],
    'product reviews': ['Gifted', 'Content Creation'],
    'brand ambassadorship': ['Flat Fee', 'Affiliate'],
}

CURRENCY_SYMBOLS = {
    'USD': '$',
    'EUR': '€',
    'GBP': '£',
    'JPY': '¥',
    'INR': '₹',
    'KRW': '₩',
    'BRL': 'R$',
}

_AMOUNT_RE = re.compile(r'[\d,]+')


@dataclass
class ScoreBreakdown:
    """Points per component plus the clamped total."""
    geo: int
    niche: int
    deal_type: int
    language_currency: int
    rate_fit: int
    total: int

    def to_dict(self) -> dict:
        return asdict(self)


def normalize_country(value: Optional[str]) -> str:
    """Map a country name or code to its ISO-3 code where known."""
    if not value:
        return ''
    cleaned = value.strip()
    return COUNTRY_CODES.get(cleaned.lower(), cleaned.upper())


def _lower_set(values: Iterable[str]) -> set:
    return {v.strip().lower() for v in values or [] if isinstance(v, str) and v.strip()}


def same_region(a: str, b: str) -> bool:
    return any(a in members and b in members for members in REGIONS.values())


def geo_score(candidate, profile) -> int:
    brand_code = normalize_country(candidate.brand_country)
    creator_code = normalize_country(profile.country)
    if brand_code and brand_code == creator_code:
        return 35
    if brand_code and creator_code and same_region(brand_code, creator_code):
        return 25
    if profile.accepts_international_brands:
        return 15
    return 5


def extract_brand_niche(candidate) -> str:
    """Candidate category if given, else the first common niche named in the fit reason."""
    if candidate.category:
        return candidate.category.strip()
    reason = (candidate.fit_reason or '').lower()
    for niche in COMMON_NICHES:
        if niche.lower() in reason:
            return niche
    return 'General'


def niche_score(candidate, profile) -> int:
    brand_niche = extract_brand_niche(candidate).lower()
    top_niches = _lower_set(profile.top_niches)
    categories = _lower_set(profile.brand_categories)

    if brand_niche in top_niches:
        return 25

    if any(brand_niche in c or c in brand_niche for c in categories):
        return 20
    for niche in top_niches:
        if brand_niche in _lower_set(RELATED_NICHES.get(niche, [])):
            return 20

    reason = (candidate.fit_reason or '').lower()
    if any(term in reason for term in top_niches | categories):
        return 10
    return 0


def deal_type_score(candidate, profile) -> int:
    deal_type = (candidate.deal_type or '').strip().lower()
    if not deal_type:
        return 0
    preferred = _lower_set(profile.deal_types)
    if deal_type in preferred:
        return 15
    compatible = _lower_set(DEAL_TYPE_COMPATIBILITY.get(deal_type, []))
    if compatible & preferred:
        return 10
    return 0


def _creator_languages(profile) -> set:
    languages = getattr(profile, 'languages', None)
    if languages is None:
        languages = list(profile.primary_languages or []) + list(profile.content_languages or [])
    return _lower_set(languages)


def _language_reflected(candidate, profile) -> bool:
    if candidate.language:
        return candidate.language.strip().lower() in _creator_languages(profile)
    brand_code = normalize_country(candidate.brand_country)
    return bool(brand_code) and brand_code == normalize_country(profile.country)


def _currency_reflected(candidate, profile) -> bool:
    rate = candidate.estimated_rate or ''
    currency = (profile.preferred_currency or '').upper()
    if not rate or not currency:
        return False
    if currency in rate.upper():
        return True
    symbol = CURRENCY_SYMBOLS.get(currency)
    return bool(symbol) and symbol in rate


def language_currency_score(candidate, profile) -> int:
    language = _language_reflected(candidate, profile)
    currency = _currency_reflected(candidate, profile)
    if language and currency:
        return 15
    if language or currency:
        return 10
    if profile.accepts_international_brands:
        return 5
    return 0


def parse_rate_amount(rate: Optional[str]) -> Optional[int]:
    """First run of digits (commas allowed) in a free-text rate."""
    if not rate:
        return None
    match = _AMOUNT_RE.search(rate)
    if not match:
        return None
    digits = match.group(0).replace(',', '')
    return int(digits) if digits else None


def minimum_rate_for(profile) -> Optional[float]:
    platforms = profile.primary_platforms or []
    rates = profile.minimum_rates or {}
    if not platforms or not rates:
        return None
    minimum = rates.get(platforms[0])
    try:
        return float(minimum) if minimum else None
    except (TypeError, ValueError):
        return None


def rate_fit_score(candidate, profile) -> int:
    minimum = minimum_rate_for(profile)
    if minimum is None:
        return 8
    amount = parse_rate_amount(candidate.estimated_rate)
    if amount is None:
        return 0
    if amount >= minimum * 1.2:
        return 10
    if amount >= minimum:
        return 8
    if amount >= minimum * 0.8:
        return 5
    return 0


def score_candidate(candidate, profile) -> ScoreBreakdown:
    """
    Score one validated candidate against a creator profile.

    Args:
        candidate: a matching.suggestions.BrandCandidate
        profile: a CreatorProfile (or any object with the same attributes)

    Returns:
        ScoreBreakdown with a total in [0, 100]
    """
    geo = geo_score(candidate, profile)
    niche = niche_score(candidate, profile)
    deal_type = deal_type_score(candidate, profile)
    language_currency = language_currency_score(candidate, profile)
    rate_fit = rate_fit_score(candidate, profile)
    total = geo + niche + deal_type + language_currency + rate_fit
    return ScoreBreakdown(
        geo=geo,
        niche=niche,
        deal_type=deal_type,
        language_currency=language_currency,
        rate_fit=rate_fit,
        total=max(0, min(100, total)),
    )
