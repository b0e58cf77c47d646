import uuid

from django.conf import settings
from django.core.exceptions import ValidationError as DjangoValidationError
from django.core.validators import MinValueValidator, MaxValueValidator
from django.db import IntegrityError, models, transaction
from django.db.models.functions import Lower


class Niche(models.Model):
    """
    A content niche a creator works in (Gaming, Beauty, ...).
    Drives the niche-based brand suggestion routes.
    """

    name = models.CharField(max_length=100, unique=True)
    users = models.ManyToManyField(
        settings.AUTH_USER_MODEL,
        related_name='niches',
        blank=True,
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['name']
        verbose_name = 'Niche'
        verbose_name_plural = 'Niches'

    def __str__(self):
        return self.name

    def to_response(self):
        return {'id': self.pk, 'name': self.name}


class CreatorProfile(models.Model):
    """
    Onboarding answers for one creator. Read by the scoring pipeline;
    superseded by updates, never deleted.
    """

    class ShippingPreference(models.TextChoices):
        DIGITAL_ONLY = 'digital_only', 'Digital only'
        DOMESTIC = 'domestic_shipping', 'Domestic shipping'
        INTERNATIONAL = 'international_shipping', 'International shipping'

    MAX_TOP_NICHES = 3

    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='creator_profile',
    )
    country = models.CharField(max_length=100, help_text='ISO-3 code or country name')
    timezone = models.CharField(max_length=64, blank=True)
    primary_languages = models.JSONField(default=list, blank=True)
    content_languages = models.JSONField(default=list, blank=True)
    primary_platforms = models.JSONField(default=list, blank=True)
    audience_sizes = models.JSONField(
        default=dict,
        blank=True,
        help_text='Platform -> audience size bucket',
    )
    average_views = models.JSONField(
        default=dict,
        blank=True,
        help_text='Platform -> average view bucket',
    )
    top_niches = models.JSONField(default=list, help_text='1-3 niches, highest priority first')
    brand_categories = models.JSONField(default=list, blank=True)
    deal_types = models.JSONField(default=list, blank=True)
    minimum_rates = models.JSONField(
        default=dict,
        blank=True,
        help_text='Platform -> minimum rate in preferred currency',
    )
    preferred_currency = models.CharField(max_length=3, default='USD')
    accepts_international_brands = models.BooleanField(default=True)
    shipping_preference = models.CharField(
        max_length=30,
        choices=ShippingPreference.choices,
        default=ShippingPreference.DIGITAL_ONLY,
    )
    onboarding_completed = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = 'Creator Profile'
        verbose_name_plural = 'Creator Profiles'

    def __str__(self):
        return f"Profile for {self.user}"

    def clean(self):
        niches = self.top_niches or []
        if not 1 <= len(niches) <= self.MAX_TOP_NICHES:
            raise DjangoValidationError({
                'top_niches': f'Choose between 1 and {self.MAX_TOP_NICHES} top niches.'
            })

    @property
    def languages(self):
        """Primary then content languages, de-duplicated, order kept."""
        seen = []
        for lang in list(self.primary_languages or []) + list(self.content_languages or []):
            if lang and lang not in seen:
                seen.append(lang)
        return seen

    def to_response(self):
        return {
            'country': self.country,
            'timezone': self.timezone,
            'primary_languages': self.primary_languages,
            'content_languages': self.content_languages,
            'primary_platforms': self.primary_platforms,
            'audience_sizes': self.audience_sizes,
            'average_views': self.average_views,
            'top_niches': self.top_niches,
            'brand_categories': self.brand_categories,
            'deal_types': self.deal_types,
            'minimum_rates': self.minimum_rates,
            'preferred_currency': self.preferred_currency,
            'accepts_international_brands': self.accepts_international_brands,
            'shipping_preference': self.shipping_preference,
            'onboarding_completed': self.onboarding_completed,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
        }


class BrandManager(models.Manager):

    def find_by_name(self, name):
        return self.filter(name__iexact=name.strip()).first()

    def find_or_create_by_name(self, name, **defaults):
        """
        Case-insensitive get-or-create. A concurrent insert of the same name
        trips the Lower(name) constraint; the existing row is returned.
        """
        name = name.strip()
        existing = self.find_by_name(name)
        if existing:
            return existing, False
        try:
            with transaction.atomic():
                return self.create(name=name, **defaults), True
        except IntegrityError:
            existing = self.find_by_name(name)
            if existing is None:
                raise
            return existing, False


class Brand(models.Model):
    """
    Canonical brand directory entry, shared across creators.
    """

    class CompanySize(models.TextChoices):
        STARTUP = 'startup', 'Startup'
        SMALL = 'small', 'Small'
        MEDIUM = 'medium', 'Medium'
        LARGE = 'large', 'Large'
        ENTERPRISE = 'enterprise', 'Enterprise'

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    website = models.URLField(max_length=500, blank=True)
    industry = models.CharField(max_length=100, blank=True)
    category = models.CharField(max_length=100, blank=True)
    tags = models.JSONField(default=list, blank=True)
    social_media = models.JSONField(default=dict, blank=True)
    contact_info = models.JSONField(
        default=dict,
        blank=True,
        help_text='{"contactPerson": ..., "email": ..., "phone": ...}',
    )
    company_size = models.CharField(
        max_length=20,
        choices=CompanySize.choices,
        blank=True,
    )
    location = models.CharField(max_length=255, blank=True)
    target_audience = models.TextField(blank=True)
    preferred_content_types = models.JSONField(default=list, blank=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = BrandManager()

    class Meta:
        ordering = ['name']
        verbose_name = 'Brand'
        verbose_name_plural = 'Brands'
        constraints = [
            models.UniqueConstraint(Lower('name'), name='matching_brand_name_ci_unique'),
        ]

    def __str__(self):
        return self.name

    @property
    def contact_email(self):
        return (self.contact_info or {}).get('email') or ''

    @property
    def contact_name(self):
        return (self.contact_info or {}).get('contactPerson') or ''


class BrandMatch(models.Model):
    """
    A suggested or accepted brand pairing for one creator.
    Scores are 0-100; status is frozen once the match is completed.
    """

    class Status(models.TextChoices):
        DRAFT = 'draft', 'Draft'
        SENT = 'sent', 'Sent'
        CONTACTED = 'contacted', 'Contacted'
        INTERESTED = 'interested', 'Interested'
        ACCEPTED = 'accepted', 'Accepted'
        REJECTED = 'rejected', 'Rejected'
        COMPLETED = 'completed', 'Completed'

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='brand_matches',
    )
    brand = models.ForeignKey(
        Brand,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='brand_matches',
    )
    source = models.CharField(max_length=100, default='manual')
    brand_name = models.CharField(max_length=255)
    fit_reason = models.TextField(blank=True)
    outreach_draft = models.TextField(blank=True)
    status = models.CharField(
        max_length=20,
        choices=Status.choices,
        default=Status.DRAFT,
    )
    match_score = models.PositiveSmallIntegerField(
        default=0,
        validators=[MinValueValidator(0), MaxValueValidator(100)],
    )
    deal_type = models.CharField(max_length=100, blank=True)
    estimated_rate = models.CharField(max_length=100, blank=True)
    brand_country = models.CharField(max_length=100, blank=True)
    requires_shipping = models.BooleanField(default=False)
    brand_website = models.CharField(max_length=500, blank=True)
    brand_email = models.CharField(max_length=255, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at']
        verbose_name = 'Brand Match'
        verbose_name_plural = 'Brand Matches'
        indexes = [
            models.Index(fields=['user', 'created_at'], name='matching_bm_user_created_idx'),
            models.Index(fields=['user', 'status'], name='matching_bm_user_status_idx'),
        ]

    def __str__(self):
        return f"{self.brand_name} -> {self.user} ({self.match_score})"

    def to_response(self):
        return {
            'id': str(self.id),
            'brand_id': str(self.brand_id) if self.brand_id else None,
            'brand_name': self.brand_name,
            'source': self.source,
            'fit_reason': self.fit_reason,
            'outreach_draft': self.outreach_draft,
            'status': self.status,
            'match_score': self.match_score,
            'deal_type': self.deal_type,
            'estimated_rate': self.estimated_rate,
            'brand_country': self.brand_country,
            'requires_shipping': self.requires_shipping,
            'brand_website': self.brand_website,
            'brand_email': self.brand_email,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }
