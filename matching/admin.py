from django.contrib import admin

from .models import Brand, BrandMatch, CreatorProfile, Niche


@admin.register(Niche)
class NicheAdmin(admin.ModelAdmin):
    list_display = ['name', 'created_at']
    search_fields = ['name']
    filter_horizontal = ['users']


@admin.register(CreatorProfile)
class CreatorProfileAdmin(admin.ModelAdmin):
    list_display = ['user', 'country', 'preferred_currency', 'accepts_international_brands',
                    'onboarding_completed', 'updated_at']
    list_filter = ['onboarding_completed', 'accepts_international_brands', 'shipping_preference']
    search_fields = ['user__email', 'user__username', 'country']
    readonly_fields = ['created_at', 'updated_at']


@admin.register(Brand)
class BrandAdmin(admin.ModelAdmin):
    list_display = ['name', 'industry', 'category', 'company_size', 'location', 'is_active']
    list_filter = ['is_active', 'company_size', 'industry']
    search_fields = ['name', 'industry', 'category']
    readonly_fields = ['created_at', 'updated_at']


@admin.register(BrandMatch)
class BrandMatchAdmin(admin.ModelAdmin):
    list_display = ['brand_name', 'user', 'status', 'match_score', 'source', 'created_at']
    list_filter = ['status', 'source']
    search_fields = ['brand_name', 'user__email', 'fit_reason']
    raw_id_fields = ['user', 'brand']
    readonly_fields = ['created_at', 'updated_at']
    actions = ['mark_contacted']

    def get_readonly_fields(self, request, obj=None):
        if obj is not None and obj.status == BrandMatch.Status.COMPLETED:
            return [f.name for f in obj._meta.fields]
        return super().get_readonly_fields(request, obj)

    def mark_contacted(self, request, queryset):
        updated = queryset.exclude(status=BrandMatch.Status.COMPLETED).update(
            status=BrandMatch.Status.CONTACTED
        )
        self.message_user(request, f'Marked {updated} matches as contacted.')
    mark_contacted.short_description = 'Mark selected matches as contacted'
