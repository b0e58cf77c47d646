"""
JSON endpoints for brand matches and AI brand suggestions.
"""

import logging

from django.http import HttpResponse, JsonResponse
from django.views import View

from core.exceptions import ValidationError
from core.views import JSONAPIMixin

from .onboarding import CreatorProfileService, NicheService
from .services import BrandMatchService

logger = logging.getLogger(__name__)


def _existing_brands(body: dict) -> list:
    brands = body.get('existingBrands', body.get('existing_brands', []))
    if brands is None:
        return []
    if not isinstance(brands, list) or not all(isinstance(b, str) for b in brands):
        raise ValidationError("'existingBrands' must be a list of brand names")
    return brands


class BrandMatchServiceMixin(JSONAPIMixin):

    def get_service(self) -> BrandMatchService:
        return BrandMatchService()


class BrandMatchListCreateView(BrandMatchServiceMixin, View):
    """GET: filtered, paginated list. POST: manual create."""

    def get(self, request):
        page_size = self.query_int('pageSize', self.query_int('page_size', 20))
        data = self.get_service().list_matches(
            self.principal,
            status=request.GET.get('status') or None,
            q=request.GET.get('q') or None,
            page=self.query_int('page', 1),
            page_size=page_size,
        )
        return JsonResponse(data)

    def post(self, request):
        match = self.get_service().create_manual(self.principal, self.parse_body())
        return JsonResponse(match.to_response(), status=201)


class BrandMatchStatusView(BrandMatchServiceMixin, View):

    def patch(self, request, pk):
        status = self.parse_body().get('status')
        if not status:
            raise ValidationError("'status' is required")
        match = self.get_service().update_status(self.principal, pk, status)
        return JsonResponse(match.to_response())


class SuggestBrandsView(BrandMatchServiceMixin, View):
    """Suggestions for one niche, persisted as draft matches."""

    def post(self, request):
        body = self.parse_body()
        result = self.get_service().suggest_for_niche(
            self.principal, body.get('niche'), _existing_brands(body)
        )
        return JsonResponse(result.to_dict(), status=201 if result.matches else 200)


class SuggestFromMyNichesView(BrandMatchServiceMixin, View):

    def post(self, request):
        body = self.parse_body()
        result = self.get_service().suggest_from_my_niches(self.principal, _existing_brands(body))
        return JsonResponse(result.to_dict(), status=201 if result.matches else 200)


class GenerateMonthlyBrandMatchesView(BrandMatchServiceMixin, View):

    def post(self, request):
        body = self.parse_body()
        result = self.get_service().generate_monthly(self.principal, _existing_brands(body))
        return JsonResponse(result.to_dict(), status=201 if result.matches else 200)


# ----- onboarding and niches -----

class CreatorProfileView(JSONAPIMixin, View):
    """GET: the caller's profile or null. POST: create or update it."""

    def get(self, request):
        profile = CreatorProfileService().get(self.principal)
        return JsonResponse({'data': profile.to_response() if profile else None})

    def post(self, request):
        profile = CreatorProfileService().upsert(self.principal, self.parse_body())
        return JsonResponse({
            'data': profile.to_response(),
            'message': 'Creator profile saved. Your top niches were added to your account.',
        })


class CompleteOnboardingView(JSONAPIMixin, View):

    def post(self, request):
        profile = CreatorProfileService().complete_onboarding(self.principal)
        return JsonResponse({
            'data': profile.to_response(),
            'message': 'Onboarding completed. Your niches are now available for brand matching.',
        })


class OnboardingStatusView(JSONAPIMixin, View):

    def get(self, request):
        return JsonResponse({'data': CreatorProfileService().onboarding_status(self.principal)})


class NicheListView(JSONAPIMixin, View):

    def get(self, request):
        data = NicheService().list_all(
            search=request.GET.get('search') or None,
            page=self.query_int('page', 1),
            page_size=self.query_int('limit', 50),
        )
        return JsonResponse(data)


class MyNichesView(JSONAPIMixin, View):
    """GET: the caller's niches. POST: add one by name."""

    def get(self, request):
        niches = NicheService().list_mine(self.principal)
        return JsonResponse({'items': [n.to_response() for n in niches]})

    def post(self, request):
        niche = NicheService().add_mine(self.principal, self.parse_body().get('name'))
        return JsonResponse(niche.to_response(), status=201)


class MyNicheDetailView(JSONAPIMixin, View):

    def delete(self, request, pk):
        NicheService().remove_mine(self.principal, pk)
        return HttpResponse(status=204)
