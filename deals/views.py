"""
JSON endpoints for the deal lifecycle and invoice callbacks.
"""

import logging

from django.http import JsonResponse
from django.views import View

from core.exceptions import ValidationError
from core.views import JSONAPIMixin

from .services import DealLifecycleService

logger = logging.getLogger(__name__)


class DealServiceMixin(JSONAPIMixin):

    def get_service(self) -> DealLifecycleService:
        return DealLifecycleService()


class DealListCreateView(DealServiceMixin, View):

    def get(self, request):
        data = self.get_service().list(
            self.principal,
            status=request.GET.get('status') or None,
            cursor=request.GET.get('cursor') or None,
            page=self.query_int('page', 1),
            limit=self.query_int('limit', 10),
        )
        return JsonResponse({
            'items': [deal.to_response() for deal in data['items']],
            'next_cursor': data['next_cursor'],
        })

    def post(self, request):
        body = self.parse_body()
        deal = self.get_service().create(
            self.principal,
            title=body.get('title'),
            brand_id=body.get('brand_id'),
            brand_name=body.get('brand_name'),
            contact_name=body.get('contact_name'),
            contact_email=body.get('contact_email'),
            proposed_amount=body.get('proposed_amount'),
        )
        return JsonResponse(deal.to_response(), status=201)


class DealDetailView(DealServiceMixin, View):

    def get(self, request, pk):
        return JsonResponse(self.get_service().get(self.principal, pk).to_response())


class DealTransitionView(DealServiceMixin, View):

    def post(self, request, pk):
        body = self.parse_body()
        if not body.get('to'):
            raise ValidationError("'to' is required")
        deal = self.get_service().transition(self.principal, pk, body['to'], body.get('notes'))
        return JsonResponse(deal.to_response())


class MarkNegotiationView(DealServiceMixin, View):

    def post(self, request, pk):
        deal = self.get_service().mark_negotiation(self.principal, pk)
        return JsonResponse(deal.to_response())


class LockAgreementView(DealServiceMixin, View):
    """Snapshot the negotiated terms; response carries an invoice draft pointer."""

    def post(self, request, pk):
        body = self.parse_body()
        result = self.get_service().lock_agreement(self.principal, pk, body.get('terms'))
        return JsonResponse({
            'deal': result['deal'].to_response(),
            'invoice_draft': result['invoice_draft'],
        })


class ReopenNegotiationView(DealServiceMixin, View):

    def post(self, request, pk):
        body = self.parse_body()
        deal = self.get_service().reopen_negotiation(self.principal, pk, body.get('reason'))
        return JsonResponse(deal.to_response())


class DealActivityView(DealServiceMixin, View):

    def get(self, request, pk):
        activities = self.get_service().list_activity(self.principal, pk)
        return JsonResponse({'items': [a.to_response() for a in activities]})


class DealConversationView(DealServiceMixin, View):

    def get(self, request, pk):
        conversations = self.get_service().list_conversations(self.principal, pk)
        return JsonResponse({'items': [c.to_response() for c in conversations]})

    def post(self, request, pk):
        conversation = self.get_service().log_conversation(self.principal, pk, self.parse_body())
        return JsonResponse(conversation.to_response(), status=201)


class InvoiceMarkSentView(DealServiceMixin, View):

    def post(self, request, pk):
        invoice = self.get_service().mark_invoice_sent(self.principal, pk)
        return JsonResponse(invoice.to_response())


class InvoiceMarkPaidView(DealServiceMixin, View):

    def post(self, request, pk):
        body = self.parse_body()
        invoice = self.get_service().mark_invoice_paid(
            self.principal,
            pk,
            paid_at=body.get('paid_at'),
            method=body.get('method'),
            reference=body.get('reference'),
        )
        return JsonResponse(invoice.to_response())
