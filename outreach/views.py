"""
JSON endpoint for sending brand match outreach.
"""

import logging

from django.http import JsonResponse
from django.views import View

from core.exceptions import ValidationError
from core.views import JSONAPIMixin

from .services import OutreachService

logger = logging.getLogger(__name__)


class BrandMatchOutreachView(JSONAPIMixin, View):
    """POST {to, subject, message, useGmail}: send outreach and sync the deal."""

    def get_service(self) -> OutreachService:
        return OutreachService()

    def post(self, request, pk):
        body = self.parse_body()
        use_gmail = body.get('useGmail', body.get('use_gmail', False))
        if not isinstance(use_gmail, bool):
            raise ValidationError("'useGmail' must be true or false")

        result = self.get_service().send_for_match(
            self.principal,
            pk,
            message=body.get('message'),
            to=body.get('to'),
            subject=body.get('subject'),
            use_gmail=use_gmail,
        )
        return JsonResponse(result)
