"""
Outreach sending for brand matches.

Sends the creator's pitch to a brand, then records the send on the match,
in the SystemEvent log and on the brand's Deal in a single transaction.
"""

import logging
from typing import Any, Dict, Optional

from django.contrib.auth import get_user_model
from django.db import transaction
from django.utils import timezone

from core.exceptions import ExternalCollaboratorError, ValidationError
from core.models import SystemEvent
from core.principal import Principal, get_owned
from deals.services import DealLifecycleService
from matching.models import BrandMatch

from .email_service import GmailSender, SystemSender, render_outreach_body
from .models import EmailConnection, SentEmail

logger = logging.getLogger(__name__)


class OutreachService:
    """
    Usage:
        service = OutreachService()
        result = service.send_for_match(principal, match_id, message='Loved your last launch...')
    """

    def __init__(self, deal_service: Optional[DealLifecycleService] = None, gmail_session=None):
        self.deal_service = deal_service or DealLifecycleService()
        self.gmail_session = gmail_session

    def sender_for(self, principal: Principal, use_gmail: bool):
        if not use_gmail:
            return SystemSender()
        connection = (
            EmailConnection.objects
            .filter(user_id=principal.id, provider='gmail', is_active=True)
            .order_by('-is_primary', '-created_at')
            .first()
        )
        if connection is None:
            raise ValidationError('Gmail not connected. Please connect your Gmail account first.')
        return GmailSender(connection, session=self.gmail_session)

    @staticmethod
    def resolve_recipient(match: BrandMatch, to: Optional[str]) -> str:
        recipient = (to or '').strip() or match.brand_email or (match.brand.contact_email if match.brand else '')
        if not recipient:
            raise ValidationError(
                'No email address provided. Please provide an email address '
                'or ensure the brand has contact information.'
            )
        return recipient

    def send_for_match(self, principal: Principal, match_id, message: str, to: Optional[str] = None,
                       subject: Optional[str] = None, use_gmail: bool = False) -> Dict[str, Any]:
        """
        Send outreach for one of the creator's brand matches.

        Args:
            principal: the sending creator
            match_id: BrandMatch id owned by the principal
            message: the pitch; wrapped in the outreach letter for system sends
            to: recipient override; defaults to the match or brand contact email
            subject: defaults to "Partnership Opportunity with <brand>"
            use_gmail: send from the creator's connected Gmail account

        Returns:
            Dict with to, via, message_id, brand_match and deal_id.

        Raises:
            ValidationError: no message, no recipient, or Gmail not connected
            ExternalCollaboratorError: the provider rejected the send
        """
        match = get_owned(BrandMatch.objects.select_related('brand'), principal, match_id, 'BrandMatch')
        if not isinstance(message, str) or not message.strip():
            raise ValidationError('Message is required')

        recipient = self.resolve_recipient(match, to)
        subject = (subject or '').strip() or f"Partnership Opportunity with {match.brand_name}"
        sender = self.sender_for(principal, use_gmail)

        user = get_user_model().objects.get(pk=principal.id)
        if use_gmail:
            body = message
            reply_to = sender.connection.email_address
        else:
            body = render_outreach_body(principal.display or user.email, match.brand_name, message)
            reply_to = user.email or None

        try:
            sent = sender.send(recipient, subject, body, reply_to=reply_to)
        except ExternalCollaboratorError as e:
            SentEmail.objects.create(
                user_id=principal.id,
                email_connection=sender.connection,
                brand_match=match,
                recipient_email=recipient,
                subject=subject,
                body=body,
                via=sender.via,
                status='failed',
                error_message=e.message,
            )
            logger.error("Outreach for match %s via %s failed: %s", match.pk, sender.via, e)
            raise

        event_type = 'gmail.outreach.sent' if sent.via == 'gmail' else 'outreach.sent'
        with transaction.atomic():
            SentEmail.objects.create(
                user_id=principal.id,
                email_connection=sender.connection,
                brand_match=match,
                recipient_email=recipient,
                subject=subject,
                body=body,
                via=sent.via,
                provider_message_id=sent.message_id,
                thread_id=sent.thread_id or '',
                sent_at=timezone.now(),
            )

            if match.status != BrandMatch.Status.COMPLETED:
                match.status = BrandMatch.Status.SENT
                match.save(update_fields=['status', 'updated_at'])

            SystemEvent.objects.create(
                user_id=principal.id,
                type=event_type,
                metadata={
                    'brand_match_id': str(match.pk),
                    'brand_name': match.brand_name,
                    'to': recipient,
                    'via': sent.via,
                    'message_id': sent.message_id,
                },
            )

            deal = self.deal_service.record_outreach(
                principal,
                match.brand_name,
                brand_id=match.brand_id,
                metadata={
                    'brand_match_id': str(match.pk),
                    'email_to': recipient,
                    'subject': subject,
                    'via': sent.via,
                    'message_id': sent.message_id,
                },
            )

        logger.info("Outreach sent for match %s to %s via %s", match.pk, recipient, sent.via)
        return {
            'success': True,
            'to': recipient,
            'via': sent.via,
            'message_id': sent.message_id,
            'brand_match': match.to_response(),
            'deal_id': str(deal.pk),
        }
