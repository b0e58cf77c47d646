"""
Deal lifecycle engine.

Every state change goes through DealLifecycleService, which locks the deal
row, checks the edge against deals.state_machine, stamps the matching
timestamps and writes the DealActivity in the same transaction. No
operation retries on its own; the caller decides.
"""

import base64
import binascii
import logging
import uuid
from datetime import datetime, timezone as dt_timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional

from django.contrib.auth import get_user_model
from django.db import transaction
from django.db.models import Q
from django.utils import timezone
from django.utils.dateparse import parse_datetime

from core.exceptions import InvalidTransitionError, NotFoundError, ValidationError
from core.principal import Principal, get_owned
from matching.models import Brand

from .models import ConversationLog, Deal, DealActivity, Invoice
from .state_machine import (
    DealStatus,
    TransitionGuard,
    legal_next_states,
    timestamp_fields_for,
)

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 100


def partnership_title(brand_name: str) -> str:
    return f"{brand_name.strip()} Partnership"


def _parse_amount(value, field: str, positive: bool = False) -> Optional[Decimal]:
    if value is None or value == '':
        return None
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a number")
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{field} must be a number")
    if not amount.is_finite():
        raise ValidationError(f"{field} must be a number")
    if positive and amount <= 0:
        raise ValidationError(f"{field} must be greater than zero")
    if amount < 0:
        raise ValidationError(f"{field} cannot be negative")
    return amount


def _parse_when(value, field: str):
    if value in (None, ''):
        return timezone.now()
    if isinstance(value, datetime):
        return value if timezone.is_aware(value) else timezone.make_aware(value, dt_timezone.utc)
    try:
        parsed = parse_datetime(str(value))
    except ValueError:
        parsed = None
    if parsed is None:
        raise ValidationError(f"{field} must be an ISO 8601 datetime")
    if timezone.is_naive(parsed):
        parsed = timezone.make_aware(parsed, dt_timezone.utc)
    return parsed


def _is_uuid(value) -> bool:
    try:
        uuid.UUID(str(value))
    except (TypeError, ValueError, AttributeError):
        return False
    return True


def _encode_cursor(deal: Deal) -> str:
    raw = f"{deal.created_at.isoformat()}|{deal.pk}"
    return base64.urlsafe_b64encode(raw.encode()).decode()


def _decode_cursor(cursor: str):
    try:
        created, pk = base64.urlsafe_b64decode(cursor.encode()).decode().split('|', 1)
        created_at = parse_datetime(created)
    except (binascii.Error, UnicodeDecodeError, ValueError):
        raise ValidationError('Invalid cursor')
    if created_at is None or not _is_uuid(pk):
        raise ValidationError('Invalid cursor')
    return created_at, uuid.UUID(pk)


class DealLifecycleService:
    """
    Finite-state machine over Deal.status with an append-only activity log.

    Usage:
        service = DealLifecycleService()
        deal = service.create(principal, title='Acme Partnership', brand_name='Acme')
        service.transition(principal, deal.id, 'OUTREACH_SENT')
    """

    # ----- internals -----

    def _locked_deal(self, principal: Principal, deal_id) -> Deal:
        return get_owned(Deal.objects.select_for_update(), principal, deal_id, 'Deal')

    def _owned_deal(self, principal: Principal, deal_id) -> Deal:
        return get_owned(Deal.objects.select_related('brand'), principal, deal_id, 'Deal')

    @staticmethod
    def _log(deal: Deal, principal: Principal, type_: str, message: str,
             metadata: Optional[Dict[str, Any]] = None) -> DealActivity:
        return DealActivity.objects.create(
            deal=deal,
            type=type_,
            message=message[:500],
            actor=principal.display,
            metadata=metadata or {},
        )

    def _apply_transition(self, deal: Deal, principal: Principal, target: str,
                          notes: Optional[str] = None) -> Deal:
        """Move a locked deal along one legal edge and log it. Caller holds the transaction."""
        allowed, reason = TransitionGuard.can_transition(deal.status, target)
        if not allowed:
            logger.info("Rejected transition for deal %s: %s", deal.pk, reason)
            raise InvalidTransitionError(deal.status, target, legal_next_states(deal.status))

        previous = deal.status
        now = timezone.now()
        deal.status = target
        for field in timestamp_fields_for(target):
            setattr(deal, field, now)
        if target == DealStatus.DECLINED:
            deal.lost_reason = notes or ''
        deal.save()

        suffix = f": {notes}" if notes else ''
        self._log(
            deal, principal, 'status.changed',
            f"Status changed from {previous} to {target}{suffix}",
            {'from': previous, 'to': target, 'notes': notes},
        )
        logger.info("Deal %s moved %s -> %s", deal.pk, previous, target)
        return deal

    # ----- create / read -----

    def create(self, principal: Principal, title: str, brand_id=None, brand_name: Optional[str] = None,
               contact_name: Optional[str] = None, contact_email: Optional[str] = None,
               proposed_amount=None) -> Deal:
        """
        Create a deal in PROSPECT.

        A brand_id that is not a UUID is treated as a brand name. Named brands
        are found case-insensitively or created; contact fields are merged
        into the brand's contact_info.
        """
        title = (title or '').strip() if isinstance(title, str) else ''
        if not title:
            raise ValidationError('Title is required')
        amount = _parse_amount(proposed_amount, 'proposed_amount')

        if brand_id and not _is_uuid(brand_id):
            brand_name = brand_name or str(brand_id)
            brand_id = None

        with transaction.atomic():
            brand = None
            if brand_id:
                brand = Brand.objects.filter(pk=brand_id).first()
                if brand is None:
                    raise NotFoundError('Brand')
            elif brand_name and brand_name.strip():
                brand, created = Brand.objects.find_or_create_by_name(brand_name)
                if created:
                    logger.info("Created brand %r for deal %r", brand.name, title)

            if brand is not None and (contact_name or contact_email):
                contact = dict(brand.contact_info or {})
                if contact_name:
                    contact['contactPerson'] = contact_name
                if contact_email:
                    contact['email'] = contact_email
                brand.contact_info = contact
                brand.save(update_fields=['contact_info', 'updated_at'])

            deal = Deal.objects.create(
                user_id=principal.id,
                brand=brand,
                title=title,
                proposed_amount=amount,
                status=DealStatus.PROSPECT,
            )
        return deal

    def get(self, principal: Principal, deal_id) -> Deal:
        return self._owned_deal(principal, deal_id)

    def list(self, principal: Principal, status: Optional[str] = None, cursor: Optional[str] = None,
             page: int = 1, limit: int = 10) -> Dict[str, Any]:
        """Newest first. Keyset pagination via cursor, offset pages otherwise."""
        qs = Deal.objects.filter(user_id=principal.id).select_related('brand').order_by('-created_at', '-id')
        if status:
            if status not in DealStatus.ALL:
                raise ValidationError(f"Unknown status '{status}'")
            qs = qs.filter(status=status)

        limit = max(1, min(int(limit), MAX_PAGE_SIZE))
        if cursor:
            created_at, pk = _decode_cursor(cursor)
            qs = qs.filter(Q(created_at__lt=created_at) | Q(created_at=created_at, id__lt=pk))
            window = list(qs[:limit + 1])
        else:
            offset = (max(1, int(page)) - 1) * limit
            window = list(qs[offset:offset + limit + 1])

        items = window[:limit]
        has_more = len(window) > limit
        return {
            'items': items,
            'next_cursor': _encode_cursor(items[-1]) if has_more and items else None,
        }

    # ----- transitions -----

    def transition(self, principal: Principal, deal_id, to: str, notes: Optional[str] = None) -> Deal:
        if not to or to not in DealStatus.ALL:
            raise ValidationError(f"Unknown target status '{to}'", {'allowed': list(DealStatus.ALL)})
        with transaction.atomic():
            deal = self._locked_deal(principal, deal_id)
            return self._apply_transition(deal, principal, to, notes)

    def mark_negotiation(self, principal: Principal, deal_id) -> Deal:
        return self.transition(principal, deal_id, DealStatus.NEGOTIATION)

    @staticmethod
    def _validate_terms(terms) -> Dict[str, Any]:
        if not isinstance(terms, dict):
            raise ValidationError('Invalid terms: price and deliverables are required')
        price = terms.get('price')
        deliverables = terms.get('deliverables')
        if not isinstance(price, dict) or not isinstance(deliverables, list) or not deliverables:
            raise ValidationError('Invalid terms: price and deliverables are required')
        amount = _parse_amount(price.get('amount'), 'terms.price.amount', positive=True)
        if amount is None:
            raise ValidationError('terms.price.amount is required')
        normalized = dict(terms)
        normalized['price'] = {
            **price,
            'amount': float(amount),
            'currency': (price.get('currency') or 'USD').upper(),
            'schedule': price.get('schedule'),
        }
        return normalized

    def lock_agreement(self, principal: Principal, deal_id, terms) -> Dict[str, Any]:
        """
        Snapshot terms as version N+1 and move NEGOTIATION -> AGREEMENT_LOCKED.

        Invoices are not created here; the returned invoice_draft tells the
        caller to create one through the invoicing collaborator.
        """
        normalized = self._validate_terms(terms)

        with transaction.atomic():
            deal = self._locked_deal(principal, deal_id)
            if deal.status != DealStatus.NEGOTIATION:
                raise InvalidTransitionError(
                    deal.status, DealStatus.AGREEMENT_LOCKED, legal_next_states(deal.status)
                )

            now = timezone.now()
            version = deal.terms_version + 1
            if deal.terms_snapshot:
                deal.terms_history = list(deal.terms_history or []) + [deal.terms_snapshot]
            deal.terms_snapshot = {**normalized, 'version': version, 'locked_at': now.isoformat()}
            deal.agreed_amount = Decimal(str(normalized['price']['amount']))
            deal.status = DealStatus.AGREEMENT_LOCKED
            deal.agreement_locked_at = now
            deal.save()

            self._log(
                deal, principal, 'agreement.locked',
                f"Agreement terms locked (version {version})",
                {'terms_version': version},
            )

        logger.info("Deal %s locked at terms version %s", deal.pk, version)
        return {
            'deal': deal,
            'invoice_draft': {
                'id': None,
                'deal_id': str(deal.pk),
                'amount': normalized['price']['amount'],
                'currency': normalized['price']['currency'],
                'message': 'Create an invoice for this deal through the invoicing service',
            },
        }

    def reopen_negotiation(self, principal: Principal, deal_id, reason: Optional[str] = None) -> Deal:
        """AGREEMENT_LOCKED -> NEGOTIATION. Locked terms stay in place for history."""
        with transaction.atomic():
            deal = self._locked_deal(principal, deal_id)
            allowed, _ = TransitionGuard.can_reopen(deal.status)
            if not allowed:
                raise InvalidTransitionError(deal.status, DealStatus.NEGOTIATION, legal_next_states(deal.status))

            deal.status = DealStatus.NEGOTIATION
            deal.agreement_locked_at = None
            deal.save()
            self._log(
                deal, principal, 'negotiation.reopened',
                f"Negotiation reopened: {reason}" if reason else "Negotiation reopened",
                {'reason': reason, 'terms_version': deal.terms_version},
            )
        return deal

    # ----- conversations & activity -----

    def log_conversation(self, principal: Principal, deal_id, fields: Dict[str, Any]) -> ConversationLog:
        fields = fields or {}
        channel = fields.get('channel')
        direction = fields.get('direction')
        disposition = fields.get('disposition')
        summary = (fields.get('summary') or '').strip() if isinstance(fields.get('summary'), str) else ''

        errors = []
        if channel not in ConversationLog.Channel.values:
            errors.append(f"channel must be one of {', '.join(ConversationLog.Channel.values)}")
        if direction not in ConversationLog.Direction.values:
            errors.append(f"direction must be one of {', '.join(ConversationLog.Direction.values)}")
        if disposition not in ConversationLog.Disposition.values:
            errors.append(f"disposition must be one of {', '.join(ConversationLog.Disposition.values)}")
        if not summary:
            errors.append('summary is required')
        if errors:
            raise ValidationError('Invalid conversation: ' + '; '.join(errors), {'errors': errors})

        attachments = fields.get('attachments') or []
        if not isinstance(attachments, list):
            raise ValidationError('attachments must be a list')
        amount = _parse_amount(fields.get('amount', fields.get('amount_discussed')), 'amount')
        occurred_at = _parse_when(fields.get('timestamp', fields.get('occurred_at')), 'timestamp')

        with transaction.atomic():
            deal = self._locked_deal(principal, deal_id)
            conversation = ConversationLog.objects.create(
                deal=deal,
                channel=channel,
                direction=direction,
                occurred_at=occurred_at,
                summary=summary,
                disposition=disposition,
                amount_discussed=amount,
                terms_delta=fields.get('terms_delta') or '',
                attachments=attachments,
            )
            self._log(
                deal, principal, 'conversation.logged',
                f"{direction} {channel} conversation: {disposition}",
                {'conversation_id': str(conversation.pk)},
            )
        return conversation

    def list_conversations(self, principal: Principal, deal_id) -> List[ConversationLog]:
        deal = self._owned_deal(principal, deal_id)
        return list(deal.conversations.order_by('-occurred_at', '-created_at'))

    def list_activity(self, principal: Principal, deal_id) -> List[DealActivity]:
        deal = self._owned_deal(principal, deal_id)
        return list(deal.activities.order_by('-created_at', '-id'))

    # ----- outreach side effect -----

    def record_outreach(self, principal: Principal, brand_name: str, brand_id=None,
                        metadata: Optional[Dict[str, Any]] = None) -> Deal:
        """
        Reflect a sent outreach email on the deal for that brand.

        Creates the deal in OUTREACH_SENT when none exists, advances a
        PROSPECT deal to OUTREACH_SENT, and otherwise leaves the status alone.
        Always appends one outreach.sent activity.
        """
        brand_name = (brand_name or '').strip()
        if not brand_name:
            raise ValidationError('brand_name is required to record outreach')
        metadata = metadata or {}
        title = partnership_title(brand_name)
        recipient = metadata.get('email_to')

        with transaction.atomic():
            # Serializes concurrent sends for the same creator
            get_user_model().objects.select_for_update().filter(pk=principal.id).first()

            lookup = Q(title=title)
            if brand_id:
                lookup |= Q(brand_id=brand_id)
            deal = (
                Deal.objects.select_for_update()
                .filter(lookup, user_id=principal.id)
                .order_by('-created_at')
                .first()
            )

            if deal is None:
                brand = Brand.objects.filter(pk=brand_id).first() if brand_id else None
                deal = Deal.objects.create(
                    user_id=principal.id,
                    brand=brand or Brand.objects.find_by_name(brand_name),
                    title=title,
                    status=DealStatus.OUTREACH_SENT,
                    outreach_sent_at=timezone.now(),
                )
                message = f"Outreach email sent to {brand_name}"
                logger.info("Created deal %s from outreach to %s", deal.pk, brand_name)
            elif deal.status == DealStatus.PROSPECT:
                self._apply_transition(deal, principal, DealStatus.OUTREACH_SENT, 'Outreach sent')
                message = f"Outreach email sent to {brand_name}"
            else:
                message = f"Follow-up outreach email sent to {brand_name}"

            if recipient:
                message += f" ({recipient})"
            self._log(deal, principal, 'outreach.sent', message, metadata)
        return deal

    # ----- invoicing callbacks -----

    def mark_invoice_sent(self, principal: Principal, invoice_id) -> Invoice:
        with transaction.atomic():
            invoice = get_owned(Invoice.objects.select_for_update(), principal, invoice_id, 'Invoice')
            if invoice.status != Invoice.Status.UNPAID:
                raise ValidationError(f"Invoice is {invoice.status}; only unpaid invoices can be marked sent")

            invoice.status = Invoice.Status.SENT
            invoice.sent_at = timezone.now()
            invoice.save(update_fields=['status', 'sent_at', 'updated_at'])

            if invoice.deal_id:
                deal = self._locked_deal(principal, invoice.deal_id)
                if deal.status == DealStatus.AGREEMENT_LOCKED:
                    deal.invoice = invoice
                    self._apply_transition(deal, principal, DealStatus.INVOICED, 'Invoice sent')
                elif deal.status in (DealStatus.INVOICED, DealStatus.PAID):
                    if deal.invoice_id is None:
                        deal.invoice = invoice
                        deal.save(update_fields=['invoice', 'updated_at'])
                else:
                    raise InvalidTransitionError(deal.status, DealStatus.INVOICED, legal_next_states(deal.status))
        return invoice

    def mark_invoice_paid(self, principal: Principal, invoice_id, paid_at=None,
                          method: Optional[str] = None, reference: Optional[str] = None) -> Invoice:
        when = _parse_when(paid_at, 'paid_at')
        with transaction.atomic():
            invoice = get_owned(Invoice.objects.select_for_update(), principal, invoice_id, 'Invoice')
            if invoice.status not in (Invoice.Status.SENT, Invoice.Status.UNPAID):
                raise ValidationError(f"Invoice is {invoice.status}; it cannot be marked paid")

            invoice.status = Invoice.Status.PAID
            invoice.paid_at = when
            invoice.payment_method = method or ''
            invoice.payment_reference = reference or ''
            invoice.save(update_fields=['status', 'paid_at', 'payment_method', 'payment_reference', 'updated_at'])

            if invoice.deal_id:
                deal = self._locked_deal(principal, invoice.deal_id)
                if deal.status == DealStatus.AGREEMENT_LOCKED:
                    deal.invoice = invoice
                    self._apply_transition(deal, principal, DealStatus.INVOICED, 'Invoice issued')
                if deal.status == DealStatus.INVOICED:
                    if deal.invoice_id is None:
                        deal.invoice = invoice
                    self._apply_transition(deal, principal, DealStatus.PAID, 'Invoice paid')
                elif deal.status != DealStatus.PAID:
                    raise InvalidTransitionError(deal.status, DealStatus.PAID, legal_next_states(deal.status))

                self._log(
                    deal, principal, 'payment.received',
                    f"Payment received: {invoice.amount} {invoice.currency}",
                    {
                        'invoice_id': str(invoice.pk),
                        'amount': float(invoice.amount),
                        'method': method,
                        'reference': reference,
                    },
                )
        return invoice
