"""
Payment reconciler

Keeps bookings and money in agreement:

- opens gateway intents for the server-side booking total (never a client
  figure), one open intent per booking, each with a TTL;
- verifies captures against the booking total within
  ``CAPTURE_AMOUNT_TOLERANCE`` and records them exactly once per capture id;
- debits guest wallets for wallet bookings;
- queues refunds for money received on bookings that will not happen.

Every acceptance path commits as one unit: booking payment status, capture
record, ledger entry, discount usage and (for confirmed bookings) the host
payout. The mismatch path is the single commit-then-raise: the capture and
the review flag are kept, then PaymentMismatchError is raised.
"""

from __future__ import annotations

import logging
from datetime import timedelta
from decimal import Decimal

from django.conf import settings  # type: ignore
from django.db import IntegrityError, transaction  # type: ignore
from django.utils import timezone  # type: ignore

from apps.bookings.domain.entities import Booking, BookingStatus, DiscountKind, PaymentMethod
from apps.bookings.repository import BookingStore
from apps.discounts.domain import DiscountRejected
from apps.discounts.engine import DiscountEngine
from apps.payouts.dispatcher import PayoutDispatcher
from apps.wallets.ledger import WalletLedger
from apps.wallets.models import Transaction
from shared.application.uow import DjangoUnitOfWork
from shared.domain.exceptions import (
    AuthorizationError,
    NotFoundError,
    PaymentMismatchError,
    StateError,
    ValidationError,
)
from shared.domain.value_objects import CENT, to_decimal

from .gateway import PaymentGateway, get_gateway
from .models import CaptureRecord, PaymentIntent, RefundRequest

logger = logging.getLogger(__name__)

REFUNDABLE_STATUSES = (BookingStatus.REJECTED, BookingStatus.CANCELLED)
PAYABLE_STATUSES = (BookingStatus.CONFIRMED, BookingStatus.COMPLETED)


class PaymentReconciler:
    def __init__(
        self,
        store: BookingStore | None = None,
        ledger: WalletLedger | None = None,
        discounts: DiscountEngine | None = None,
        dispatcher: PayoutDispatcher | None = None,
        gateway: PaymentGateway | None = None,
    ):
        self.store = store or BookingStore()
        self.ledger = ledger or WalletLedger()
        self.discounts = discounts or DiscountEngine()
        self.dispatcher = dispatcher or PayoutDispatcher(ledger=self.ledger, store=self.store)
        self._gateway = gateway

    @property
    def gateway(self) -> PaymentGateway:
        if self._gateway is None:
            self._gateway = get_gateway()
        return self._gateway

    @property
    def tolerance(self) -> Decimal:
        return settings.CAPTURE_AMOUNT_TOLERANCE

    # ===== External gateway =====

    def open_intent(self, booking_id, amount=None, currency: str | None = None, *, guest_id: int | None = None) -> PaymentIntent:
        """
        Open (or reuse) the gateway order for a booking's authoritative total.

        ``amount``/``currency`` are what the client proposes; they are only
        checked against the booking, never used.
        """
        booking = self.store.get(booking_id)
        if guest_id is not None and booking.guest_id != guest_id:
            raise AuthorizationError("Only the booking's guest can pay for it")
        if booking.payment_method != PaymentMethod.EXTERNAL:
            raise ValidationError("This booking is paid from the wallet")
        if booking.is_paid:
            raise StateError("Booking payment is already completed")
        if booking.is_terminal:
            raise StateError(f"Cannot pay for a booking in {booking.status.value}")
        self._check_proposed_amount(booking, amount, currency)

        now = timezone.now()
        current = PaymentIntent.objects.filter(booking_id=booking.id, status=PaymentIntent.Status.OPEN).first()
        if current and not current.is_expired(now):
            logger.info(f"Reusing open intent {current.intent_ref} for booking {booking.id}")
            return current
        if current:
            PaymentIntent.objects.filter(pk=current.pk, status=PaymentIntent.Status.OPEN).update(
                status=PaymentIntent.Status.EXPIRED
            )

        total = booking.total.amount
        order = self.gateway.create_order(total, booking.currency, booking.id)
        try:
            with transaction.atomic():
                intent = PaymentIntent.objects.create(
                    booking_id=booking.id,
                    intent_ref=order.intent_ref,
                    amount=total,
                    currency=booking.currency,
                    approval_url=order.approval_url,
                    expires_at=now + timedelta(minutes=settings.PAYMENT_INTENT_TTL_MINUTES),
                )
        except IntegrityError:
            # Another request opened one first; the order we just made is left to expire at the gateway
            existing = PaymentIntent.objects.filter(booking_id=booking.id, status=PaymentIntent.Status.OPEN).first()
            if existing is None:
                raise
            logger.info(f"Concurrent intent for booking {booking.id}, using {existing.intent_ref}")
            return existing

        logger.info(f"Opened intent {intent.intent_ref} for booking {booking.id}: {total} {booking.currency}")
        return intent

    def capture_intent(self, intent_ref: str, *, guest_id: int | None = None) -> CaptureRecord:
        """Capture a payer-approved order at the gateway and reconcile the result."""
        intent = self._get_intent(intent_ref)
        if guest_id is not None and self.store.get(intent.booking_id).guest_id != guest_id:
            raise AuthorizationError("Only the booking's guest can pay for it")
        if intent.status == PaymentIntent.Status.CAPTURED:
            existing = intent.captures.filter(outcome=CaptureRecord.Outcome.ACCEPTED).first()
            if existing:
                return existing
        if intent.status == PaymentIntent.Status.EXPIRED or intent.is_expired():
            raise StateError(f"Payment intent {intent_ref} has expired; start a new payment")

        result = self.gateway.capture_order(intent_ref)
        return self.confirm_capture(
            intent_ref,
            result.capture_id,
            result.amount,
            result.currency,
            result.payer_info,
        )

    def confirm_capture(
        self,
        intent_ref: str,
        capture_id: str,
        captured_amount,
        currency: str,
        payer_info: dict | None = None,
    ) -> CaptureRecord:
        """
        Reconcile a capture reported by the gateway.

        Idempotent per ``capture_id``: a repeat returns the first outcome
        (re-raising PaymentMismatchError for a mismatched one).
        """
        if not capture_id:
            raise ValidationError("capture_id is required")
        try:
            captured = to_decimal(captured_amount).quantize(CENT)
        except (ArithmeticError, TypeError, ValueError) as e:
            raise ValidationError(f"Invalid captured amount: {captured_amount!r}") from e

        existing = CaptureRecord.objects.filter(capture_id=capture_id).first()
        if existing:
            return self._replay(existing)

        intent = self._get_intent(intent_ref)
        booking = self.store.get(intent.booking_id)
        expected = booking.total.amount

        if currency != booking.currency or abs(captured - expected) > self.tolerance:
            return self._record_mismatch(intent, booking, capture_id, captured, currency, payer_info)

        try:
            with DjangoUnitOfWork() as uow:
                record = CaptureRecord.objects.create(
                    capture_id=capture_id,
                    intent=intent,
                    booking_id=booking.id,
                    captured_amount=captured,
                    currency=currency,
                    payer_info=payer_info or {},
                    outcome=CaptureRecord.Outcome.ACCEPTED,
                )
                if booking.is_paid:
                    logger.error(
                        f"Second capture {capture_id} for already paid booking {booking.id} "
                        f"(paid by {booking.capture_id})"
                    )
                    raise StateError(f"Booking {booking.id} is already paid (capture {booking.capture_id})")

                booking.mark_paid(intent_ref=intent.intent_ref, capture_id=capture_id)
                self.store.save(booking)
                PaymentIntent.objects.filter(pk=intent.pk).update(status=PaymentIntent.Status.CAPTURED)
                self.ledger.record_external_payment(
                    booking.guest_id,
                    captured,
                    booking_id=booking.id,
                    reference=capture_id,
                    idempotency_key=f"capture:{capture_id}",
                    description=f"Gateway payment for booking {booking.id}",
                )
                self._after_payment(booking, soft_discount=True)
                uow.collect_events(booking)
        except IntegrityError:
            # Same capture id delivered concurrently
            existing = CaptureRecord.objects.filter(capture_id=capture_id).first()
            if existing is None:
                raise
            return self._replay(existing)

        logger.info(f"Capture {capture_id} accepted for booking {booking.id}: {captured} {currency}")
        return record

    # ===== Wallet =====

    def debit_wallet(self, booking_id, guest_id: int, amount=None) -> Booking:
        """Pay a wallet booking from the guest's balance."""
        with DjangoUnitOfWork() as uow:
            booking = self.store.get(booking_id)
            if booking.guest_id != guest_id:
                raise AuthorizationError("Only the booking's guest can pay for it")
            self._check_proposed_amount(booking, amount, None)
            self.settle_from_wallet(booking)
            uow.collect_events(booking)
        return booking

    def settle_from_wallet(self, booking: Booking) -> Transaction:
        """
        Debit the guest and mark the booking paid; runs inside the caller's unit.

        The booking must already be stored.
        """
        if booking.payment_method != PaymentMethod.WALLET:
            raise ValidationError("This booking is paid through the payment gateway")
        if booking.is_paid:
            raise StateError("Booking payment is already completed")
        if booking.is_terminal:
            raise StateError(f"Cannot pay for a booking in {booking.status.value}")

        with DjangoUnitOfWork() as uow:
            entry = self.ledger.debit(
                booking.guest_id,
                booking.total.amount,
                booking_id=booking.id,
                type=Transaction.Type.PAYMENT,
                description=f"Payment for booking {booking.id}",
                idempotency_key=f"booking-payment:{booking.id}",
            )
            booking.mark_paid()
            self.store.save(booking)
            self._after_payment(booking, soft_discount=False)
            uow.collect_events(booking)

        logger.info(f"Wallet payment {entry.amount} for booking {booking.id} by user {booking.guest_id}")
        return entry

    # ===== Maintenance =====

    def expire_stale_intents(self, now=None) -> int:
        now = now or timezone.now()
        expired = PaymentIntent.objects.filter(
            status=PaymentIntent.Status.OPEN,
            expires_at__lte=now,
        ).update(status=PaymentIntent.Status.EXPIRED)
        if expired:
            logger.info(f"Expired {expired} payment intents")
        return expired

    # ===== Refund queue =====

    def queue_refund(self, booking: Booking, reason: str = "") -> RefundRequest:
        refund, created = RefundRequest.objects.get_or_create(
            booking_id=booking.id,
            defaults={
                "guest_id": booking.guest_id,
                "amount": booking.total.amount,
                "currency": booking.currency,
                "reason": reason[:255],
            },
        )
        if created:
            logger.warning(
                f"Refund of {refund.amount} {refund.currency} queued for booking {booking.id}: {reason}"
            )
        return refund

    def resolve_refund(self, refund_id: int, actor_id: int) -> RefundRequest:
        """Credit the guest's wallet with the refund amount."""
        with transaction.atomic():
            refund = self._claim_refund(refund_id, RefundRequest.Status.RESOLVED, actor_id)
            entry = self.ledger.credit(
                refund.guest_id,
                refund.amount,
                booking_id=refund.booking_id,
                type=Transaction.Type.REFUND,
                description=f"Refund for booking {refund.booking_id}",
                idempotency_key=f"refund:{refund.booking_id}",
            )
            RefundRequest.objects.filter(pk=refund.pk).update(transaction=entry)
            refund.transaction = entry

        logger.info(f"Refund {refund.pk} resolved by {actor_id}: {refund.amount} to user {refund.guest_id}")
        return refund

    def dismiss_refund(self, refund_id: int, actor_id: int, reason: str = "") -> RefundRequest:
        with transaction.atomic():
            refund = self._claim_refund(refund_id, RefundRequest.Status.DISMISSED, actor_id)
            if reason:
                RefundRequest.objects.filter(pk=refund.pk).update(reason=reason[:255])
                refund.reason = reason[:255]
        logger.info(f"Refund {refund.pk} dismissed by {actor_id}")
        return refund

    # ===== Internals =====

    def _after_payment(self, booking: Booking, *, soft_discount: bool):
        """Side effects of a completed payment, inside the paying unit."""
        if booking.status in REFUNDABLE_STATUSES:
            # The booking will not happen; the discount stays unused
            self.queue_refund(booking, f"Payment received after booking was {booking.status.value}")
            return

        if booking.discount_kind != DiscountKind.NONE and booking.discount_provider_id:
            try:
                self.discounts.apply_and_commit(
                    booking.discount_kind.value, booking.discount_provider_id, booking.id
                )
            except DiscountRejected as e:
                if not soft_discount:
                    raise
                # Funds are already captured; keep the payment and leave the discount to support
                logger.error(f"Discount {booking.discount_code} for paid booking {booking.id} rejected: {e}")
                booking.flag_for_review(f"Discount {booking.discount_code} could not be applied: {e.reason}")
                self.store.save(booking)

        # PENDING_CANCELLATION waits for the host: reject_cancellation pays out,
        # approve_cancellation queues the refund
        if booking.status in PAYABLE_STATUSES:
            self.dispatcher.dispatch(booking)

    def _record_mismatch(self, intent, booking: Booking, capture_id, captured, currency, payer_info):
        expected = booking.total.amount
        reason = f"Captured {captured} {currency}, expected {expected} {booking.currency}"
        try:
            with DjangoUnitOfWork() as uow:
                CaptureRecord.objects.create(
                    capture_id=capture_id,
                    intent=intent,
                    booking_id=booking.id,
                    captured_amount=captured,
                    currency=currency,
                    payer_info=payer_info or {},
                    outcome=CaptureRecord.Outcome.MISMATCH,
                )
                booking.flag_for_review(reason)
                self.store.save(booking)
                uow.collect_events(booking)
        except IntegrityError:
            existing = CaptureRecord.objects.filter(capture_id=capture_id).first()
            if existing is None:
                raise
            return self._replay(existing)

        logger.error(f"Payment mismatch on booking {booking.id} (capture {capture_id}): {reason}")
        raise PaymentMismatchError(reason, booking_id=booking.id, expected=expected, captured=captured)

    def _replay(self, record: CaptureRecord) -> CaptureRecord:
        logger.info(f"Capture {record.capture_id} already processed ({record.outcome})")
        if record.outcome == CaptureRecord.Outcome.MISMATCH:
            booking = self.store.get(record.booking_id)
            raise PaymentMismatchError(
                f"Capture {record.capture_id} did not match booking {record.booking_id}",
                booking_id=record.booking_id,
                expected=booking.total.amount,
                captured=record.captured_amount,
            )
        return record

    def _check_proposed_amount(self, booking: Booking, amount, currency):
        if currency and currency != booking.currency:
            raise ValidationError(f"Booking is priced in {booking.currency}, not {currency}")
        if amount is None:
            return
        try:
            proposed = to_decimal(amount).quantize(CENT)
        except (ArithmeticError, TypeError, ValueError) as e:
            raise ValidationError(f"Invalid amount: {amount!r}") from e
        if proposed != booking.total.amount:
            raise ValidationError(
                f"Proposed amount {proposed} does not match the booking total {booking.total.amount}"
            )

    def _get_intent(self, intent_ref: str) -> PaymentIntent:
        intent = PaymentIntent.objects.filter(intent_ref=intent_ref).first()
        if intent is None:
            raise NotFoundError(f"Payment intent {intent_ref} not found")
        return intent

    def _claim_refund(self, refund_id: int, target: str, actor_id: int) -> RefundRequest:
        now = timezone.now()
        claimed = RefundRequest.objects.filter(pk=refund_id, status=RefundRequest.Status.PENDING).update(
            status=target, resolved_at=now, resolved_by_id=actor_id
        )
        refund = RefundRequest.objects.filter(pk=refund_id).first()
        if refund is None:
            raise NotFoundError(f"Refund request {refund_id} not found")
        if not claimed:
            raise StateError(f"Refund request {refund_id} is already {refund.status}")
        return refund
