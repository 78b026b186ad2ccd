"""
Booking Command Handlers

These are the use cases for the booking domain. Each one runs inside a
single DjangoUnitOfWork so the transition, the money movement it implies
and the audit entry commit together; events go out after commit.

Commands:
- CreateBookingCommand: Guest requests a booking (wallet + pay-now also pays)
- ApproveBookingCommand / RejectBookingCommand: Host decision
- RequestCancellationCommand: Guest asks to cancel a confirmed booking
- ApproveCancellationCommand / RejectCancellationCommand: Host decision
- CompleteStayCommand: Stay finished (external trigger)
- PayWithWalletCommand / StartExternalPaymentCommand: Guest pays
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID
import logging

from django.conf import settings

from shared.application.message_bus import MessageBus, message_bus
from shared.application.uow import DjangoUnitOfWork
from shared.domain.exceptions import NotFoundError, ValidationError
from shared.domain.value_objects import CENT, DateRange, Money, to_decimal
from apps.bookings.domain.entities import (
    Booking,
    BookingStatus,
    DiscountKind,
    PaymentMethod,
    PaymentTiming,
    Pricing,
)
from apps.bookings.repository import BookingStore
from apps.discounts.domain import AppliedDiscount
from apps.discounts.engine import DiscountEngine
from apps.listings.models import Listing
from apps.payments.reconciler import PaymentReconciler
from apps.payouts.dispatcher import PayoutDispatcher

logger = logging.getLogger(__name__)


# ===== Commands =====

@dataclass
class CreateBookingCommand:
    """
    Command to create a new booking

    ``proposed_total`` is what the client displayed; it is checked against
    the server-side price, never used.
    """
    guest_id: int
    listing_id: int
    payment_method: str = PaymentMethod.WALLET.value
    payment_timing: str = PaymentTiming.NOW.value
    check_in: date | None = None
    check_out: date | None = None
    guests: int = 1
    promo_code: str = ''
    voucher_code: str = ''
    message_to_host: str = ''
    proposed_total: Decimal | None = None


@dataclass
class ApproveBookingCommand:
    booking_id: UUID
    host_id: int


@dataclass
class RejectBookingCommand:
    booking_id: UUID
    host_id: int
    reason: str = ''


@dataclass
class RequestCancellationCommand:
    booking_id: UUID
    guest_id: int
    reason: str = ''


@dataclass
class ApproveCancellationCommand:
    booking_id: UUID
    host_id: int


@dataclass
class RejectCancellationCommand:
    booking_id: UUID
    host_id: int


@dataclass
class CompleteStayCommand:
    booking_id: UUID


@dataclass
class PayWithWalletCommand:
    booking_id: UUID
    guest_id: int
    amount: Decimal | None = None


@dataclass
class StartExternalPaymentCommand:
    booking_id: UUID
    guest_id: int
    amount: Decimal | None = None
    currency: str | None = None


@dataclass
class Quote:
    """Server-side price of a prospective booking"""
    listing: Listing
    pricing: Pricing
    discount: AppliedDiscount | None = None
    stay: DateRange | None = None
    guests: int = 1

    def to_dict(self) -> dict:
        data = self.pricing.to_dict()
        data['listing_id'] = self.listing.pk
        data['discount_provider'] = self.discount.to_dict() if self.discount else None
        return data


# ===== Service =====

class BookingWorkflowService:
    """
    Guest, host and external-trigger operations on bookings

    Money-moving side effects live in the collaborators (reconciler, payout
    dispatcher); this service decides when they run and keeps them in the
    same unit as the transition that causes them.
    """

    def __init__(
        self,
        store: BookingStore | None = None,
        discounts: DiscountEngine | None = None,
        reconciler: PaymentReconciler | None = None,
        dispatcher: PayoutDispatcher | None = None,
    ):
        self.store = store or BookingStore()
        self.discounts = discounts or DiscountEngine()
        self.dispatcher = dispatcher or PayoutDispatcher(store=self.store)
        self.reconciler = reconciler or PaymentReconciler(
            store=self.store,
            ledger=self.dispatcher.ledger,
            discounts=self.discounts,
            dispatcher=self.dispatcher,
        )

    # ----- Pricing -----

    def quote(
        self,
        listing_id: int,
        guest_id: int,
        *,
        check_in: date | None = None,
        check_out: date | None = None,
        guests: int = 1,
        promo_code: str = '',
        voucher_code: str = '',
    ) -> Quote:
        """
        Price a booking: listing rate x units, listing discount, at most one
        coupon or voucher, then the platform fee on what remains.
        """
        listing = Listing.objects.filter(pk=listing_id).first()
        if listing is None:
            raise NotFoundError(f"Listing {listing_id} not found")
        if not listing.is_bookable:
            raise ValidationError("Listing is not available for booking")
        if guests < 1 or guests > listing.max_guests:
            raise ValidationError(f"Guests must be between 1 and {listing.max_guests}")

        stay = None
        if check_in or check_out:
            if not (check_in and check_out):
                raise ValidationError("Both check-in and check-out dates are required")
            try:
                stay = DateRange(check_in, check_out)
            except ValueError as e:
                raise ValidationError(str(e)) from e

        currency = settings.MARKETPLACE_CURRENCY
        subtotal = listing.quote_subtotal(nights=len(stay) if stay else 1, guests=guests)
        applied = self.discounts.resolve(
            promo_code=promo_code or None,
            voucher_code=voucher_code or None,
            guest_id=guest_id,
            listing_id=listing.pk,
            host_id=listing.host_id,
            subtotal=subtotal,
        )
        pricing = Pricing.compute(
            Money(subtotal, currency),
            Money(applied.amount, currency) if applied else None,
            fee_rate=settings.SERVICE_FEE_RATE,
        )
        return Quote(listing=listing, pricing=pricing, discount=applied, stay=stay, guests=guests)

    # ----- Guest -----

    def create_booking(self, command: CreateBookingCommand) -> Booking:
        """
        Create a booking request (-> PENDING_APPROVAL)

        For wallet + pay-now the insert and the wallet debit are one unit:
        insufficient funds leaves no booking behind.
        """
        logger.info(
            f"Creating booking: guest={command.guest_id} listing={command.listing_id} "
            f"method={command.payment_method} timing={command.payment_timing}"
        )
        try:
            method = PaymentMethod(command.payment_method)
            timing = PaymentTiming(command.payment_timing)
        except ValueError as e:
            raise ValidationError(str(e)) from e

        quote = self.quote(
            command.listing_id,
            command.guest_id,
            check_in=command.check_in,
            check_out=command.check_out,
            guests=command.guests,
            promo_code=command.promo_code,
            voucher_code=command.voucher_code,
        )

        if command.proposed_total is not None:
            proposed = to_decimal(command.proposed_total).quantize(CENT)
            if proposed != quote.pricing.total.amount:
                raise ValidationError(
                    f"Proposed total {proposed} does not match the computed total {quote.pricing.total.amount}"
                )

        applied = quote.discount
        booking = Booking.create(
            guest_id=command.guest_id,
            host_id=quote.listing.host_id,
            listing_id=quote.listing.pk,
            pricing=quote.pricing,
            payment_method=method,
            payment_timing=timing,
            discount_kind=DiscountKind(applied.kind) if applied else DiscountKind.NONE,
            discount_code=applied.code if applied else '',
            discount_provider_id=applied.provider_id if applied else None,
            stay=quote.stay,
            guests=quote.guests,
            message_to_host=command.message_to_host,
        )

        with DjangoUnitOfWork() as uow:
            self.store.add(booking)
            uow.collect_events(booking)
            if method == PaymentMethod.WALLET and timing == PaymentTiming.NOW:
                self.reconciler.settle_from_wallet(booking)

        return booking

    def request_cancellation(self, command: RequestCancellationCommand) -> Booking:
        with DjangoUnitOfWork() as uow:
            booking = self.store.get(command.booking_id)
            booking.request_cancellation(command.guest_id, command.reason)
            self.store.save(booking)
            uow.collect_events(booking)
        return booking

    def pay_with_wallet(self, command: PayWithWalletCommand) -> Booking:
        return self.reconciler.debit_wallet(command.booking_id, command.guest_id, command.amount)

    def start_external_payment(self, command: StartExternalPaymentCommand):
        return self.reconciler.open_intent(
            command.booking_id, command.amount, command.currency, guest_id=command.guest_id
        )

    # ----- Host -----

    def approve(self, command: ApproveBookingCommand) -> Booking:
        """
        Approve a booking; a paid booking pays the host in the same unit.

        Two concurrent approvals: the second one's conditional write finds
        the booking already confirmed and fails with StaleStateError before
        any payout.
        """
        with DjangoUnitOfWork() as uow:
            booking = self.store.get(command.booking_id)
            booking.approve(command.host_id)
            self.store.save(booking)
            if booking.is_paid:
                self.dispatcher.dispatch(booking)
            uow.collect_events(booking)
        return booking

    def reject(self, command: RejectBookingCommand) -> Booking:
        with DjangoUnitOfWork() as uow:
            booking = self.store.get(command.booking_id)
            booking.reject(command.host_id, command.reason)
            self.store.save(booking)
            if booking.is_paid:
                self.reconciler.queue_refund(booking, command.reason or "Booking rejected by host")
            uow.collect_events(booking)
        return booking

    def approve_cancellation(self, command: ApproveCancellationCommand) -> Booking:
        with DjangoUnitOfWork() as uow:
            booking = self.store.get(command.booking_id)
            booking.approve_cancellation(command.host_id)
            self.store.save(booking)
            if booking.is_paid:
                self.reconciler.queue_refund(booking, booking.cancellation_reason or "Cancellation approved")
            uow.collect_events(booking)
        return booking

    def reject_cancellation(self, command: RejectCancellationCommand) -> Booking:
        with DjangoUnitOfWork() as uow:
            booking = self.store.get(command.booking_id)
            booking.reject_cancellation(command.host_id)
            self.store.save(booking)
            if booking.is_paid and booking.status == BookingStatus.CONFIRMED:
                self.dispatcher.dispatch(booking)
            uow.collect_events(booking)
        return booking

    # ----- External -----

    def complete_stay(self, command: CompleteStayCommand) -> Booking:
        with DjangoUnitOfWork() as uow:
            booking = self.store.get(command.booking_id)
            booking.complete_stay()
            self.store.save(booking)
            milestone = self.dispatcher.award_first_stay_milestone(booking.host_id, booking.id)
            uow.collect_events(booking)
            if milestone:
                uow.add_event(milestone)
        return booking


COMMAND_HANDLERS = {
    CreateBookingCommand: 'create_booking',
    ApproveBookingCommand: 'approve',
    RejectBookingCommand: 'reject',
    RequestCancellationCommand: 'request_cancellation',
    ApproveCancellationCommand: 'approve_cancellation',
    RejectCancellationCommand: 'reject_cancellation',
    CompleteStayCommand: 'complete_stay',
    PayWithWalletCommand: 'pay_with_wallet',
    StartExternalPaymentCommand: 'start_external_payment',
}


def register_handlers(bus: MessageBus = message_bus, service: BookingWorkflowService | None = None):
    """Route every booking command on ``bus`` to ``service``"""
    service = service or BookingWorkflowService()
    for command_type, method_name in COMMAND_HANDLERS.items():
        bus.register_command_handler(command_type, getattr(service, method_name), replace=True)
    return service
