"""
Booking Domain Entities

Core business entities for the booking domain:
- Booking: Main aggregate representing a reservation request
- BookingStatus: FSM states for the approval/cancellation lifecycle
- PaymentStatus, PaymentMethod, PaymentTiming: payment tracking
- Pricing: the authoritative subtotal/discount/fee/total breakdown
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum

from shared.domain.base import Aggregate, ValueObject, utcnow
from shared.domain.exceptions import AuthorizationError, StateError, ValidationError
from shared.domain.value_objects import DateRange, Money


class BookingStatus(Enum):
    """
    Booking Status Finite State Machine

    State transitions:
    - PENDING_APPROVAL -> CONFIRMED (host approves)
    - PENDING_APPROVAL -> REJECTED (host rejects)
    - CONFIRMED -> PENDING_CANCELLATION (guest requests cancellation)
    - PENDING_CANCELLATION -> CANCELLED (host approves cancellation)
    - PENDING_CANCELLATION -> previous status (host rejects cancellation)
    - CONFIRMED -> COMPLETED (stay finished)
    """
    PENDING_APPROVAL = 'pending_approval'
    CONFIRMED = 'confirmed'
    REJECTED = 'rejected'
    PENDING_CANCELLATION = 'pending_cancellation'
    CANCELLED = 'cancelled'
    COMPLETED = 'completed'


class PaymentStatus(Enum):
    """Payment status tracking"""
    PENDING = 'pending'         # Pay-now booking waiting for funds
    SCHEDULED = 'scheduled'     # Pay-later booking, funds due after approval
    COMPLETED = 'completed'     # Funds captured or debited


class PaymentMethod(Enum):
    WALLET = 'wallet'
    EXTERNAL = 'external'


class PaymentTiming(Enum):
    NOW = 'now'
    LATER = 'later'


class DiscountKind(Enum):
    NONE = 'none'
    COUPON = 'coupon'
    VOUCHER = 'voucher'


TRANSITIONS: dict[BookingStatus, frozenset[BookingStatus]] = {
    BookingStatus.PENDING_APPROVAL: frozenset({BookingStatus.CONFIRMED, BookingStatus.REJECTED}),
    BookingStatus.CONFIRMED: frozenset({BookingStatus.PENDING_CANCELLATION, BookingStatus.COMPLETED}),
    BookingStatus.PENDING_CANCELLATION: frozenset({BookingStatus.CANCELLED, BookingStatus.CONFIRMED}),
    BookingStatus.REJECTED: frozenset(),
    BookingStatus.CANCELLED: frozenset(),
    BookingStatus.COMPLETED: frozenset(),
}

TERMINAL_STATUSES = frozenset({BookingStatus.REJECTED, BookingStatus.CANCELLED, BookingStatus.COMPLETED})


def can_transition(current: BookingStatus, target: BookingStatus) -> bool:
    return target in TRANSITIONS.get(current, frozenset())


def assert_transition(current: BookingStatus, target: BookingStatus) -> None:
    if not can_transition(current, target):
        raise StateError(
            f"Cannot move booking from {current.value} to {target.value}"
        )


def is_valid_path(statuses: list[BookingStatus]) -> bool:
    """True when ``statuses`` starts at PENDING_APPROVAL and follows only legal edges."""
    if not statuses or statuses[0] != BookingStatus.PENDING_APPROVAL:
        return False
    return all(can_transition(a, b) for a, b in zip(statuses, statuses[1:]))


@dataclass(frozen=True)
class Pricing(ValueObject):
    """
    Server-side price breakdown

    Invariant: total == subtotal - discount + service_fee, where the fee is
    ``fee_rate`` of the post-discount subtotal rounded half-up to whole
    currency units.
    """
    subtotal: Money
    discount: Money
    service_fee: Money
    total: Money

    @classmethod
    def compute(cls, subtotal: Money, discount: Money | None = None, fee_rate: Decimal = Decimal('0.05')) -> 'Pricing':
        discount = discount or Money.zero(subtotal.currency)
        if discount > subtotal:
            raise ValidationError("Discount cannot exceed the subtotal")
        discounted = subtotal - discount
        fee = (discounted * fee_rate).rounded()
        return cls(
            subtotal=subtotal,
            discount=discount,
            service_fee=fee,
            total=discounted + fee,
        )

    @property
    def currency(self) -> str:
        return self.subtotal.currency

    @property
    def host_share(self) -> Money:
        """What the host receives; the service fee stays with the platform"""
        return self.subtotal - self.discount

    def is_consistent(self) -> bool:
        return self.total == self.subtotal - self.discount + self.service_fee

    def to_dict(self) -> dict:
        return {
            'subtotal': str(self.subtotal.amount),
            'discount': str(self.discount.amount),
            'service_fee': str(self.service_fee.amount),
            'total': str(self.total.amount),
            'currency': self.currency,
        }


@dataclass(frozen=True)
class StatusChange(ValueObject):
    from_status: BookingStatus | None
    to_status: BookingStatus
    actor_id: int | None
    occurred_at: datetime


@dataclass(eq=False)
class Booking(Aggregate):
    """
    Booking Aggregate Root

    A guest's request to book a host's listing, with its own approval and
    payment lifecycle. Only the methods below change ``status``; every
    change is checked against TRANSITIONS and recorded for the audit trail.

    Key invariants:
    - Pricing total is always subtotal - discount + fee, never negative
    - Pay-now bookings cannot be approved before payment completes
    - previous_status is set only while a cancellation request is pending
    """

    # References
    guest_id: int
    host_id: int
    listing_id: int

    # Pricing
    pricing: Pricing
    payment_method: PaymentMethod
    payment_timing: PaymentTiming

    # Discount provider
    discount_kind: DiscountKind = DiscountKind.NONE
    discount_code: str = ''
    discount_provider_id: int | None = None

    # Status tracking
    status: BookingStatus = BookingStatus.PENDING_APPROVAL
    payment_status: PaymentStatus = PaymentStatus.PENDING
    previous_status: BookingStatus | None = None

    # External payment references
    intent_ref: str = ''
    capture_id: str = ''

    # Stay details
    stay: DateRange | None = None
    guests: int = 1
    message_to_host: str = ''

    # Decisions
    rejection_reason: str = ''
    cancellation_reason: str = ''
    needs_review: bool = False
    review_reason: str = ''

    # Timestamps
    paid_at: datetime | None = None
    approved_at: datetime | None = None
    rejected_at: datetime | None = None
    cancellation_requested_at: datetime | None = None
    cancelled_at: datetime | None = None
    completed_at: datetime | None = None

    # Status as last read from the store; the compare half of compare-and-swap
    persisted_status: BookingStatus | None = field(default=None, repr=False)
    _changes: list = field(default_factory=list, repr=False, init=False)

    def __post_init__(self):
        if self.guests < 1:
            raise ValidationError("Guests count must be at least 1")
        if not self.pricing.is_consistent():
            raise ValidationError("Booking total does not match subtotal - discount + fee")

    @classmethod
    def create(
        cls,
        *,
        guest_id: int,
        host_id: int,
        listing_id: int,
        pricing: Pricing,
        payment_method: PaymentMethod,
        payment_timing: PaymentTiming,
        discount_kind: DiscountKind = DiscountKind.NONE,
        discount_code: str = '',
        discount_provider_id: int | None = None,
        stay: DateRange | None = None,
        guests: int = 1,
        message_to_host: str = '',
    ) -> 'Booking':
        """
        Create a new booking request (-> PENDING_APPROVAL)

        Events: BookingCreated
        """
        if guest_id == host_id:
            raise ValidationError("Hosts cannot book their own listing")
        if pricing.total.is_zero:
            raise ValidationError("Booking total must be greater than zero")

        booking = cls(
            guest_id=guest_id,
            host_id=host_id,
            listing_id=listing_id,
            pricing=pricing,
            payment_method=payment_method,
            payment_timing=payment_timing,
            payment_status=(
                PaymentStatus.SCHEDULED if payment_timing == PaymentTiming.LATER else PaymentStatus.PENDING
            ),
            discount_kind=discount_kind,
            discount_code=discount_code,
            discount_provider_id=discount_provider_id,
            stay=stay,
            guests=guests,
            message_to_host=message_to_host,
        )
        booking._changes.append(
            StatusChange(None, BookingStatus.PENDING_APPROVAL, guest_id, booking.created_at)
        )

        from apps.bookings.domain.events import BookingCreated

        booking.add_event(BookingCreated(
            aggregate_id=booking.id,
            booking_id=booking.id,
            guest_id=guest_id,
            host_id=host_id,
            listing_id=listing_id,
            amounts=pricing.to_dict(),
            payment_method=payment_method.value,
        ))
        return booking

    # ===== Guards =====

    def _require_host(self, actor_id: int):
        if actor_id != self.host_id:
            raise AuthorizationError("Only the listing's host can do this")

    def _require_guest(self, actor_id: int):
        if actor_id != self.guest_id:
            raise AuthorizationError("Only the booking's guest can do this")

    def _move_to(self, target: BookingStatus, actor_id: int | None):
        assert_transition(self.status, target)
        now = utcnow()
        self._changes.append(StatusChange(self.status, target, actor_id, now))
        self.status = target
        self.updated_at = now
        return now

    # ===== Host actions =====

    def approve(self, actor_id: int):
        """
        Approve booking (PENDING_APPROVAL -> CONFIRMED)

        Pay-now bookings must be paid first.
        Events: BookingConfirmedEvent
        """
        self._require_host(actor_id)
        assert_transition(self.status, BookingStatus.CONFIRMED)
        if self.payment_timing == PaymentTiming.NOW and not self.is_paid:
            raise StateError("Payment must be completed before approving a pay-now booking")

        from apps.bookings.domain.events import BookingConfirmedEvent

        self.approved_at = self._move_to(BookingStatus.CONFIRMED, actor_id)
        self.add_event(BookingConfirmedEvent(
            aggregate_id=self.id,
            booking_id=self.id,
            guest_id=self.guest_id,
            host_id=self.host_id,
            amounts=self.pricing.to_dict(),
            dates=self.stay,
        ))

    def reject(self, actor_id: int, reason: str = ''):
        """
        Reject booking (PENDING_APPROVAL -> REJECTED)

        Events: BookingRejected
        """
        self._require_host(actor_id)

        from apps.bookings.domain.events import BookingRejected

        self.rejected_at = self._move_to(BookingStatus.REJECTED, actor_id)
        self.rejection_reason = reason
        self.add_event(BookingRejected(
            aggregate_id=self.id,
            booking_id=self.id,
            guest_id=self.guest_id,
            host_id=self.host_id,
            reason=reason,
            was_paid=self.is_paid,
        ))

    def approve_cancellation(self, actor_id: int):
        """
        Approve cancellation request (PENDING_CANCELLATION -> CANCELLED)

        Events: BookingCancelledEvent
        """
        self._require_host(actor_id)

        from apps.bookings.domain.events import BookingCancelledEvent

        self.cancelled_at = self._move_to(BookingStatus.CANCELLED, actor_id)
        self.previous_status = None
        self.add_event(BookingCancelledEvent(
            aggregate_id=self.id,
            booking_id=self.id,
            guest_id=self.guest_id,
            host_id=self.host_id,
            amounts=self.pricing.to_dict(),
            dates=self.stay,
            reason=self.cancellation_reason,
        ))

    def reject_cancellation(self, actor_id: int):
        """
        Reject cancellation request (PENDING_CANCELLATION -> previous status)

        No money moves. Events: CancellationRejected
        """
        self._require_host(actor_id)
        if self.status != BookingStatus.PENDING_CANCELLATION:
            raise StateError(
                f"Cannot reject cancellation of a booking in {self.status.value}"
            )
        restored = self.previous_status or BookingStatus.CONFIRMED

        from apps.bookings.domain.events import CancellationRejected

        self._move_to(restored, actor_id)
        self.previous_status = None
        self.add_event(CancellationRejected(
            aggregate_id=self.id,
            booking_id=self.id,
            guest_id=self.guest_id,
            restored_status=restored.value,
        ))

    # ===== Guest actions =====

    def request_cancellation(self, actor_id: int, reason: str = ''):
        """
        Request cancellation (CONFIRMED -> PENDING_CANCELLATION)

        Events: CancellationRequested
        """
        self._require_guest(actor_id)
        current = self.status

        from apps.bookings.domain.events import CancellationRequested

        self.cancellation_requested_at = self._move_to(BookingStatus.PENDING_CANCELLATION, actor_id)
        self.previous_status = current
        self.cancellation_reason = reason
        self.add_event(CancellationRequested(
            aggregate_id=self.id,
            booking_id=self.id,
            guest_id=self.guest_id,
            host_id=self.host_id,
            reason=reason,
        ))

    # ===== External triggers =====

    def complete_stay(self):
        """
        Complete stay (CONFIRMED -> COMPLETED)

        An unpaid stay still completes but is flagged for review.

        Events: BookingCompleted, PaymentFlaggedForReview
        """
        from apps.bookings.domain.events import BookingCompleted

        self.completed_at = self._move_to(BookingStatus.COMPLETED, None)
        self.add_event(BookingCompleted(
            aggregate_id=self.id,
            booking_id=self.id,
            guest_id=self.guest_id,
            host_id=self.host_id,
        ))
        if not self.is_paid:
            self.flag_for_review("Stay completed with payment outstanding")

    def mark_paid(self, *, intent_ref: str = '', capture_id: str = ''):
        """
        Record completed payment; ``status`` is not changed.

        Events: PaymentCompleted
        """
        if self.is_paid:
            raise StateError("Booking payment is already completed")

        from apps.bookings.domain.events import PaymentCompleted

        self.payment_status = PaymentStatus.COMPLETED
        self.paid_at = utcnow()
        self.updated_at = self.paid_at
        if intent_ref:
            self.intent_ref = intent_ref
        if capture_id:
            self.capture_id = capture_id
        self.add_event(PaymentCompleted(
            aggregate_id=self.id,
            booking_id=self.id,
            guest_id=self.guest_id,
            amount=self.pricing.total,
            payment_method=self.payment_method.value,
            capture_id=capture_id,
        ))

    def flag_for_review(self, reason: str):
        """
        Leave the booking for manual reconciliation.

        Events: PaymentFlaggedForReview
        """
        from apps.bookings.domain.events import PaymentFlaggedForReview

        self.needs_review = True
        self.review_reason = reason
        self.updated_at = utcnow()
        self.add_event(PaymentFlaggedForReview(
            aggregate_id=self.id,
            booking_id=self.id,
            reason=reason,
        ))

    # ===== Queries =====

    @property
    def is_paid(self) -> bool:
        return self.payment_status == PaymentStatus.COMPLETED

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def total(self) -> Money:
        return self.pricing.total

    @property
    def payout_amount(self) -> Money:
        return self.pricing.host_share

    @property
    def currency(self) -> str:
        return self.pricing.currency

    @property
    def status_changes(self) -> list[StatusChange]:
        return list(self._changes)

    def clear_status_changes(self):
        self._changes.clear()

    def __str__(self):
        return f"Booking {self.id} ({self.status.value})"

    def __repr__(self):
        return (
            f"Booking(id={self.id}, status={self.status.value}, "
            f"payment_status={self.payment_status.value}, total={self.pricing.total}, "
            f"version={self.version})"
        )
