"""
Booking Domain Events

Events that represent things that have happened in the booking domain.
These are published after successful transaction commits and consumed by
collaborators outside the core (notification senders, analytics); the core
never formats or delivers messages itself.
"""

from dataclasses import dataclass
from uuid import UUID

from shared.domain.base import DomainEvent
from shared.domain.value_objects import DateRange, Money


# ===== Lifecycle Events =====

@dataclass
class BookingCreated(DomainEvent):
    """
    Event: A guest submitted a booking request

    Triggers:
    - Notify host of a request awaiting approval
    """
    booking_id: UUID
    guest_id: int
    host_id: int
    listing_id: int
    amounts: dict
    payment_method: str


@dataclass
class BookingConfirmedEvent(DomainEvent):
    """
    Event: Host approved the booking (PENDING_APPROVAL -> CONFIRMED)

    Triggers:
    - Send booking confirmation to guest
    - Notify host
    """
    booking_id: UUID
    guest_id: int
    host_id: int
    amounts: dict
    dates: DateRange | None = None


@dataclass
class BookingRejected(DomainEvent):
    """Event: Host rejected the booking (PENDING_APPROVAL -> REJECTED)"""
    booking_id: UUID
    guest_id: int
    host_id: int
    reason: str = ''
    was_paid: bool = False


@dataclass
class CancellationRequested(DomainEvent):
    """Event: Guest asked to cancel a confirmed booking"""
    booking_id: UUID
    guest_id: int
    host_id: int
    reason: str = ''


@dataclass
class CancellationRejected(DomainEvent):
    """Event: Host kept the booking; status restored"""
    booking_id: UUID
    guest_id: int
    restored_status: str


@dataclass
class BookingCancelledEvent(DomainEvent):
    """
    Event: Host approved the cancellation (PENDING_CANCELLATION -> CANCELLED)

    Triggers:
    - Send cancellation notice to guest and host
    """
    booking_id: UUID
    guest_id: int
    host_id: int
    amounts: dict
    dates: DateRange | None = None
    reason: str = ''


@dataclass
class BookingCompleted(DomainEvent):
    """
    Event: Stay finished (CONFIRMED -> COMPLETED)

    Triggers:
    - Host milestone accounting
    - Request review from guest
    """
    booking_id: UUID
    guest_id: int
    host_id: int


# ===== Payment Events =====

@dataclass
class PaymentCompleted(DomainEvent):
    """Event: Funds for the booking were captured or debited"""
    booking_id: UUID
    guest_id: int
    amount: Money
    payment_method: str
    capture_id: str = ''


@dataclass
class PaymentFlaggedForReview(DomainEvent):
    """
    Event: Payment could not be reconciled automatically

    Triggers:
    - Alert support for manual reconciliation
    """
    booking_id: UUID
    reason: str


# ===== Host Events =====

@dataclass
class HostMilestoneReached(DomainEvent):
    """Event: Host completed their first stay and earned reward points"""
    host_id: int
    booking_id: UUID
    points: int
