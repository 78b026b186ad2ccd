"""
Booking event subscribers

Delivery of notifications is outside this service; subscribers here write
each event to the audit log as JSON and raise operator-facing warnings.
"""

import logging

from shared.application.message_bus import message_bus
from apps.bookings.domain.events import (
    BookingCancelledEvent,
    BookingCompleted,
    BookingConfirmedEvent,
    BookingCreated,
    BookingRejected,
    CancellationRejected,
    CancellationRequested,
    HostMilestoneReached,
    PaymentCompleted,
    PaymentFlaggedForReview,
)

logger = logging.getLogger('apps.bookings.events')


@message_bus.subscribe(
    BookingCreated,
    BookingConfirmedEvent,
    BookingRejected,
    CancellationRequested,
    CancellationRejected,
    BookingCancelledEvent,
    BookingCompleted,
    PaymentCompleted,
    HostMilestoneReached,
)
def audit_event(event):
    logger.info(f"{event.__class__.__name__}", extra={'event': event.to_dict()})


@message_bus.subscribe(PaymentFlaggedForReview)
def alert_support(event: PaymentFlaggedForReview):
    logger.warning(f"Booking {event.booking_id} needs payment review: {event.reason}")
