"""
Booking store

Maps the Booking aggregate to its row and enforces optimistic concurrency:
every save is ``UPDATE ... WHERE id = ? AND status = ? AND version = ?``
that bumps ``version``. Zero rows updated means someone else wrote the
booking after it was read, and the caller gets StaleStateError instead of
silently overwriting their change.
"""

from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal

from django.db import transaction  # type: ignore
from django.db.models import F  # type: ignore

from apps.bookings.domain.entities import (
    Booking,
    BookingStatus,
    DiscountKind,
    PaymentMethod,
    PaymentStatus,
    PaymentTiming,
    Pricing,
)
from apps.bookings.models import Booking as BookingModel, BookingStatusChange
from shared.domain.exceptions import NotFoundError, StaleStateError
from shared.domain.value_objects import DateRange, Money

logger = logging.getLogger(__name__)


class BookingStore:
    """Persistence for Booking aggregates."""

    def get(self, booking_id) -> Booking:
        row = BookingModel.objects.filter(pk=booking_id).first()
        if row is None:
            raise NotFoundError(f"Booking {booking_id} not found")
        return self.to_entity(row)

    def add(self, booking: Booking) -> Booking:
        """Insert a new booking and its creation audit entry."""
        fields = self._to_fields(booking)
        with transaction.atomic():
            BookingModel.objects.create(
                id=booking.id,
                guest_id=booking.guest_id,
                host_id=booking.host_id,
                listing_id=booking.listing_id,
                payment_method=booking.payment_method.value,
                payment_timing=booking.payment_timing.value,
                subtotal=booking.pricing.subtotal.amount,
                discount_kind=booking.discount_kind.value,
                discount_code=booking.discount_code,
                discount_provider_id=booking.discount_provider_id,
                discount_amount=booking.pricing.discount.amount,
                service_fee=booking.pricing.service_fee.amount,
                total=booking.pricing.total.amount,
                currency=booking.currency,
                check_in=booking.stay.start_date if booking.stay else None,
                check_out=booking.stay.end_date if booking.stay else None,
                guests=booking.guests,
                message_to_host=booking.message_to_host,
                version=booking.version,
                created_at=booking.created_at,
                **fields,
            )
            self._record_changes(booking)

        booking.persisted_status = booking.status
        logger.info(
            f"Booking {booking.id} created: guest={booking.guest_id} host={booking.host_id} "
            f"total={booking.total}"
        )
        return booking

    def save(self, booking: Booking) -> Booking:
        """
        Conditionally write the booking's mutable state.

        Raises StaleStateError when the row no longer has the status and
        version this aggregate was read with.
        """
        expected_status = booking.persisted_status or booking.status
        with transaction.atomic():
            updated = BookingModel.objects.filter(
                pk=booking.id,
                status=expected_status.value,
                version=booking.version,
            ).update(version=F("version") + 1, **self._to_fields(booking))

            if not updated:
                logger.warning(
                    f"Stale write rejected for booking {booking.id}: expected "
                    f"status={expected_status.value} version={booking.version}"
                )
                raise StaleStateError(
                    f"Booking {booking.id} was changed by another request; reload and retry"
                )
            self._record_changes(booking)

        if expected_status != booking.status:
            logger.info(f"Booking {booking.id}: {expected_status.value} -> {booking.status.value}")
        booking.version += 1
        booking.persisted_status = booking.status
        return booking

    def history(self, booking_id) -> list[BookingStatus]:
        """Observed sequence of statuses, oldest first."""
        statuses = BookingStatusChange.objects.filter(booking_id=booking_id).values_list("to_status", flat=True)
        return [BookingStatus(value) for value in statuses]

    def stale_unpaid(self, created_before: datetime):
        return BookingModel.objects.filter(
            status=BookingModel.Status.PENDING_APPROVAL,
            created_at__lt=created_before,
        ).exclude(payment_status=BookingModel.PaymentStatus.COMPLETED)

    def count_completed_for_host(self, host_id: int) -> int:
        return BookingModel.objects.filter(host_id=host_id, status=BookingModel.Status.COMPLETED).count()

    # ===== Mapping =====

    def _record_changes(self, booking: Booking):
        changes = booking.status_changes
        if not changes:
            return
        BookingStatusChange.objects.bulk_create([
            BookingStatusChange(
                booking_id=booking.id,
                from_status=change.from_status.value if change.from_status else "",
                to_status=change.to_status.value,
                actor_id=change.actor_id,
                created_at=change.occurred_at,
            )
            for change in changes
        ])
        booking.clear_status_changes()

    @staticmethod
    def _to_fields(booking: Booking) -> dict:
        return {
            "status": booking.status.value,
            "previous_status": booking.previous_status.value if booking.previous_status else "",
            "payment_status": booking.payment_status.value,
            "intent_ref": booking.intent_ref,
            "capture_id": booking.capture_id,
            "rejection_reason": booking.rejection_reason,
            "cancellation_reason": booking.cancellation_reason,
            "needs_review": booking.needs_review,
            "review_reason": booking.review_reason,
            "paid_at": booking.paid_at,
            "approved_at": booking.approved_at,
            "rejected_at": booking.rejected_at,
            "cancellation_requested_at": booking.cancellation_requested_at,
            "cancelled_at": booking.cancelled_at,
            "completed_at": booking.completed_at,
            "updated_at": booking.updated_at,
        }

    @staticmethod
    def to_entity(row: BookingModel) -> Booking:
        currency = row.currency

        def money(value: Decimal) -> Money:
            return Money(value, currency)

        stay = None
        if row.check_in and row.check_out:
            stay = DateRange(row.check_in, row.check_out)

        return Booking(
            id=row.id,
            created_at=row.created_at,
            updated_at=row.updated_at,
            version=row.version,
            guest_id=row.guest_id,
            host_id=row.host_id,
            listing_id=row.listing_id,
            pricing=Pricing(
                subtotal=money(row.subtotal),
                discount=money(row.discount_amount),
                service_fee=money(row.service_fee),
                total=money(row.total),
            ),
            payment_method=PaymentMethod(row.payment_method),
            payment_timing=PaymentTiming(row.payment_timing),
            discount_kind=DiscountKind(row.discount_kind),
            discount_code=row.discount_code,
            discount_provider_id=row.discount_provider_id,
            status=BookingStatus(row.status),
            payment_status=PaymentStatus(row.payment_status),
            previous_status=BookingStatus(row.previous_status) if row.previous_status else None,
            intent_ref=row.intent_ref,
            capture_id=row.capture_id,
            stay=stay,
            guests=row.guests,
            message_to_host=row.message_to_host,
            rejection_reason=row.rejection_reason,
            cancellation_reason=row.cancellation_reason,
            needs_review=row.needs_review,
            review_reason=row.review_reason,
            paid_at=row.paid_at,
            approved_at=row.approved_at,
            rejected_at=row.rejected_at,
            cancellation_requested_at=row.cancellation_requested_at,
            cancelled_at=row.cancelled_at,
            completed_at=row.completed_at,
            persisted_status=BookingStatus(row.status),
        )
