"""Booking persistence models."""

from __future__ import annotations

import uuid
from decimal import Decimal

from django.conf import settings  # type: ignore
from django.db import models  # type: ignore
from django.utils.translation import gettext_lazy as _  # type: ignore


class Booking(models.Model):
    """Reservation request of a guest for a host's listing.

    Rows are never deleted. ``status`` and ``payment_status`` are written
    only by :class:`apps.bookings.repository.BookingStore` through
    conditional updates that bump ``version``.
    """

    class Status(models.TextChoices):
        PENDING_APPROVAL = "pending_approval", _("Pending approval")
        CONFIRMED = "confirmed", _("Confirmed")
        REJECTED = "rejected", _("Rejected")
        PENDING_CANCELLATION = "pending_cancellation", _("Pending cancellation")
        CANCELLED = "cancelled", _("Cancelled")
        COMPLETED = "completed", _("Completed")

    class PaymentStatus(models.TextChoices):
        PENDING = "pending", _("Pending")
        SCHEDULED = "scheduled", _("Scheduled")
        COMPLETED = "completed", _("Completed")

    class PaymentMethod(models.TextChoices):
        WALLET = "wallet", _("Wallet")
        EXTERNAL = "external", _("External gateway")

    class PaymentTiming(models.TextChoices):
        NOW = "now", _("Pay now")
        LATER = "later", _("Pay later")

    class DiscountKind(models.TextChoices):
        NONE = "none", _("None")
        COUPON = "coupon", _("Coupon")
        VOUCHER = "voucher", _("Voucher")

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    guest = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="guest_bookings",
    )
    host = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="host_bookings",
    )
    listing = models.ForeignKey(
        "listings.Listing",
        on_delete=models.PROTECT,
        related_name="bookings",
    )
    status = models.CharField(max_length=32, choices=Status.choices, default=Status.PENDING_APPROVAL)
    previous_status = models.CharField(max_length=32, choices=Status.choices, blank=True)
    payment_status = models.CharField(max_length=20, choices=PaymentStatus.choices, default=PaymentStatus.PENDING)
    payment_method = models.CharField(max_length=20, choices=PaymentMethod.choices)
    payment_timing = models.CharField(max_length=20, choices=PaymentTiming.choices, default=PaymentTiming.NOW)

    # Pricing, fixed at creation
    subtotal = models.DecimalField(max_digits=12, decimal_places=2)
    discount_kind = models.CharField(max_length=20, choices=DiscountKind.choices, default=DiscountKind.NONE)
    discount_code = models.CharField(max_length=32, blank=True)
    discount_provider_id = models.PositiveIntegerField(null=True, blank=True)
    discount_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    service_fee = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    total = models.DecimalField(max_digits=12, decimal_places=2)
    currency = models.CharField(max_length=3, default="PHP")

    # External payment references
    intent_ref = models.CharField(max_length=128, blank=True)
    capture_id = models.CharField(max_length=128, blank=True)

    # Stay details
    check_in = models.DateField(null=True, blank=True)
    check_out = models.DateField(null=True, blank=True)
    guests = models.PositiveSmallIntegerField(default=1)
    message_to_host = models.TextField(blank=True)

    rejection_reason = models.CharField(max_length=255, blank=True)
    cancellation_reason = models.CharField(max_length=255, blank=True)
    needs_review = models.BooleanField(default=False)
    review_reason = models.CharField(max_length=255, blank=True)

    paid_at = models.DateTimeField(null=True, blank=True)
    approved_at = models.DateTimeField(null=True, blank=True)
    rejected_at = models.DateTimeField(null=True, blank=True)
    cancellation_requested_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)

    version = models.PositiveIntegerField(default=0)
    created_at = models.DateTimeField()
    updated_at = models.DateTimeField()

    class Meta:
        ordering = ["-created_at"]
        constraints = [
            models.CheckConstraint(condition=models.Q(total__gt=0), name="booking_total_positive"),
            models.CheckConstraint(
                condition=models.Q(discount_amount__gte=0, discount_amount__lte=models.F("subtotal")),
                name="booking_discount_within_subtotal",
            ),
            models.CheckConstraint(
                condition=models.Q(check_in__isnull=True)
                | models.Q(check_out__isnull=True)
                | models.Q(check_out__gt=models.F("check_in")),
                name="booking_valid_dates",
            ),
        ]
        indexes = [
            models.Index(fields=["status", "payment_status"]),
            models.Index(fields=["guest", "status"]),
            models.Index(fields=["host", "status"]),
        ]

    def __str__(self) -> str:
        return f"Booking {self.id} ({self.status})"


class BookingStatusChange(models.Model):
    """Append-only audit trail of booking transitions."""

    booking = models.ForeignKey(Booking, on_delete=models.PROTECT, related_name="status_changes")
    from_status = models.CharField(max_length=32, choices=Booking.Status.choices, blank=True)
    to_status = models.CharField(max_length=32, choices=Booking.Status.choices)
    actor = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )
    created_at = models.DateTimeField()

    class Meta:
        ordering = ["created_at", "id"]

    def __str__(self) -> str:
        return f"{self.booking_id}: {self.from_status or '-'} -> {self.to_status}"
