"""Listing records used for server-side pricing."""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

from django.conf import settings  # type: ignore
from django.core.validators import MaxValueValidator, MinValueValidator  # type: ignore
from django.db import models  # type: ignore
from django.utils.translation import gettext_lazy as _  # type: ignore


class Listing(models.Model):
    """A home, experience or service a host offers for booking."""

    class Category(models.TextChoices):
        HOME = "home", _("Home")
        EXPERIENCE = "experience", _("Experience")
        SERVICE = "service", _("Service")

    class Status(models.TextChoices):
        ACTIVE = "active", _("Active")
        DRAFT = "draft", _("Draft")
        ARCHIVED = "archived", _("Archived")

    host = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="listings",
    )
    title = models.CharField(max_length=255)
    category = models.CharField(max_length=20, choices=Category.choices, default=Category.HOME)
    rate = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        validators=[MinValueValidator(Decimal("0.01"))],
        help_text=_("Price per night for homes, per guest otherwise."),
    )
    discount_percent = models.PositiveSmallIntegerField(
        default=0,
        validators=[MaxValueValidator(100)],
        help_text=_("Listing-level discount applied before any coupon or voucher."),
    )
    max_guests = models.PositiveSmallIntegerField(default=1)
    currency = models.CharField(max_length=3, default="PHP")
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.ACTIVE)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        constraints = [
            models.CheckConstraint(condition=models.Q(rate__gt=0), name="listing_rate_positive"),
        ]
        indexes = [
            models.Index(fields=["host", "status"]),
        ]

    def __str__(self) -> str:
        return f"{self.title} ({self.category})"

    @property
    def is_bookable(self) -> bool:
        return self.status == self.Status.ACTIVE

    @property
    def effective_rate(self) -> Decimal:
        """Rate after the listing-level discount."""
        factor = (Decimal(100) - Decimal(self.discount_percent)) / Decimal(100)
        return self.rate * factor

    def quote_subtotal(self, *, nights: int = 1, guests: int = 1) -> Decimal:
        """
        Subtotal before coupons, vouchers and the platform fee.

        Homes are priced per night and per guest; experiences and services
        per guest.
        """
        units = Decimal(guests)
        if self.category == self.Category.HOME:
            units *= Decimal(nights)
        return (self.effective_rate * units).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
