"""Discount provider models."""

from __future__ import annotations

from django.conf import settings  # type: ignore
from django.core.validators import MaxValueValidator, MinValueValidator  # type: ignore
from django.db import models  # type: ignore
from django.utils import timezone  # type: ignore
from django.utils.translation import gettext_lazy as _  # type: ignore


class Coupon(models.Model):
    """Promo code a host defines for their listings."""

    class DiscountType(models.TextChoices):
        PERCENTAGE = "percentage", _("Percentage")
        FIXED = "fixed", _("Fixed amount")

    host = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="coupons",
    )
    code = models.CharField(max_length=32)
    discount_type = models.CharField(max_length=20, choices=DiscountType.choices)
    discount_value = models.DecimalField(max_digits=12, decimal_places=2)
    listing = models.ForeignKey(
        "listings.Listing",
        on_delete=models.CASCADE,
        related_name="coupons",
        null=True,
        blank=True,
        help_text=_("Restrict the coupon to a single listing."),
    )
    min_purchase = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    max_uses = models.PositiveIntegerField(null=True, blank=True)
    usage_count = models.PositiveIntegerField(default=0)
    valid_from = models.DateTimeField(null=True, blank=True)
    valid_until = models.DateTimeField(null=True, blank=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at"]
        constraints = [
            models.UniqueConstraint(fields=["host", "code"], name="coupon_code_unique_per_host"),
            models.CheckConstraint(condition=models.Q(discount_value__gt=0), name="coupon_value_positive"),
            models.CheckConstraint(
                condition=models.Q(max_uses__isnull=True) | models.Q(usage_count__lte=models.F("max_uses")),
                name="coupon_usage_within_cap",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.code} ({self.discount_type} {self.discount_value})"

    def save(self, *args, **kwargs):  # type: ignore
        self.code = self.code.strip().upper()
        super().save(*args, **kwargs)


class Voucher(models.Model):
    """Host-issued discount a guest claims before applying."""

    code = models.CharField(max_length=8, unique=True)
    host = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="issued_vouchers",
    )
    discount_percent = models.PositiveSmallIntegerField(
        validators=[MinValueValidator(1), MaxValueValidator(50)],
    )
    listing = models.ForeignKey(
        "listings.Listing",
        on_delete=models.CASCADE,
        related_name="vouchers",
        null=True,
        blank=True,
    )
    starts_at = models.DateTimeField(default=timezone.now)
    expires_at = models.DateTimeField(null=True, blank=True)
    usage_limit = models.PositiveIntegerField(default=1)
    usage_count = models.PositiveIntegerField(default=0)
    claimed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        related_name="claimed_vouchers",
        null=True,
        blank=True,
    )
    claimed_at = models.DateTimeField(null=True, blank=True)
    is_used = models.BooleanField(default=False)
    used_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at"]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(discount_percent__gte=1, discount_percent__lte=50),
                name="voucher_percent_range",
            ),
            models.CheckConstraint(
                condition=models.Q(usage_count__lte=models.F("usage_limit")),
                name="voucher_usage_within_limit",
            ),
        ]
        indexes = [
            models.Index(fields=["claimed_by", "is_used"]),
        ]

    def __str__(self) -> str:
        return f"{self.code} ({self.discount_percent}%)"


class DiscountRedemption(models.Model):
    """One row per booking whose discount usage has been counted."""

    class Kind(models.TextChoices):
        COUPON = "coupon", _("Coupon")
        VOUCHER = "voucher", _("Voucher")

    kind = models.CharField(max_length=20, choices=Kind.choices)
    coupon = models.ForeignKey(Coupon, on_delete=models.PROTECT, null=True, blank=True, related_name="redemptions")
    voucher = models.ForeignKey(Voucher, on_delete=models.PROTECT, null=True, blank=True, related_name="redemptions")
    booking_id = models.UUIDField(unique=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return f"{self.kind} redemption for booking {self.booking_id}"
