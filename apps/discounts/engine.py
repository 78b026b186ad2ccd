"""
Discount engine

Validation and pricing are read-only. The only writes are the
administrative ones (create, claim) and :meth:`DiscountEngine.apply_and_commit`,
which counts a provider's use once per booking when its payment completes.
"""

from __future__ import annotations

import logging
import secrets
import string
from datetime import datetime

from django.db import IntegrityError, transaction  # type: ignore
from django.db.models import F, Q  # type: ignore
from django.utils import timezone  # type: ignore

from shared.domain.exceptions import DomainError, NotFoundError, ValidationError
from shared.domain.value_objects import to_decimal

from .domain import AppliedDiscount, CouponProvider, DiscountRejected, VoucherProvider
from .models import Coupon, DiscountRedemption, Voucher

logger = logging.getLogger(__name__)

VOUCHER_CODE_ALPHABET = string.ascii_uppercase + string.digits
VOUCHER_CODE_LENGTH = 8
MAX_CODE_ATTEMPTS = 10


class DiscountEngine:
    """Validates, prices and redeems coupons and vouchers."""

    # ------------------------------------------------------------ validation

    def validate_coupon(
        self,
        code: str,
        listing_id: int | None,
        host_id: int,
        subtotal,
        *,
        now: datetime | None = None,
    ) -> AppliedDiscount:
        now = now or timezone.now()
        subtotal = to_decimal(subtotal)
        normalized = (code or "").strip().upper()
        if not normalized:
            raise ValidationError("Promo code is required")

        coupon = Coupon.objects.filter(host_id=host_id, code=normalized).first()
        if coupon is None:
            raise DiscountRejected("invalid_code", "Invalid promo code")
        if not coupon.is_active:
            raise DiscountRejected("inactive", "This promo code is no longer active")
        if coupon.valid_from and now < coupon.valid_from:
            raise DiscountRejected("not_yet_valid", "This promo code is not yet valid")
        if coupon.valid_until and now > coupon.valid_until:
            raise DiscountRejected("expired", "This promo code has expired")
        if coupon.min_purchase and subtotal < coupon.min_purchase:
            raise DiscountRejected(
                "min_purchase", f"Minimum purchase of {coupon.min_purchase} required"
            )
        if coupon.max_uses is not None and coupon.usage_count >= coupon.max_uses:
            raise DiscountRejected("limit_reached", "This promo code has reached its usage limit")
        if coupon.listing_id and coupon.listing_id != listing_id:
            raise DiscountRejected("wrong_listing", "This promo code is not valid for this listing")

        provider = CouponProvider(
            provider_id=coupon.pk,
            code=coupon.code,
            discount_type=coupon.discount_type,
            discount_value=coupon.discount_value,
        )
        return AppliedDiscount.price(provider, subtotal)

    def validate_voucher(
        self,
        code: str,
        guest_id: int,
        subtotal,
        listing_id: int | None = None,
        host_id: int | None = None,
        *,
        now: datetime | None = None,
    ) -> AppliedDiscount:
        now = now or timezone.now()
        subtotal = to_decimal(subtotal)
        normalized = (code or "").strip().upper()
        if not normalized:
            raise ValidationError("Voucher code is required")

        voucher = Voucher.objects.filter(code=normalized).first()
        if voucher is None:
            raise DiscountRejected("invalid_code", "Invalid voucher code")
        if voucher.claimed_by_id != guest_id:
            raise DiscountRejected("not_claimed", "Claim this voucher before using it")
        if voucher.is_used:
            raise DiscountRejected("already_used", "This voucher has already been used")
        if voucher.usage_count >= voucher.usage_limit:
            raise DiscountRejected("limit_reached", "This voucher has reached its usage limit")
        if now < voucher.starts_at:
            raise DiscountRejected("not_yet_valid", "This voucher is not yet valid")
        if voucher.expires_at and now > voucher.expires_at:
            raise DiscountRejected("expired", "This voucher has expired")
        if voucher.listing_id and voucher.listing_id != listing_id:
            raise DiscountRejected("wrong_listing", "This voucher is not valid for this listing")
        if host_id is not None and voucher.host_id != host_id:
            raise DiscountRejected("wrong_host", "This voucher was issued by another host")

        provider = VoucherProvider(
            provider_id=voucher.pk,
            code=voucher.code,
            discount_percent=voucher.discount_percent,
        )
        return AppliedDiscount.price(provider, subtotal)

    def resolve(
        self,
        *,
        promo_code: str | None,
        voucher_code: str | None,
        guest_id: int,
        listing_id: int,
        host_id: int,
        subtotal,
    ) -> AppliedDiscount | None:
        """Pick the single provider for a booking; presenting both is rejected."""
        if promo_code and voucher_code:
            raise DiscountRejected(
                "multiple_discounts", "Only one promo code or voucher can be applied"
            )
        if promo_code:
            return self.validate_coupon(promo_code, listing_id, host_id, subtotal)
        if voucher_code:
            return self.validate_voucher(voucher_code, guest_id, subtotal, listing_id, host_id)
        return None

    # ------------------------------------------------------------ redemption

    def apply_and_commit(self, kind: str, provider_id: int, booking_id) -> bool:
        """
        Count one use of the provider for ``booking_id``.

        Returns False when this booking was already counted. Raises
        DiscountRejected when the cap was reached by other bookings in the
        meantime; nothing is written in that case.
        """
        try:
            with transaction.atomic():
                DiscountRedemption.objects.create(
                    kind=kind,
                    coupon_id=provider_id if kind == CouponProvider.kind else None,
                    voucher_id=provider_id if kind == VoucherProvider.kind else None,
                    booking_id=booking_id,
                )
                if kind == CouponProvider.kind:
                    self._increment_coupon(provider_id)
                elif kind == VoucherProvider.kind:
                    self._increment_voucher(provider_id)
                else:
                    raise ValidationError(f"Unknown discount provider: {kind}")
        except IntegrityError:
            logger.info(f"Discount usage for booking {booking_id} already counted")
            return False

        logger.info(f"Counted {kind} {provider_id} usage for booking {booking_id}")
        return True

    def _increment_coupon(self, coupon_id: int) -> None:
        updated = (
            Coupon.objects.filter(pk=coupon_id)
            .filter(Q(max_uses__isnull=True) | Q(usage_count__lt=F("max_uses")))
            .update(usage_count=F("usage_count") + 1)
        )
        if not updated:
            raise DiscountRejected("limit_reached", "This promo code has reached its usage limit")

    def _increment_voucher(self, voucher_id: int) -> None:
        now = timezone.now()
        updated = Voucher.objects.filter(
            pk=voucher_id, is_used=False, usage_count__lt=F("usage_limit")
        ).update(usage_count=F("usage_count") + 1)
        if not updated:
            raise DiscountRejected("limit_reached", "This voucher has reached its usage limit")
        Voucher.objects.filter(pk=voucher_id, usage_count__gte=F("usage_limit")).update(
            is_used=True, used_at=now
        )

    # -------------------------------------------------------------- authoring

    def create_coupon(
        self,
        host_id: int,
        code: str,
        discount_type: str,
        discount_value,
        *,
        listing_id: int | None = None,
        min_purchase=None,
        max_uses: int | None = None,
        valid_from: datetime | None = None,
        valid_until: datetime | None = None,
    ) -> Coupon:
        normalized = (code or "").strip().upper()
        if not normalized:
            raise ValidationError("Promo code is required")
        value = to_decimal(discount_value)
        if discount_type not in Coupon.DiscountType.values:
            raise ValidationError(f"Unknown discount type: {discount_type}")
        if value <= 0:
            raise ValidationError("Discount value must be positive")
        if discount_type == Coupon.DiscountType.PERCENTAGE and value > 100:
            raise ValidationError("Percentage discount cannot exceed 100")
        if valid_from and valid_until and valid_from >= valid_until:
            raise ValidationError("valid_from must be before valid_until")
        if Coupon.objects.filter(host_id=host_id, code=normalized).exists():
            raise ValidationError(f"Promo code {normalized} already exists")

        coupon = Coupon.objects.create(
            host_id=host_id,
            code=normalized,
            discount_type=discount_type,
            discount_value=value,
            listing_id=listing_id,
            min_purchase=min_purchase,
            max_uses=max_uses,
            valid_from=valid_from,
            valid_until=valid_until,
        )
        logger.info(f"Host {host_id} created coupon {coupon.code}")
        return coupon

    def create_voucher(
        self,
        host_id: int,
        discount_percent: int,
        *,
        listing_id: int | None = None,
        starts_at: datetime | None = None,
        expires_at: datetime | None = None,
        usage_limit: int = 1,
    ) -> Voucher:
        if not 1 <= int(discount_percent) <= 50:
            raise ValidationError("Voucher discount must be between 1% and 50%")
        if usage_limit < 1:
            raise ValidationError("Usage limit must be at least 1")
        starts_at = starts_at or timezone.now()
        if expires_at and expires_at <= starts_at:
            raise ValidationError("Voucher must expire after it starts")

        voucher = Voucher.objects.create(
            code=self._generate_voucher_code(),
            host_id=host_id,
            discount_percent=int(discount_percent),
            listing_id=listing_id,
            starts_at=starts_at,
            expires_at=expires_at,
            usage_limit=usage_limit,
        )
        logger.info(f"Host {host_id} issued voucher {voucher.code} ({voucher.discount_percent}%)")
        return voucher

    def _generate_voucher_code(self) -> str:
        for _attempt in range(MAX_CODE_ATTEMPTS):
            code = "".join(secrets.choice(VOUCHER_CODE_ALPHABET) for _ in range(VOUCHER_CODE_LENGTH))
            if not Voucher.objects.filter(code=code).exists():
                return code
        raise DomainError("Could not generate a unique voucher code", code="code_generation_failed")

    # --------------------------------------------------------------- claiming

    def claim_voucher(self, voucher_id: int, guest_id: int) -> Voucher:
        now = timezone.now()
        claimed = (
            Voucher.objects.filter(
                pk=voucher_id,
                claimed_by__isnull=True,
                is_used=False,
                usage_count__lt=F("usage_limit"),
            )
            .filter(Q(expires_at__isnull=True) | Q(expires_at__gt=now))
            .update(claimed_by_id=guest_id, claimed_at=now)
        )
        voucher = Voucher.objects.filter(pk=voucher_id).first()
        if voucher is None:
            raise NotFoundError(f"Voucher {voucher_id} not found")
        if claimed:
            logger.info(f"Guest {guest_id} claimed voucher {voucher.code}")
            return voucher

        if voucher.claimed_by_id == guest_id:
            return voucher
        if voucher.claimed_by_id is not None:
            raise DiscountRejected("already_claimed", "This voucher has already been claimed")
        if voucher.is_used or voucher.usage_count >= voucher.usage_limit:
            raise DiscountRejected("limit_reached", "This voucher has reached its usage limit")
        raise DiscountRejected("expired", "This voucher has expired")

    def available_vouchers(self, *, host_id: int | None = None, listing_id: int | None = None, now=None):
        now = now or timezone.now()
        qs = Voucher.objects.filter(
            claimed_by__isnull=True,
            is_used=False,
            usage_count__lt=F("usage_limit"),
            starts_at__lte=now,
        ).filter(Q(expires_at__isnull=True) | Q(expires_at__gt=now))
        if host_id is not None:
            qs = qs.filter(host_id=host_id)
        if listing_id is not None:
            qs = qs.filter(Q(listing_id__isnull=True) | Q(listing_id=listing_id))
        return qs

    def claimed_vouchers(self, guest_id: int):
        return Voucher.objects.filter(claimed_by_id=guest_id).order_by("is_used", "-claimed_at")

