"""Serializers for coupons, vouchers and price quotes."""

from __future__ import annotations

from decimal import Decimal

from rest_framework import serializers  # type: ignore

from .models import Coupon, Voucher


class CouponSerializer(serializers.ModelSerializer):
    class Meta:
        model = Coupon
        fields = [
            "id",
            "code",
            "discount_type",
            "discount_value",
            "listing",
            "min_purchase",
            "max_uses",
            "usage_count",
            "valid_from",
            "valid_until",
            "is_active",
            "created_at",
        ]
        read_only_fields = ["id", "usage_count", "is_active", "created_at"]
        extra_kwargs = {
            "discount_value": {"min_value": Decimal("0.01")},
        }


class VoucherSerializer(serializers.ModelSerializer):
    class Meta:
        model = Voucher
        fields = [
            "id",
            "code",
            "host",
            "discount_percent",
            "listing",
            "starts_at",
            "expires_at",
            "usage_limit",
            "usage_count",
            "claimed_at",
            "is_used",
            "used_at",
        ]
        read_only_fields = [
            "id",
            "code",
            "host",
            "usage_count",
            "claimed_at",
            "is_used",
            "used_at",
        ]
        extra_kwargs = {
            "starts_at": {"required": False},
            "discount_percent": {"min_value": 1, "max_value": 50},
        }


class QuoteRequestSerializer(serializers.Serializer):
    listing = serializers.IntegerField()
    check_in = serializers.DateField(required=False, allow_null=True)
    check_out = serializers.DateField(required=False, allow_null=True)
    guests = serializers.IntegerField(min_value=1, default=1)
    promo_code = serializers.CharField(max_length=32, required=False, allow_blank=True, default="")
    voucher_code = serializers.CharField(max_length=32, required=False, allow_blank=True, default="")
