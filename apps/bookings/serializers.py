"""Serializers for the booking domain."""

from __future__ import annotations

from rest_framework import serializers  # type: ignore

from .models import Booking, BookingStatusChange


class BookingSerializer(serializers.ModelSerializer):
    class Meta:
        model = Booking
        fields = [
            "id",
            "guest",
            "host",
            "listing",
            "status",
            "previous_status",
            "payment_status",
            "payment_method",
            "payment_timing",
            "subtotal",
            "discount_kind",
            "discount_code",
            "discount_amount",
            "service_fee",
            "total",
            "currency",
            "intent_ref",
            "capture_id",
            "check_in",
            "check_out",
            "guests",
            "message_to_host",
            "rejection_reason",
            "cancellation_reason",
            "needs_review",
            "paid_at",
            "approved_at",
            "rejected_at",
            "cancellation_requested_at",
            "cancelled_at",
            "completed_at",
            "version",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class BookingCreateSerializer(serializers.Serializer):
    """Booking request from a guest; the price is computed server-side."""

    listing = serializers.IntegerField()
    payment_method = serializers.ChoiceField(choices=Booking.PaymentMethod.choices, default=Booking.PaymentMethod.WALLET)
    payment_timing = serializers.ChoiceField(choices=Booking.PaymentTiming.choices, default=Booking.PaymentTiming.NOW)
    check_in = serializers.DateField(required=False, allow_null=True)
    check_out = serializers.DateField(required=False, allow_null=True)
    guests = serializers.IntegerField(min_value=1, default=1)
    promo_code = serializers.CharField(max_length=32, required=False, allow_blank=True, default="")
    voucher_code = serializers.CharField(max_length=32, required=False, allow_blank=True, default="")
    message_to_host = serializers.CharField(required=False, allow_blank=True, default="")
    total = serializers.DecimalField(max_digits=12, decimal_places=2, required=False, allow_null=True)

    def validate(self, attrs):  # type: ignore
        check_in = attrs.get("check_in")
        check_out = attrs.get("check_out")
        if bool(check_in) != bool(check_out):
            raise serializers.ValidationError("Both check-in and check-out dates are required.")
        if check_in and check_out and check_in >= check_out:
            raise serializers.ValidationError("Check-out must be after check-in.")
        if attrs.get("promo_code") and attrs.get("voucher_code"):
            raise serializers.ValidationError("Only one promo code or voucher can be applied.")
        return attrs


class ReasonSerializer(serializers.Serializer):
    reason = serializers.CharField(max_length=255, required=False, allow_blank=True, default="")


class ProposedAmountSerializer(serializers.Serializer):
    amount = serializers.DecimalField(max_digits=12, decimal_places=2, required=False, allow_null=True)
    currency = serializers.CharField(max_length=3, required=False, allow_null=True)


class BookingStatusChangeSerializer(serializers.ModelSerializer):
    class Meta:
        model = BookingStatusChange
        fields = ["from_status", "to_status", "actor", "created_at"]
        read_only_fields = fields
