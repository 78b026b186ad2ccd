"""Serializers for payment intents, captures and refunds."""

from __future__ import annotations

from rest_framework import serializers  # type: ignore

from .models import CaptureRecord, PaymentIntent, RefundRequest


class PaymentIntentSerializer(serializers.ModelSerializer):
    class Meta:
        model = PaymentIntent
        fields = ["intent_ref", "booking", "amount", "currency", "status", "approval_url", "expires_at", "created_at"]
        read_only_fields = fields


class PaymentIntentRequestSerializer(serializers.Serializer):
    """Client may propose the amount it expects to pay; the server decides."""

    amount = serializers.DecimalField(max_digits=12, decimal_places=2, required=False)
    currency = serializers.CharField(max_length=3, required=False)


class CaptureRecordSerializer(serializers.ModelSerializer):
    class Meta:
        model = CaptureRecord
        fields = ["capture_id", "booking_id", "captured_amount", "currency", "outcome", "created_at"]
        read_only_fields = fields


class CaptureWebhookSerializer(serializers.Serializer):
    intent_ref = serializers.CharField(max_length=128)
    capture_id = serializers.CharField(max_length=128)
    amount = serializers.DecimalField(max_digits=12, decimal_places=2)
    currency = serializers.CharField(max_length=3)
    payer_info = serializers.DictField(required=False, default=dict)


class RefundRequestSerializer(serializers.ModelSerializer):
    class Meta:
        model = RefundRequest
        fields = [
            "id",
            "booking_id",
            "guest",
            "amount",
            "currency",
            "reason",
            "status",
            "resolved_at",
            "resolved_by",
            "transaction",
            "created_at",
        ]
        read_only_fields = fields


class RefundDecisionSerializer(serializers.Serializer):
    reason = serializers.CharField(max_length=255, required=False, allow_blank=True, default="")
