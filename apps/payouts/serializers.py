"""Serializers for payout methods and transfers."""

from __future__ import annotations

from rest_framework import serializers  # type: ignore

from .models import HostAccount, PayoutMethod, PendingTransfer


class PayoutMethodSerializer(serializers.ModelSerializer):
    class Meta:
        model = PayoutMethod
        fields = ["id", "type", "account_ref", "is_default", "created_at"]
        read_only_fields = ["id", "created_at"]

    def validate(self, attrs):  # type: ignore
        if attrs.get("type") != PayoutMethod.Type.WALLET and not attrs.get("account_ref"):
            raise serializers.ValidationError(
                {"account_ref": "An account reference is required for PayPal and bank payouts."}
            )
        return attrs


class PendingTransferSerializer(serializers.ModelSerializer):
    class Meta:
        model = PendingTransfer
        fields = [
            "id",
            "booking_id",
            "amount",
            "currency",
            "method",
            "account_ref",
            "status",
            "payout_batch_id",
            "failure_reason",
            "submitted_at",
            "completed_at",
            "created_at",
        ]
        read_only_fields = fields


class HostAccountSerializer(serializers.ModelSerializer):
    class Meta:
        model = HostAccount
        fields = ["host", "total_earnings", "reward_points", "first_stay_awarded", "updated_at"]
        read_only_fields = fields
