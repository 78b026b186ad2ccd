"""Serializers for wallets and the transaction log."""

from __future__ import annotations

from decimal import Decimal

from rest_framework import serializers  # type: ignore

from .models import Transaction, Wallet


class WalletSerializer(serializers.ModelSerializer):
    class Meta:
        model = Wallet
        fields = ["owner", "balance", "currency", "updated_at"]
        read_only_fields = fields


class TransactionSerializer(serializers.ModelSerializer):
    class Meta:
        model = Transaction
        fields = [
            "id",
            "type",
            "amount",
            "currency",
            "status",
            "payment_method",
            "booking_id",
            "description",
            "reference",
            "created_at",
        ]
        read_only_fields = fields


class TopUpSerializer(serializers.Serializer):
    """Operator-entered top-up settled outside the platform."""

    owner = serializers.IntegerField()
    amount = serializers.DecimalField(max_digits=14, decimal_places=2, min_value=Decimal("0.01"))
    reference = serializers.CharField(max_length=128)
