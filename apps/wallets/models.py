"""Wallet and transaction-log models."""

from __future__ import annotations

from decimal import Decimal

from django.conf import settings  # type: ignore
from django.db import models  # type: ignore
from django.utils.translation import gettext_lazy as _  # type: ignore


class Wallet(models.Model):
    """Internal balance account of a guest or host."""

    owner = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="wallet",
    )
    balance = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal("0.00"))
    currency = models.CharField(max_length=3, default="PHP")
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        constraints = [
            models.CheckConstraint(
                condition=models.Q(balance__gte=0),
                name="wallet_balance_non_negative",
            ),
        ]

    def __str__(self) -> str:
        return f"Wallet of {self.owner_id}: {self.balance} {self.currency}"


class Transaction(models.Model):
    """Append-only ledger entry."""

    class Type(models.TextChoices):
        PAYMENT = "payment", _("Payment")
        PAYMENT_RECEIVED = "payment_received", _("Payment received")
        REFUND = "refund", _("Refund")
        TOPUP = "topup", _("Top-up")
        PAYOUT = "payout", _("Payout")

    class Status(models.TextChoices):
        COMPLETED = "completed", _("Completed")
        PENDING = "pending", _("Pending")

    class Method(models.TextChoices):
        WALLET = "wallet", _("Wallet")
        EXTERNAL = "external", _("External gateway")

    CREDIT_TYPES = (Type.PAYMENT_RECEIVED, Type.REFUND, Type.TOPUP)
    DEBIT_TYPES = (Type.PAYMENT, Type.PAYOUT)

    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="wallet_transactions",
    )
    wallet = models.ForeignKey(
        Wallet,
        on_delete=models.PROTECT,
        related_name="transactions",
        null=True,
        blank=True,
        help_text=_("Empty for gateway payments that never touched a wallet."),
    )
    type = models.CharField(max_length=20, choices=Type.choices)
    amount = models.DecimalField(max_digits=14, decimal_places=2)
    currency = models.CharField(max_length=3, default="PHP")
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.COMPLETED)
    payment_method = models.CharField(max_length=20, choices=Method.choices, default=Method.WALLET)
    booking_id = models.UUIDField(null=True, blank=True, db_index=True)
    description = models.CharField(max_length=255, blank=True)
    reference = models.CharField(max_length=128, blank=True)
    idempotency_key = models.CharField(max_length=128, null=True, blank=True, unique=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at", "-id"]
        constraints = [
            models.CheckConstraint(condition=models.Q(amount__gt=0), name="transaction_amount_positive"),
        ]
        indexes = [
            models.Index(fields=["owner", "type"]),
            models.Index(fields=["wallet", "created_at"]),
        ]

    def __str__(self) -> str:
        return f"{self.type} {self.amount} {self.currency} ({self.owner_id})"

    @property
    def is_credit(self) -> bool:
        return self.type in self.CREDIT_TYPES

    @property
    def signed_amount(self) -> Decimal:
        return self.amount if self.is_credit else -self.amount
