"""Payout models: host payout methods, external transfers, host totals."""

from __future__ import annotations

from decimal import Decimal

from django.conf import settings  # type: ignore
from django.db import models  # type: ignore
from django.utils.translation import gettext_lazy as _  # type: ignore


class PayoutMethod(models.Model):
    """Where a host wants to receive money."""

    class Type(models.TextChoices):
        WALLET = "wallet", _("Wallet")
        PAYPAL = "paypal", _("PayPal")
        BANK = "bank", _("Bank transfer")

    host = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="payout_methods",
    )
    type = models.CharField(max_length=20, choices=Type.choices)
    account_ref = models.CharField(
        max_length=255,
        blank=True,
        help_text=_("PayPal email or bank account reference."),
    )
    is_default = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["created_at", "id"]
        constraints = [
            models.UniqueConstraint(
                fields=["host"],
                condition=models.Q(is_default=True),
                name="payout_method_single_default",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.type} {self.account_ref}".strip()

    @property
    def is_external(self) -> bool:
        return self.type != self.Type.WALLET


class PendingTransfer(models.Model):
    """Obligation to settle a host's wallet balance to an external account."""

    class Status(models.TextChoices):
        PENDING = "pending", _("Pending")
        SUBMITTED = "submitted", _("Submitted")
        COMPLETED = "completed", _("Completed")
        FAILED = "failed", _("Failed")

    host = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="pending_transfers",
    )
    booking_id = models.UUIDField(unique=True)
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    currency = models.CharField(max_length=3, default="PHP")
    method = models.CharField(max_length=20, choices=PayoutMethod.Type.choices)
    account_ref = models.CharField(max_length=255)
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.PENDING)
    payout_batch_id = models.CharField(max_length=128, blank=True)
    failure_reason = models.CharField(max_length=255, blank=True)
    submitted_at = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["created_at", "id"]
        constraints = [
            models.CheckConstraint(condition=models.Q(amount__gt=0), name="pending_transfer_amount_positive"),
        ]
        indexes = [
            models.Index(fields=["status", "created_at"]),
        ]

    def __str__(self) -> str:
        return f"Transfer {self.amount} {self.currency} to {self.account_ref} ({self.status})"


class HostAccount(models.Model):
    """Running totals per host."""

    host = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="host_account",
    )
    total_earnings = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal("0.00"))
    reward_points = models.PositiveIntegerField(default=0)
    first_stay_awarded = models.BooleanField(default=False)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self) -> str:
        return f"Host {self.host_id}: {self.total_earnings} earned, {self.reward_points} pts"
