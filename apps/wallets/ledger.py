"""
Wallet ledger

The only writer of wallet balances. Each credit or debit locks the wallet
row, moves the balance and appends its Transaction inside one atomic
block, so ``balance == sum(credits) - sum(debits)`` holds for every
committed state.
"""

from __future__ import annotations

import logging
from decimal import Decimal

from django.conf import settings  # type: ignore
from django.db import transaction  # type: ignore
from django.db.models import Case, DecimalField, F, Sum, Value, When  # type: ignore
from django.utils import timezone  # type: ignore

from shared.domain.exceptions import InsufficientFundsError, ValidationError
from shared.domain.value_objects import CENT, to_decimal

from .models import Transaction, Wallet

logger = logging.getLogger(__name__)


class WalletLedger:
    """Atomic debit/credit operations over per-user wallets."""

    def __init__(self, currency: str | None = None):
        self.currency = currency or settings.MARKETPLACE_CURRENCY

    # ------------------------------------------------------------------ reads

    def get_wallet(self, owner_id: int) -> Wallet:
        """Return the owner's wallet, creating it with a zero balance on first reference."""
        wallet, created = Wallet.objects.get_or_create(
            owner_id=owner_id,
            defaults={"currency": self.currency},
        )
        if created:
            logger.info(f"Created wallet for user {owner_id}")
        return wallet

    def balance(self, owner_id: int) -> Decimal:
        """Committed balance; in-flight debits are invisible until they commit."""
        value = Wallet.objects.filter(owner_id=owner_id).values_list("balance", flat=True).first()
        return value if value is not None else Decimal("0.00")

    def transactions(self, owner_id: int, type: str | None = None):
        qs = Transaction.objects.filter(owner_id=owner_id)
        if type:
            qs = qs.filter(type=type)
        return qs

    def verify_conservation(self, owner_id: int) -> bool:
        """Check that the stored balance equals the signed sum of the wallet's log."""
        wallet = Wallet.objects.filter(owner_id=owner_id).first()
        if wallet is None:
            return True
        signed = Case(
            When(type__in=Transaction.CREDIT_TYPES, then=F("amount")),
            default=-F("amount"),
            output_field=DecimalField(max_digits=14, decimal_places=2),
        )
        total = wallet.transactions.aggregate(
            total=Sum(signed, default=Value(Decimal("0.00")))
        )["total"]
        if to_decimal(total) != wallet.balance:
            logger.error(
                f"Ledger mismatch for wallet {wallet.pk} (user {owner_id}): "
                f"balance={wallet.balance} log={total}"
            )
            return False
        return True

    # ----------------------------------------------------------------- writes

    def credit(
        self,
        owner_id: int,
        amount,
        *,
        booking_id=None,
        description: str = "",
        type: str = Transaction.Type.PAYMENT_RECEIVED,
        reference: str = "",
        idempotency_key: str | None = None,
    ) -> Transaction:
        if type not in Transaction.CREDIT_TYPES:
            raise ValidationError(f"{type} is not a credit transaction type")
        return self._post(owner_id, amount, type, booking_id, description, reference, idempotency_key)

    def debit(
        self,
        owner_id: int,
        amount,
        *,
        booking_id=None,
        description: str = "",
        type: str = Transaction.Type.PAYMENT,
        reference: str = "",
        idempotency_key: str | None = None,
    ) -> Transaction:
        """Debit the wallet; fails closed with InsufficientFundsError instead of going negative."""
        if type not in Transaction.DEBIT_TYPES:
            raise ValidationError(f"{type} is not a debit transaction type")
        return self._post(owner_id, amount, type, booking_id, description, reference, idempotency_key)

    def top_up(self, owner_id: int, amount, reference: str) -> Transaction:
        if not reference:
            raise ValidationError("Top-up reference is required")
        return self.credit(
            owner_id,
            amount,
            type=Transaction.Type.TOPUP,
            description="Wallet top-up",
            reference=reference,
            idempotency_key=f"topup:{reference}",
        )

    def record_external_payment(
        self,
        owner_id: int,
        amount,
        *,
        booking_id=None,
        reference: str = "",
        idempotency_key: str | None = None,
        description: str = "",
    ) -> Transaction:
        """Log a gateway payment; no wallet balance moves."""
        amount = self._clean_amount(amount)
        with transaction.atomic():
            if idempotency_key:
                existing = Transaction.objects.filter(idempotency_key=idempotency_key).first()
                if existing:
                    return existing
            entry = Transaction.objects.create(
                owner_id=owner_id,
                wallet=None,
                type=Transaction.Type.PAYMENT,
                amount=amount,
                currency=self.currency,
                payment_method=Transaction.Method.EXTERNAL,
                booking_id=booking_id,
                description=description or "External gateway payment",
                reference=reference,
                idempotency_key=idempotency_key,
            )
        logger.info(f"Recorded external payment {amount} for booking {booking_id} (ref {reference})")
        return entry

    def _clean_amount(self, amount) -> Decimal:
        try:
            value = to_decimal(amount)
        except (ArithmeticError, TypeError, ValueError) as exc:
            raise ValidationError(f"Invalid amount: {amount!r}") from exc
        if not value.is_finite() or value <= 0:
            raise ValidationError("Amount must be positive")
        return value.quantize(CENT)

    def _post(self, owner_id, amount, type, booking_id, description, reference, idempotency_key) -> Transaction:
        amount = self._clean_amount(amount)
        is_credit = type in Transaction.CREDIT_TYPES

        with transaction.atomic():
            wallet = self.get_wallet(owner_id)
            wallet = Wallet.objects.select_for_update().get(pk=wallet.pk)

            # Same key implies same owner, so the row lock serializes retries
            if idempotency_key:
                existing = Transaction.objects.filter(idempotency_key=idempotency_key).first()
                if existing:
                    logger.info(f"Ledger entry {idempotency_key} already posted, skipping")
                    return existing

            if is_credit:
                Wallet.objects.filter(pk=wallet.pk).update(
                    balance=F("balance") + amount, updated_at=timezone.now()
                )
            else:
                updated = Wallet.objects.filter(pk=wallet.pk, balance__gte=amount).update(
                    balance=F("balance") - amount, updated_at=timezone.now()
                )
                if not updated:
                    logger.info(
                        f"Insufficient funds for user {owner_id}: balance={wallet.balance} required={amount}"
                    )
                    raise InsufficientFundsError(
                        f"Wallet balance {wallet.balance} is less than {amount}",
                        balance=wallet.balance,
                        required=amount,
                    )

            entry = Transaction.objects.create(
                owner_id=owner_id,
                wallet=wallet,
                type=type,
                amount=amount,
                currency=wallet.currency,
                payment_method=Transaction.Method.WALLET,
                booking_id=booking_id,
                description=description,
                reference=reference,
                idempotency_key=idempotency_key,
            )

        logger.info(
            f"Wallet {'credit' if is_credit else 'debit'} {amount} {wallet.currency} "
            f"user={owner_id} type={type} booking={booking_id}"
        )
        return entry
