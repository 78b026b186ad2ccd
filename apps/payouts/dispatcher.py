"""
Payout dispatcher

On approval of a paid booking (or payment of an approved one) the host's
share, subtotal minus discount, is credited to the host wallet. The wallet
is always the system of record; hosts paid by PayPal or bank additionally
get a PendingTransfer describing the external settlement still owed.
"""

from __future__ import annotations

import logging

from django.conf import settings  # type: ignore
from django.db import transaction  # type: ignore
from django.db.models import F  # type: ignore
from django.utils import timezone  # type: ignore

from apps.bookings.domain.entities import Booking
from apps.bookings.domain.events import HostMilestoneReached
from apps.bookings.repository import BookingStore
from apps.wallets.ledger import WalletLedger
from apps.wallets.models import Transaction
from shared.domain.exceptions import (
    ExternalServiceError,
    InsufficientFundsError,
    StateError,
    ValidationError,
)

from .models import HostAccount, PayoutMethod, PendingTransfer

logger = logging.getLogger(__name__)


class PayoutDispatcher:
    def __init__(self, ledger: WalletLedger | None = None, store: BookingStore | None = None):
        self.ledger = ledger or WalletLedger()
        self.store = store or BookingStore()

    # ===== Payout methods =====

    def default_method(self, host_id: int) -> PayoutMethod | None:
        methods = PayoutMethod.objects.filter(host_id=host_id)
        return methods.filter(is_default=True).first() or methods.first()

    def set_payout_method(
        self, host_id: int, type: str, account_ref: str = "", *, is_default: bool = True
    ) -> PayoutMethod:
        if type not in PayoutMethod.Type.values:
            raise ValidationError(f"Unknown payout method: {type}")
        if type != PayoutMethod.Type.WALLET and not account_ref:
            raise ValidationError("An account reference is required for external payouts")

        with transaction.atomic():
            if is_default:
                PayoutMethod.objects.filter(host_id=host_id, is_default=True).update(is_default=False)
            method = PayoutMethod.objects.create(
                host_id=host_id, type=type, account_ref=account_ref, is_default=is_default
            )
        logger.info(f"Host {host_id} added payout method {type} (default={is_default})")
        return method

    # ===== Dispatch =====

    def dispatch(self, booking: Booking) -> Transaction:
        """
        Credit the host for a paid booking, exactly once per booking.

        Must run inside the unit of work that made the booking both paid
        and confirmed.
        """
        if not booking.is_paid:
            raise StateError(f"Booking {booking.id} is not paid; nothing to pay out")

        key = f"payout:{booking.id}"
        existing = Transaction.objects.filter(idempotency_key=key).first()
        if existing:
            logger.info(f"Payout for booking {booking.id} already dispatched")
            return existing

        amount = booking.payout_amount.amount
        method = self.default_method(booking.host_id)

        with transaction.atomic():
            entry = self.ledger.credit(
                booking.host_id,
                amount,
                booking_id=booking.id,
                type=Transaction.Type.PAYMENT_RECEIVED,
                description=f"Payout for booking {booking.id}",
                idempotency_key=key,
            )
            account, _ = HostAccount.objects.get_or_create(host_id=booking.host_id)
            HostAccount.objects.filter(pk=account.pk).update(total_earnings=F("total_earnings") + amount)

            if method and method.is_external:
                PendingTransfer.objects.create(
                    host_id=booking.host_id,
                    booking_id=booking.id,
                    amount=amount,
                    currency=booking.currency,
                    method=method.type,
                    account_ref=method.account_ref,
                )

        logger.info(
            f"Dispatched payout {amount} {booking.currency} for booking {booking.id} to host "
            f"{booking.host_id} via {method.type if method else PayoutMethod.Type.WALLET}"
        )
        return entry

    def award_first_stay_milestone(self, host_id: int, booking_id) -> HostMilestoneReached | None:
        """Add reward points on the host's first completed stay; returns the event when awarded."""
        if self.store.count_completed_for_host(host_id) != 1:
            return None

        points = settings.FIRST_STAY_MILESTONE_POINTS
        account, _ = HostAccount.objects.get_or_create(host_id=host_id)
        awarded = HostAccount.objects.filter(pk=account.pk, first_stay_awarded=False).update(
            reward_points=F("reward_points") + points,
            first_stay_awarded=True,
        )
        if not awarded:
            return None

        logger.info(f"Host {host_id} reached first-stay milestone (+{points} points)")
        return HostMilestoneReached(host_id=host_id, booking_id=booking_id, points=points)

    # ===== External settlement =====

    def submit_pending_transfers(self, client, limit: int = 100) -> dict[str, int]:
        """
        Hand pending transfers to the payout API.

        SUCCESS/PENDING debit the host wallet (type ``payout``), FAILED marks
        the transfer failed, an unavailable API leaves it pending for the
        next run.
        """
        counts = {"completed": 0, "submitted": 0, "failed": 0, "retry": 0}
        transfer_ids = list(
            PendingTransfer.objects.filter(status=PendingTransfer.Status.PENDING)
            .values_list("id", flat=True)[:limit]
        )

        for transfer_id in transfer_ids:
            # Claim the row so a concurrent run cannot submit it twice
            claimed = PendingTransfer.objects.filter(
                pk=transfer_id, status=PendingTransfer.Status.PENDING
            ).update(status=PendingTransfer.Status.SUBMITTED, submitted_at=timezone.now())
            if not claimed:
                continue
            transfer = PendingTransfer.objects.get(pk=transfer_id)

            if self.ledger.balance(transfer.host_id) < transfer.amount:
                self._mark_failed(transfer, "Host wallet balance is lower than the transfer amount")
                counts["failed"] += 1
                continue

            try:
                result = client.submit_payout(
                    transfer.account_ref, transfer.amount, transfer.currency, reference=f"transfer-{transfer.id}"
                )
            except ExternalServiceError as e:
                PendingTransfer.objects.filter(pk=transfer.pk).update(
                    status=PendingTransfer.Status.PENDING, submitted_at=None
                )
                logger.warning(f"Transfer {transfer.id} left pending: {e}")
                counts["retry"] += 1
                continue

            if result.status == "FAILED":
                self._mark_failed(transfer, f"Payout API status {result.raw_status or result.status}")
                counts["failed"] += 1
                continue

            completed = result.status == "SUCCESS"
            with transaction.atomic():
                try:
                    self.ledger.debit(
                        transfer.host_id,
                        transfer.amount,
                        booking_id=transfer.booking_id,
                        type=Transaction.Type.PAYOUT,
                        description=f"Payout to {transfer.method} {transfer.account_ref}",
                        reference=result.payout_batch_id,
                        idempotency_key=f"transfer:{transfer.id}",
                    )
                except InsufficientFundsError:
                    # Money already left through the payout API; needs an operator
                    logger.error(
                        f"Transfer {transfer.id} paid out as batch {result.payout_batch_id} but host "
                        f"{transfer.host_id} wallet no longer covers {transfer.amount}"
                    )
                    PendingTransfer.objects.filter(pk=transfer.pk).update(
                        payout_batch_id=result.payout_batch_id,
                        failure_reason="Paid out externally; wallet debit failed",
                    )
                    counts["failed"] += 1
                    continue

                PendingTransfer.objects.filter(pk=transfer.pk).update(
                    status=PendingTransfer.Status.COMPLETED if completed else PendingTransfer.Status.SUBMITTED,
                    payout_batch_id=result.payout_batch_id,
                    completed_at=timezone.now() if completed else None,
                )
            counts["completed" if completed else "submitted"] += 1
            logger.info(f"Transfer {transfer.id} {result.status} as batch {result.payout_batch_id}")

        return counts

    def _mark_failed(self, transfer: PendingTransfer, reason: str):
        PendingTransfer.objects.filter(pk=transfer.pk).update(
            status=PendingTransfer.Status.FAILED, failure_reason=reason[:255]
        )
        logger.error(f"Transfer {transfer.id} to {transfer.account_ref} failed: {reason}")
