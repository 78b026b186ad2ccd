"""Celery tasks for host payouts."""

from __future__ import annotations

import logging

from celery import shared_task  # type: ignore

from .client import PayoutClient
from .dispatcher import PayoutDispatcher

logger = logging.getLogger(__name__)


# ============================================================================
# PERIODIC TASKS (scheduled by Celery Beat)
# ============================================================================

@shared_task(name="payouts.submit_pending_transfers")
def submit_pending_transfers() -> dict[str, int]:
    """
    Settle pending PayPal/bank transfers through the payout API.

    Runs every 15 minutes. Transfers the API could not accept stay pending
    for the next run.

    Returns:
        dict: counts per outcome (completed, submitted, failed, retry)
    """
    counts = PayoutDispatcher().submit_pending_transfers(PayoutClient())
    if any(counts.values()):
        logger.info(f"Pending transfers processed: {counts}")
    return counts
