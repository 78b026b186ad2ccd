"""Celery tasks for the booking domain."""

from __future__ import annotations

import logging
from datetime import timedelta

from celery import shared_task  # type: ignore
from django.conf import settings  # type: ignore
from django.utils import timezone  # type: ignore

from .repository import BookingStore

logger = logging.getLogger(__name__)


# ============================================================================
# PERIODIC TASKS (scheduled by Celery Beat)
# ============================================================================

@shared_task(name="bookings.report_stale_unpaid_bookings")
def report_stale_unpaid_bookings() -> dict[str, int]:
    """
    Report unpaid bookings still waiting for approval.

    Nothing is cancelled automatically; the warning is for operators.
    Runs every 12 hours through Celery Beat.

    Returns:
        dict: {"stale": number of bookings reported}
    """
    cutoff = timezone.now() - timedelta(hours=settings.STALE_UNPAID_BOOKING_HOURS)
    stale = list(BookingStore().stale_unpaid(cutoff).values_list("id", flat=True))
    if stale:
        logger.warning(
            f"{len(stale)} unpaid bookings pending approval for more than "
            f"{settings.STALE_UNPAID_BOOKING_HOURS}h: {', '.join(str(pk) for pk in stale)}"
        )
    return {"stale": len(stale)}
