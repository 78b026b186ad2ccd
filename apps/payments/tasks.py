"""Celery tasks for payments."""

from __future__ import annotations

import logging

from celery import shared_task  # type: ignore

from .reconciler import PaymentReconciler

logger = logging.getLogger(__name__)


@shared_task(name="payments.expire_stale_intents")
def expire_stale_intents() -> dict[str, int]:
    """
    Close payment intents past their TTL.

    Runs every 5 minutes through Celery Beat. A guest with an expired
    intent simply opens a new one.
    """
    expired = PaymentReconciler().expire_stale_intents()
    return {"expired": expired}
