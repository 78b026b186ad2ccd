import os

from celery import Celery
from celery.schedules import crontab  # type: ignore

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings.dev")

app = Celery("marketplace_core")

app.config_from_object("django.conf:settings", namespace="CELERY")
app.autodiscover_tasks()


# ============================================================================
# CELERY BEAT SCHEDULE (Periodic Tasks)
# ============================================================================

app.conf.beat_schedule = {
    # Open payment intents past their TTL - every 5 minutes
    "expire-stale-payment-intents": {
        "task": "payments.expire_stale_intents",
        "schedule": 300.0,
        "options": {"expires": 280},
    },
    # Hand pending external transfers to the payout API - every 15 minutes
    "submit-pending-transfers": {
        "task": "payouts.submit_pending_transfers",
        "schedule": crontab(minute="*/15"),
    },
    # Unpaid pending_approval holds are never cancelled automatically;
    # surface them to operators twice a day
    "report-stale-unpaid-bookings": {
        "task": "bookings.report_stale_unpaid_bookings",
        "schedule": crontab(minute=0, hour="*/12"),
    },
}

app.conf.timezone = "Asia/Manila"
