"""
Payout API client

Submits a single-item payout batch to the PayPal Payouts API:

    submit_payout(account_ref, amount, currency) -> {payout_batch_id, status}

``status`` is normalized to SUCCESS, PENDING or FAILED.
"""

import logging
import uuid
from dataclasses import dataclass
from decimal import Decimal

from django.conf import settings

from shared.infrastructure.http import OAuthJsonClient

logger = logging.getLogger(__name__)

BATCH_STATUS_MAP = {
    "SUCCESS": "SUCCESS",
    "PENDING": "PENDING",
    "PROCESSING": "PENDING",
    "NEW": "PENDING",
    "DENIED": "FAILED",
    "CANCELED": "FAILED",
    "FAILED": "FAILED",
}


@dataclass(frozen=True)
class PayoutResult:
    payout_batch_id: str
    status: str
    raw_status: str = ""


class PayoutClient(OAuthJsonClient):
    service_name = "Payout API"

    def __init__(self, **kwargs):
        super().__init__(
            settings.PAYOUT_API_BASE_URL,
            settings.PAYOUT_API_CLIENT_ID,
            settings.PAYOUT_API_CLIENT_SECRET,
            **kwargs,
        )

    def submit_payout(self, account_ref: str, amount: Decimal, currency: str, *, reference: str = "") -> PayoutResult:
        logger.info(f"Submitting payout of {amount} {currency} to {account_ref} (ref {reference})")

        # Development without credentials - emulate a successful batch
        if settings.DEBUG and not self.is_configured:
            logger.warning("Payout API credentials missing, emulating payout in DEBUG mode")
            return PayoutResult(payout_batch_id=f"SANDBOX-{uuid.uuid4().hex[:12].upper()}", status="SUCCESS")

        payload = {
            "sender_batch_header": {
                "sender_batch_id": reference or uuid.uuid4().hex,
                "email_subject": "You have a payout!",
                "email_message": "You have received a payout for your hosting.",
            },
            "items": [
                {
                    "recipient_type": "EMAIL",
                    "amount": {"value": f"{amount:.2f}", "currency": currency},
                    "receiver": account_ref,
                    "note": "Host payout",
                    "sender_item_id": reference or uuid.uuid4().hex,
                }
            ],
        }
        data = self.request("POST", "/v1/payments/payouts", json=payload)
        header = data.get("batch_header", {})
        raw_status = header.get("batch_status", "")
        status = BATCH_STATUS_MAP.get(raw_status.upper(), "PENDING")
        result = PayoutResult(
            payout_batch_id=header.get("payout_batch_id", ""),
            status=status,
            raw_status=raw_status,
        )
        logger.info(f"Payout batch {result.payout_batch_id} status {raw_status} -> {status}")
        return result
