"""
Payment gateway adapters

The reconciler talks to one interface:

    create_order(amount, currency, booking_id) -> GatewayOrder
    capture_order(intent_ref)                  -> CaptureResult

``PayPalGateway`` uses the Orders v2 API with the booking id carried as the
order's ``custom_id``. ``SandboxGateway`` answers locally for development
and tests.
"""

import logging
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from decimal import Decimal

from django.conf import settings
from django.utils.module_loading import import_string

from shared.domain.exceptions import ExternalServiceError
from shared.domain.value_objects import to_decimal
from shared.infrastructure.http import OAuthJsonClient

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GatewayOrder:
    intent_ref: str
    approval_url: str = ""


@dataclass(frozen=True)
class CaptureResult:
    intent_ref: str
    capture_id: str
    amount: Decimal
    currency: str
    booking_id: str = ""
    payer_info: dict = field(default_factory=dict)


class PaymentGateway(ABC):
    @abstractmethod
    def create_order(self, amount: Decimal, currency: str, booking_id) -> GatewayOrder:
        """Open an order for ``amount`` and return its reference."""

    @abstractmethod
    def capture_order(self, intent_ref: str) -> CaptureResult:
        """Capture the payer-approved order."""


class SandboxGateway(PaymentGateway):
    """In-process gateway; captures always settle for the ordered amount."""

    def __init__(self):
        self._orders: dict[str, tuple[Decimal, str, str]] = {}

    def create_order(self, amount, currency, booking_id) -> GatewayOrder:
        intent_ref = f"SANDBOX-{uuid.uuid4().hex[:16].upper()}"
        self._orders[intent_ref] = (to_decimal(amount), currency, str(booking_id))
        logger.info(f"Sandbox order {intent_ref} for booking {booking_id}: {amount} {currency}")
        return GatewayOrder(intent_ref=intent_ref, approval_url=f"https://sandbox.local/checkout/{intent_ref}")

    def capture_order(self, intent_ref) -> CaptureResult:
        if intent_ref not in self._orders:
            raise ExternalServiceError(f"Sandbox order {intent_ref} does not exist")
        amount, currency, booking_id = self._orders[intent_ref]
        return CaptureResult(
            intent_ref=intent_ref,
            capture_id=f"CAP-{uuid.uuid4().hex[:16].upper()}",
            amount=amount,
            currency=currency,
            booking_id=booking_id,
            payer_info={"payer_id": "SANDBOX-PAYER"},
        )


class PayPalGateway(OAuthJsonClient, PaymentGateway):
    service_name = "PayPal"

    def __init__(self, **kwargs):
        super().__init__(
            settings.PAYMENT_GATEWAY_BASE_URL,
            settings.PAYMENT_GATEWAY_CLIENT_ID,
            settings.PAYMENT_GATEWAY_CLIENT_SECRET,
            **kwargs,
        )

    def create_order(self, amount, currency, booking_id) -> GatewayOrder:
        payload = {
            "intent": "CAPTURE",
            "purchase_units": [
                {
                    "reference_id": str(booking_id),
                    "custom_id": str(booking_id),
                    "amount": {"currency_code": currency, "value": f"{to_decimal(amount):.2f}"},
                }
            ],
        }
        data = self.request("POST", "/v2/checkout/orders", json=payload)
        intent_ref = data.get("id")
        if not intent_ref:
            raise ExternalServiceError("PayPal did not return an order id")

        approval_url = next(
            (link["href"] for link in data.get("links", []) if link.get("rel") in ("approve", "payer-action")),
            "",
        )
        logger.info(f"PayPal order {intent_ref} created for booking {booking_id}")
        return GatewayOrder(intent_ref=intent_ref, approval_url=approval_url)

    def capture_order(self, intent_ref) -> CaptureResult:
        data = self.request("POST", f"/v2/checkout/orders/{intent_ref}/capture", json={})
        try:
            unit = data["purchase_units"][0]
            capture = unit["payments"]["captures"][0]
        except (KeyError, IndexError) as e:
            raise ExternalServiceError(f"PayPal capture response for {intent_ref} is incomplete") from e

        payer = data.get("payer", {})
        result = CaptureResult(
            intent_ref=intent_ref,
            capture_id=capture["id"],
            amount=to_decimal(capture["amount"]["value"]),
            currency=capture["amount"]["currency_code"],
            booking_id=capture.get("custom_id") or unit.get("custom_id", ""),
            payer_info={
                "payer_id": payer.get("payer_id", ""),
                "email": payer.get("email_address", ""),
            },
        )
        logger.info(f"PayPal order {intent_ref} captured as {result.capture_id}: {result.amount} {result.currency}")
        return result


GATEWAYS = {
    "sandbox": "apps.payments.gateway.SandboxGateway",
    "paypal": "apps.payments.gateway.PayPalGateway",
}

_sandbox = None


def get_gateway() -> PaymentGateway:
    """Gateway selected by ``PAYMENT_GATEWAY``; the sandbox keeps its orders per process."""
    global _sandbox
    name = settings.PAYMENT_GATEWAY
    if name == "sandbox":
        if _sandbox is None:
            _sandbox = SandboxGateway()
        return _sandbox
    if name not in GATEWAYS:
        raise ExternalServiceError(f"Unknown payment gateway: {name}")
    return import_string(GATEWAYS[name])()
