"""API views for the payment gateway callback, captures and the refund queue."""

from __future__ import annotations

import hashlib
import hmac
import json
import logging

from django.conf import settings  # type: ignore
from rest_framework import mixins, permissions, status, viewsets  # type: ignore
from rest_framework.decorators import action  # type: ignore
from rest_framework.response import Response  # type: ignore
from rest_framework.views import APIView  # type: ignore

from .models import RefundRequest
from .reconciler import PaymentReconciler
from .serializers import (
    CaptureRecordSerializer,
    CaptureWebhookSerializer,
    RefundDecisionSerializer,
    RefundRequestSerializer,
)

logger = logging.getLogger(__name__)


def verify_signature(body: bytes, signature: str) -> bool:
    """HMAC-SHA256 of the raw body with ``PAYMENT_WEBHOOK_SECRET``; accepts ``sha256=<hex>`` or bare hex."""
    secret = settings.PAYMENT_WEBHOOK_SECRET
    if not secret or not signature:
        return False
    if signature.startswith("sha256="):
        signature = signature[len("sha256="):]
    expected = hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()
    return hmac.compare_digest(expected, signature)


class CaptureWebhookView(APIView):
    """
    Gateway capture callback.

    Duplicate deliveries of one capture id are acknowledged without side
    effects; a mismatched amount answers 202 with ``needs_review``.
    """

    authentication_classes: list = []
    permission_classes = [permissions.AllowAny]

    def post(self, request):  # type: ignore
        body = request.body
        if not verify_signature(body, request.headers.get("X-Signature", "")):
            logger.error("Capture webhook rejected: invalid signature")
            return Response(
                {"code": "invalid_signature", "detail": "Invalid signature", "retryable": False},
                status=status.HTTP_403_FORBIDDEN,
            )

        try:
            payload = json.loads(body)
        except (json.JSONDecodeError, UnicodeDecodeError):
            logger.error("Capture webhook: invalid JSON")
            return Response(
                {"code": "invalid_json", "detail": "Invalid JSON", "retryable": False},
                status=status.HTTP_400_BAD_REQUEST,
            )

        serializer = CaptureWebhookSerializer(data=payload)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        logger.info(f"Capture webhook for intent {data['intent_ref']} capture {data['capture_id']}")

        record = PaymentReconciler().confirm_capture(
            data["intent_ref"],
            data["capture_id"],
            data["amount"],
            data["currency"],
            data["payer_info"],
        )
        return Response(CaptureRecordSerializer(record).data, status=status.HTTP_200_OK)


class CaptureIntentView(APIView):
    """Guest returns from the gateway checkout; capture the approved order."""

    permission_classes = [permissions.IsAuthenticated]

    def post(self, request, intent_ref: str):  # type: ignore
        record = PaymentReconciler().capture_intent(intent_ref, guest_id=request.user.id)
        return Response(CaptureRecordSerializer(record).data, status=status.HTTP_200_OK)


class RefundRequestViewSet(mixins.ListModelMixin, mixins.RetrieveModelMixin, viewsets.GenericViewSet):
    """Operator work queue of refunds owed to guests."""

    queryset = RefundRequest.objects.all()
    serializer_class = RefundRequestSerializer
    permission_classes = [permissions.IsAdminUser]
    filterset_fields = ["status"]
    lookup_value_regex = r"\d+"

    @action(detail=True, methods=["post"])
    def resolve(self, request, pk=None):  # type: ignore
        refund = PaymentReconciler().resolve_refund(int(pk), request.user.id)
        return Response(self.get_serializer(refund).data)

    @action(detail=True, methods=["post"])
    def dismiss(self, request, pk=None):  # type: ignore
        serializer = RefundDecisionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        refund = PaymentReconciler().dismiss_refund(int(pk), request.user.id, serializer.validated_data["reason"])
        return Response(self.get_serializer(refund).data)
