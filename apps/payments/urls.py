"""URL routing for payments."""

from __future__ import annotations

from django.urls import include, path  # type: ignore
from rest_framework.routers import DefaultRouter  # type: ignore

from .views import CaptureIntentView, CaptureWebhookView, RefundRequestViewSet

router = DefaultRouter()
router.register(r"refunds", RefundRequestViewSet, basename="refund")

urlpatterns = [
    path("capture-webhook/", CaptureWebhookView.as_view(), name="payment-capture-webhook"),
    path("intents/<str:intent_ref>/capture/", CaptureIntentView.as_view(), name="payment-intent-capture"),
    path("", include(router.urls)),
]
