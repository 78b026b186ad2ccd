"""URL routing for payouts."""

from __future__ import annotations

from django.urls import path  # type: ignore

from .views import MyHostAccountView, PayoutMethodListCreateView, PendingTransferListView

urlpatterns = [
    path("methods/", PayoutMethodListCreateView.as_view(), name="payout-methods"),
    path("transfers/", PendingTransferListView.as_view(), name="payout-transfers"),
    path("account/", MyHostAccountView.as_view(), name="payout-account"),
]
