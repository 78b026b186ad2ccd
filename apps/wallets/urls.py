"""URL routing for wallets."""

from __future__ import annotations

from django.urls import path  # type: ignore

from .views import MyTransactionsView, MyWalletView, TopUpView

urlpatterns = [
    path("me/", MyWalletView.as_view(), name="wallet-me"),
    path("me/transactions/", MyTransactionsView.as_view(), name="wallet-transactions"),
    path("top-up/", TopUpView.as_view(), name="wallet-top-up"),
]
