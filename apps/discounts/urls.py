"""URL routing for discounts."""

from __future__ import annotations

from django.urls import path  # type: ignore

from .views import (
    ClaimedVoucherListView,
    ClaimVoucherView,
    CouponListCreateView,
    QuoteView,
    VoucherListCreateView,
)

urlpatterns = [
    path("quote/", QuoteView.as_view(), name="discount-quote"),
    path("coupons/", CouponListCreateView.as_view(), name="coupon-list"),
    path("vouchers/", VoucherListCreateView.as_view(), name="voucher-list"),
    path("vouchers/claimed/", ClaimedVoucherListView.as_view(), name="voucher-claimed"),
    path("vouchers/<int:pk>/claim/", ClaimVoucherView.as_view(), name="voucher-claim"),
]
