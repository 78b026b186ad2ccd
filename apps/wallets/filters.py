"""Filters for the wallet transaction log."""

from __future__ import annotations

import django_filters  # type: ignore

from .models import Transaction


class TransactionFilter(django_filters.FilterSet):
    created_after = django_filters.IsoDateTimeFilter(field_name="created_at", lookup_expr="gte")
    created_before = django_filters.IsoDateTimeFilter(field_name="created_at", lookup_expr="lte")

    class Meta:
        model = Transaction
        fields = ["type", "payment_method", "booking_id"]
