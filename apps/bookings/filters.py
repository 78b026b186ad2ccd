"""Filters for booking lists."""

from __future__ import annotations

import django_filters  # type: ignore

from .models import Booking


class BookingFilter(django_filters.FilterSet):
    status = django_filters.MultipleChoiceFilter(choices=Booking.Status.choices)
    payment_status = django_filters.ChoiceFilter(choices=Booking.PaymentStatus.choices)
    role = django_filters.ChoiceFilter(
        choices=(("guest", "Guest"), ("host", "Host")),
        method="filter_role",
    )
    created_after = django_filters.DateTimeFilter(field_name="created_at", lookup_expr="gte")

    class Meta:
        model = Booking
        fields = ["status", "payment_status", "payment_method", "needs_review"]

    def filter_role(self, queryset, name, value):  # type: ignore
        user = self.request.user
        if value == "host":
            return queryset.filter(host=user)
        return queryset.filter(guest=user)
