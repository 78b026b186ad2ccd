"""Admin registration for bookings. Status is changed only through the API."""

from __future__ import annotations

from django.contrib import admin

from .models import Booking, BookingStatusChange


class BookingStatusChangeInline(admin.TabularInline):
    model = BookingStatusChange
    extra = 0
    can_delete = False
    readonly_fields = ("from_status", "to_status", "actor", "created_at")

    def has_add_permission(self, request, obj=None):  # type: ignore
        return False


@admin.register(Booking)
class BookingAdmin(admin.ModelAdmin):
    list_display = (
        "id",
        "listing",
        "guest",
        "host",
        "status",
        "payment_status",
        "payment_method",
        "total",
        "needs_review",
        "created_at",
    )
    list_filter = ("status", "payment_status", "payment_method", "payment_timing", "needs_review")
    search_fields = ("id", "guest__username", "host__username", "listing__title", "capture_id", "intent_ref")
    readonly_fields = [f.name for f in Booking._meta.fields]
    inlines = [BookingStatusChangeInline]

    def has_add_permission(self, request):  # type: ignore
        return False

    def has_delete_permission(self, request, obj=None):  # type: ignore
        return False
