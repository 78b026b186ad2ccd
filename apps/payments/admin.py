"""Admin registration for payments. Captures are read-only."""

from __future__ import annotations

from django.contrib import admin

from .models import CaptureRecord, PaymentIntent, RefundRequest


@admin.register(PaymentIntent)
class PaymentIntentAdmin(admin.ModelAdmin):
    list_display = ("intent_ref", "booking", "amount", "currency", "status", "expires_at")
    list_filter = ("status",)
    search_fields = ("intent_ref", "booking__id")
    readonly_fields = ("intent_ref", "booking", "amount", "currency", "approval_url", "created_at")


@admin.register(CaptureRecord)
class CaptureRecordAdmin(admin.ModelAdmin):
    list_display = ("capture_id", "booking_id", "captured_amount", "currency", "outcome", "created_at")
    list_filter = ("outcome",)
    search_fields = ("capture_id", "booking_id")
    readonly_fields = [f.name for f in CaptureRecord._meta.fields]

    def has_add_permission(self, request):  # type: ignore
        return False


@admin.register(RefundRequest)
class RefundRequestAdmin(admin.ModelAdmin):
    list_display = ("booking_id", "guest", "amount", "currency", "status", "created_at", "resolved_at")
    list_filter = ("status",)
    search_fields = ("booking_id", "guest__username")
    readonly_fields = ("booking_id", "guest", "amount", "currency", "resolved_at", "resolved_by", "transaction")
