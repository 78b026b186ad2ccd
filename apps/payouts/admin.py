"""Admin registration for payouts."""

from __future__ import annotations

from django.contrib import admin

from .models import HostAccount, PayoutMethod, PendingTransfer


@admin.register(PayoutMethod)
class PayoutMethodAdmin(admin.ModelAdmin):
    list_display = ("host", "type", "account_ref", "is_default", "created_at")
    list_filter = ("type", "is_default")
    search_fields = ("host__username", "account_ref")


@admin.register(PendingTransfer)
class PendingTransferAdmin(admin.ModelAdmin):
    list_display = ("id", "host", "booking_id", "amount", "currency", "method", "status", "created_at")
    list_filter = ("status", "method")
    search_fields = ("host__username", "account_ref", "payout_batch_id", "booking_id")
    readonly_fields = ("booking_id", "amount", "currency", "submitted_at", "completed_at", "created_at")


@admin.register(HostAccount)
class HostAccountAdmin(admin.ModelAdmin):
    list_display = ("host", "total_earnings", "reward_points", "first_stay_awarded")
    readonly_fields = ("total_earnings", "reward_points", "first_stay_awarded", "updated_at")
