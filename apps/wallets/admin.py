"""Admin registration for wallets. The log is read-only from the admin."""

from __future__ import annotations

from django.contrib import admin

from .models import Transaction, Wallet


@admin.register(Wallet)
class WalletAdmin(admin.ModelAdmin):
    list_display = ("owner", "balance", "currency", "updated_at")
    search_fields = ("owner__username", "owner__email")
    readonly_fields = ("owner", "balance", "currency", "created_at", "updated_at")


@admin.register(Transaction)
class TransactionAdmin(admin.ModelAdmin):
    list_display = ("id", "owner", "type", "amount", "currency", "payment_method", "booking_id", "created_at")
    list_filter = ("type", "payment_method", "status")
    search_fields = ("owner__username", "reference", "idempotency_key", "booking_id")
    readonly_fields = [f.name for f in Transaction._meta.fields]

    def has_add_permission(self, request):  # type: ignore
        return False

    def has_delete_permission(self, request, obj=None):  # type: ignore
        return False
