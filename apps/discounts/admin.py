"""Admin registration for discounts. Usage counters are read-only."""

from __future__ import annotations

from django.contrib import admin

from .models import Coupon, DiscountRedemption, Voucher


@admin.register(Coupon)
class CouponAdmin(admin.ModelAdmin):
    list_display = ("code", "host", "discount_type", "discount_value", "usage_count", "max_uses", "is_active")
    list_filter = ("discount_type", "is_active")
    search_fields = ("code", "host__username")
    readonly_fields = ("usage_count", "created_at")


@admin.register(Voucher)
class VoucherAdmin(admin.ModelAdmin):
    list_display = ("code", "host", "discount_percent", "claimed_by", "usage_count", "usage_limit", "is_used")
    list_filter = ("is_used",)
    search_fields = ("code", "host__username", "claimed_by__username")
    readonly_fields = ("code", "usage_count", "claimed_by", "claimed_at", "is_used", "used_at", "created_at")


@admin.register(DiscountRedemption)
class DiscountRedemptionAdmin(admin.ModelAdmin):
    list_display = ("booking_id", "kind", "coupon", "voucher", "created_at")
    list_filter = ("kind",)
    readonly_fields = [f.name for f in DiscountRedemption._meta.fields]
