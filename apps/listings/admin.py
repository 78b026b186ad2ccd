"""Admin registration for listings."""

from __future__ import annotations

from django.contrib import admin

from .models import Listing


@admin.register(Listing)
class ListingAdmin(admin.ModelAdmin):
    list_display = ("title", "host", "category", "rate", "discount_percent", "status")
    list_filter = ("category", "status")
    search_fields = ("title", "host__username")
    readonly_fields = ("created_at", "updated_at")
