"""URL configuration for the booking marketplace core.

The `urlpatterns` list routes URLs to views. It includes the Django admin
(operator console for refunds and review flags), the application routers
and the OpenAPI schema.
"""
from django.contrib import admin  # type: ignore
from django.urls import path, include  # type: ignore
from drf_spectacular.views import SpectacularAPIView

# API versioning. v1 is our initial version; future versions can be added here.

urlpatterns = [
    path('admin/', admin.site.urls),
    # Application URLs
    path('api/v1/bookings/', include('apps.bookings.urls')),
    path('api/v1/payments/', include('apps.payments.urls')),
    path('api/v1/wallets/', include('apps.wallets.urls')),
    path('api/v1/discounts/', include('apps.discounts.urls')),
    path('api/v1/payouts/', include('apps.payouts.urls')),
    # OpenAPI schema
    path('api/schema/', SpectacularAPIView.as_view(), name='schema'),
]
