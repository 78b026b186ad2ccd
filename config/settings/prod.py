"""Production settings for the booking marketplace core.

This module extends the base settings with production specific
configuration. Sensitive values (secret key, gateway and payout
credentials, webhook secret) must be provided via environment variables.
"""

from .base import *  # noqa: F401,F403

# Never run with debug enabled in production
DEBUG = False

SECRET_KEY = get_env('DJANGO_SECRET_KEY', required=True)  # noqa: F405

# Allowed hosts should be defined explicitly via environment variable
ALLOWED_HOSTS = get_env('DJANGO_ALLOWED_HOSTS', '').split(',')  # noqa: F405

# Configure secure proxies and cookies
CSRF_COOKIE_SECURE = True
SESSION_COOKIE_SECURE = True

PAYMENT_GATEWAY = get_env('PAYMENT_GATEWAY', 'paypal')  # noqa: F405
PAYMENT_GATEWAY_BASE_URL = get_env('PAYMENT_GATEWAY_BASE_URL', 'https://api-m.paypal.com')  # noqa: F405
PAYMENT_WEBHOOK_SECRET = get_env('PAYMENT_WEBHOOK_SECRET', required=True)  # noqa: F405
PAYOUT_API_BASE_URL = get_env('PAYOUT_API_BASE_URL', 'https://api-m.paypal.com')  # noqa: F405
