"""Development settings for the booking marketplace core.

This module extends the base settings with development specific
configuration, such as enabling debug, allowing all hosts and using the
sandbox payment gateway. Do not use these settings in production!
"""

from .base import *  # noqa: F401,F403

# Enable debug mode for development
DEBUG = True

# Allow all hosts in development
ALLOWED_HOSTS = ['*']

# Captures settle locally unless a real gateway is configured explicitly
PAYMENT_GATEWAY = get_env('PAYMENT_GATEWAY', 'sandbox')  # noqa: F405
PAYMENT_WEBHOOK_SECRET = get_env('PAYMENT_WEBHOOK_SECRET', 'dev-webhook-secret')  # noqa: F405
