"""Base settings for all environments.

This configuration file defines the common settings used by every
environment of the booking marketplace core. It follows Django's standard
configuration structure and integrates Django Rest Framework, Celery and
structlog. Environment‑specific overrides live in `dev.py`, `prod.py` and
`test.py`.
"""

import os
from decimal import Decimal
from pathlib import Path

import structlog
from django.core.exceptions import ImproperlyConfigured

# Optionally load .env file
from dotenv import load_dotenv

# Build paths inside the project like this: BASE_DIR / 'subdir'.
BASE_DIR = Path(__file__).resolve().parent.parent.parent

load_dotenv(BASE_DIR / '.env')


def get_env(var_name: str, default=None, required: bool = False):
    value = os.environ.get(var_name, default)
    if required and value in (None, ''):
        raise ImproperlyConfigured(f"Missing required environment variable: {var_name}")
    return value


# SECURITY WARNING: keep the secret key used in production secret!
SECRET_KEY = get_env('DJANGO_SECRET_KEY', 'replace-me-in-production')

# SECURITY WARNING: don't run with debug turned on in production!
DEBUG = False

ALLOWED_HOSTS: list[str] = get_env('DJANGO_ALLOWED_HOSTS', '*').split(',')

# Application definition

INSTALLED_APPS = [
    'django.contrib.admin',
    'django.contrib.auth',
    'django.contrib.contenttypes',
    'django.contrib.sessions',
    'django.contrib.messages',
    'django.contrib.staticfiles',
    # Third‑party apps
    'rest_framework',
    'django_filters',
    'drf_spectacular',
    # Domain apps
    'apps.listings',
    'apps.wallets',
    'apps.discounts',
    'apps.bookings',
    'apps.payments',
    'apps.payouts',
]

MIDDLEWARE = [
    'django.middleware.security.SecurityMiddleware',
    'django.contrib.sessions.middleware.SessionMiddleware',
    'django.middleware.common.CommonMiddleware',
    'django.middleware.csrf.CsrfViewMiddleware',
    'django.contrib.auth.middleware.AuthenticationMiddleware',
    'django.contrib.messages.middleware.MessageMiddleware',
    'django.middleware.clickjacking.XFrameOptionsMiddleware',
]

ROOT_URLCONF = 'config.urls'

TEMPLATES = [
    {
        'BACKEND': 'django.template.backends.django.DjangoTemplates',
        'DIRS': [],
        'APP_DIRS': True,
        'OPTIONS': {
            'context_processors': [
                'django.template.context_processors.debug',
                'django.template.context_processors.request',
                'django.contrib.auth.context_processors.auth',
                'django.contrib.messages.context_processors.messages',
            ],
        },
    },
]

WSGI_APPLICATION = 'config.wsgi.application'

# Database
# https://docs.djangoproject.com/en/5.0/ref/settings/#databases

DATABASES = {
    'default': {
        'ENGINE': get_env('DB_ENGINE', 'django.db.backends.sqlite3'),
        'NAME': get_env('DB_NAME', BASE_DIR / 'db.sqlite3'),
        'USER': get_env('DB_USER', ''),
        'PASSWORD': get_env('DB_PASSWORD', ''),
        'HOST': get_env('DB_HOST', ''),
        'PORT': get_env('DB_PORT', ''),
    }
}

AUTH_PASSWORD_VALIDATORS = [
    {
        'NAME': 'django.contrib.auth.password_validation.UserAttributeSimilarityValidator',
    },
    {
        'NAME': 'django.contrib.auth.password_validation.MinimumLengthValidator',
    },
]

# Internationalization

LANGUAGE_CODE = 'en-us'

TIME_ZONE = 'Asia/Manila'

USE_I18N = True

USE_TZ = True

DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'

STATIC_URL = '/static/'
STATIC_ROOT = BASE_DIR / 'staticfiles'

# Identity is provided by the surrounding platform; the core only stores ids
AUTH_USER_MODEL = 'auth.User'

# Django Rest Framework
REST_FRAMEWORK = {
    'DEFAULT_AUTHENTICATION_CLASSES': [
        'rest_framework.authentication.SessionAuthentication',
        'rest_framework.authentication.BasicAuthentication',
    ],
    'DEFAULT_PERMISSION_CLASSES': [
        'rest_framework.permissions.IsAuthenticated',
    ],
    'DEFAULT_FILTER_BACKENDS': [
        'django_filters.rest_framework.DjangoFilterBackend',
    ],
    'DEFAULT_SCHEMA_CLASS': 'drf_spectacular.openapi.AutoSchema',
    'EXCEPTION_HANDLER': 'shared.infrastructure.api.domain_exception_handler',
    'DEFAULT_PAGINATION_CLASS': 'rest_framework.pagination.PageNumberPagination',
    'PAGE_SIZE': 50,
}

# Celery configuration (Broker and Result backend handled in environment)
CELERY_BROKER_URL = get_env('CELERY_BROKER_URL', 'redis://localhost:6379/0')
CELERY_RESULT_BACKEND = get_env('CELERY_RESULT_BACKEND', 'redis://localhost:6379/0')

# DRF Spectacular (API docs)
SPECTACULAR_SETTINGS = {
    'TITLE': 'Booking Marketplace Core API',
    'DESCRIPTION': 'Booking workflow, payment reconciliation, wallets and payouts',
    'VERSION': '1.0.0',
    'SERVE_INCLUDE_SCHEMA': False,
}

# ============================================================================
# MARKETPLACE
# ============================================================================

MARKETPLACE_CURRENCY = get_env('MARKETPLACE_CURRENCY', 'PHP')
SERVICE_FEE_RATE = Decimal(get_env('SERVICE_FEE_RATE', '0.05'))
CAPTURE_AMOUNT_TOLERANCE = Decimal(get_env('CAPTURE_AMOUNT_TOLERANCE', '0.10'))
PAYMENT_INTENT_TTL_MINUTES = int(get_env('PAYMENT_INTENT_TTL_MINUTES', 180))
STALE_UNPAID_BOOKING_HOURS = int(get_env('STALE_UNPAID_BOOKING_HOURS', 48))
FIRST_STAY_MILESTONE_POINTS = int(get_env('FIRST_STAY_MILESTONE_POINTS', 100))

# Payment gateway: "sandbox" settles locally, "paypal" talks to the Orders API
PAYMENT_GATEWAY = get_env('PAYMENT_GATEWAY', 'sandbox')
PAYMENT_GATEWAY_BASE_URL = get_env('PAYMENT_GATEWAY_BASE_URL', 'https://api-m.sandbox.paypal.com')
PAYMENT_GATEWAY_CLIENT_ID = get_env('PAYMENT_GATEWAY_CLIENT_ID', '')
PAYMENT_GATEWAY_CLIENT_SECRET = get_env('PAYMENT_GATEWAY_CLIENT_SECRET', '')
PAYMENT_GATEWAY_TIMEOUT = int(get_env('PAYMENT_GATEWAY_TIMEOUT', 30))
PAYMENT_GATEWAY_MAX_ATTEMPTS = int(get_env('PAYMENT_GATEWAY_MAX_ATTEMPTS', 3))
PAYMENT_GATEWAY_BACKOFF_SECONDS = float(get_env('PAYMENT_GATEWAY_BACKOFF_SECONDS', 0.5))
PAYMENT_WEBHOOK_SECRET = get_env('PAYMENT_WEBHOOK_SECRET', '')

PAYOUT_API_BASE_URL = get_env('PAYOUT_API_BASE_URL', 'https://api-m.sandbox.paypal.com')
PAYOUT_API_CLIENT_ID = get_env('PAYOUT_API_CLIENT_ID', '')
PAYOUT_API_CLIENT_SECRET = get_env('PAYOUT_API_CLIENT_SECRET', '')

# ============================================================================
# LOGGING
# ============================================================================

structlog.configure(
    processors=[
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "json": {
            "()": "structlog.stdlib.ProcessorFormatter",
            "processor": structlog.processors.JSONRenderer(),
            "foreign_pre_chain": [
                structlog.processors.TimeStamper(fmt="iso"),
                structlog.stdlib.add_log_level,
                structlog.stdlib.add_logger_name,
            ],
        }
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "json",
            "level": "INFO",
        }
    },
    "root": {"handlers": ["console"], "level": "WARNING"},
    "loggers": {
        "django": {"handlers": ["console"], "level": "INFO", "propagate": False},
        "apps": {"handlers": ["console"], "level": "INFO", "propagate": False},
        "shared": {"handlers": ["console"], "level": "INFO", "propagate": False},
        "apps.payments": {
            "handlers": ["console"],
            "level": "INFO",
            "propagate": False,
        },
    },
}
