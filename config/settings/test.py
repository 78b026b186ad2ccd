"""Test settings: in-memory database, eager Celery, sandbox gateway."""

from .base import *  # noqa: F401,F403

DEBUG = False

SECRET_KEY = 'test-secret-key'

DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': ':memory:',
    }
}

PASSWORD_HASHERS = ['django.contrib.auth.hashers.MD5PasswordHasher']

CELERY_TASK_ALWAYS_EAGER = True
CELERY_TASK_EAGER_PROPAGATES = True
CELERY_BROKER_URL = 'memory://'
CELERY_RESULT_BACKEND = 'cache+memory://'

PAYMENT_GATEWAY = 'sandbox'
PAYMENT_GATEWAY_BACKOFF_SECONDS = 0
PAYMENT_WEBHOOK_SECRET = 'test-webhook-secret'
