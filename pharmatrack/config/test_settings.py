"""
Settings used by the test suite: in-memory database and cache
"""
from .settings import *  # noqa: F401,F403

DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': ':memory:',
    }
}

CACHES = {
    'default': {
        'BACKEND': 'django.core.cache.backends.locmem.LocMemCache',
        'LOCATION': 'pharmatrack-tests',
    }
}

PASSWORD_HASHERS = ['django.contrib.auth.hashers.MD5PasswordHasher']

GEMINI_API_KEY = 'test-gemini-key'
PAYSTACK_SECRET_KEY = 'sk_test_pharmatrack'
TERMII_API_KEY = 'test-termii-key'
TERMII_WHATSAPP_DEVICE_ID = 'test-device'
