"""
Django settings for the PharmaTrack backend.

Every deployment knob is read from the environment so the same module
serves local development, CI and production.
"""
import os
from datetime import timedelta
from pathlib import Path

ENV = os.environ.get

BASE_DIR = Path(__file__).resolve().parent.parent

SECRET_KEY = ENV('DJANGO_SECRET_KEY', 'django-insecure-pharmatrack-dev-key')
DEBUG = ENV('DJANGO_DEBUG', 'False').lower() == 'true'
ALLOWED_HOSTS = [h for h in ENV('DJANGO_ALLOWED_HOSTS', 'localhost,127.0.0.1').split(',') if h]

INSTALLED_APPS = [
    'django.contrib.admin',
    'django.contrib.auth',
    'django.contrib.contenttypes',
    'django.contrib.sessions',
    'django.contrib.messages',
    'django.contrib.staticfiles',
    # Third party
    'rest_framework',
    'rest_framework_simplejwt',
    'django_filters',
    'corsheaders',
    # Local apps
    'pharmatrack.core',
    'pharmatrack.pharmacies',
    'pharmatrack.staff',
    'pharmatrack.catalog',
    'pharmatrack.inventory',
    'pharmatrack.parties',
    'pharmatrack.imports',
    'pharmatrack.pos',
    'pharmatrack.billing',
    'pharmatrack.marketplace',
    'pharmatrack.notifications',
    'pharmatrack.ai',
    'pharmatrack.reports',
]

MIDDLEWARE = [
    'corsheaders.middleware.CorsMiddleware',
    'django.middleware.security.SecurityMiddleware',
    'django.contrib.sessions.middleware.SessionMiddleware',
    'django.middleware.common.CommonMiddleware',
    'django.middleware.csrf.CsrfViewMiddleware',
    'django.contrib.auth.middleware.AuthenticationMiddleware',
    'django.contrib.messages.middleware.MessageMiddleware',
    'django.middleware.clickjacking.XFrameOptionsMiddleware',
]

ROOT_URLCONF = 'pharmatrack.config.urls'

TEMPLATES = [
    {
        'BACKEND': 'django.template.backends.django.DjangoTemplates',
        'DIRS': [],
        'APP_DIRS': True,
        'OPTIONS': {
            'context_processors': [
                'django.template.context_processors.request',
                'django.contrib.auth.context_processors.auth',
                'django.contrib.messages.context_processors.messages',
            ],
        },
    },
]

WSGI_APPLICATION = 'pharmatrack.config.wsgi.application'

# -----------------------
#  Database
# -----------------------
DATABASES = {
    'default': {
        'ENGINE': ENV('DB_ENGINE', 'django.db.backends.sqlite3'),
        'NAME': ENV('DB_NAME', str(BASE_DIR.parent / 'db.sqlite3')),
        'USER': ENV('DB_USER', ''),
        'PASSWORD': ENV('DB_PASSWORD', ''),
        'HOST': ENV('DB_HOST', ''),
        'PORT': ENV('DB_PORT', ''),
    }
}

AUTH_USER_MODEL = 'core.User'

AUTH_PASSWORD_VALIDATORS = [
    {'NAME': 'django.contrib.auth.password_validation.UserAttributeSimilarityValidator'},
    {'NAME': 'django.contrib.auth.password_validation.MinimumLengthValidator'},
    {'NAME': 'django.contrib.auth.password_validation.CommonPasswordValidator'},
    {'NAME': 'django.contrib.auth.password_validation.NumericPasswordValidator'},
]

LANGUAGE_CODE = 'en-gb'
TIME_ZONE = ENV('DJANGO_TIME_ZONE', 'Africa/Lagos')
USE_I18N = True
USE_TZ = True

STATIC_URL = 'static/'
STATIC_ROOT = BASE_DIR.parent / 'staticfiles'
MEDIA_URL = 'media/'
MEDIA_ROOT = BASE_DIR.parent / 'media'

DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'

# -----------------------
#  Cache
# -----------------------
REDIS_URL = ENV('REDIS_URL', '')
if REDIS_URL:
    CACHES = {
        'default': {
            'BACKEND': 'django_redis.cache.RedisCache',
            'LOCATION': REDIS_URL,
            'OPTIONS': {
                'CLIENT_CLASS': 'django_redis.client.DefaultClient',
                'IGNORE_EXCEPTIONS': True,
            },
            'KEY_PREFIX': 'pharmatrack',
        }
    }
else:
    CACHES = {
        'default': {
            'BACKEND': 'django.core.cache.backends.locmem.LocMemCache',
            'LOCATION': 'pharmatrack-default',
        }
    }

# -----------------------
#  REST framework / JWT
# -----------------------
REST_FRAMEWORK = {
    'DEFAULT_AUTHENTICATION_CLASSES': (
        'rest_framework_simplejwt.authentication.JWTAuthentication',
    ),
    'DEFAULT_PERMISSION_CLASSES': (
        'rest_framework.permissions.IsAuthenticated',
    ),
    'DEFAULT_FILTER_BACKENDS': (
        'django_filters.rest_framework.DjangoFilterBackend',
    ),
}

SIMPLE_JWT = {
    'ACCESS_TOKEN_LIFETIME': timedelta(minutes=int(ENV('JWT_ACCESS_MINUTES', '60'))),
    'REFRESH_TOKEN_LIFETIME': timedelta(days=int(ENV('JWT_REFRESH_DAYS', '7'))),
    'ROTATE_REFRESH_TOKENS': True,
    'AUTH_HEADER_TYPES': ('Bearer',),
}

# -----------------------
#  CORS / CSRF
# -----------------------
CORS_ALLOW_ALL_ORIGINS = ENV('CORS_ALLOW_ALL', 'False').lower() == 'true'
if not CORS_ALLOW_ALL_ORIGINS:
    CORS_ALLOWED_ORIGINS = [o for o in ENV('CORS_ALLOWED_ORIGINS', 'http://localhost:5173').split(',') if o]

CSRF_TRUSTED_ORIGINS = [o for o in ENV('CSRF_TRUSTED_ORIGINS', '').split(',') if o]

# -----------------------
#  Logging
# -----------------------
LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'verbose': {
            'format': '{asctime} {levelname} {name} {message}',
            'style': '{',
        },
    },
    'handlers': {
        'console': {
            'class': 'logging.StreamHandler',
            'formatter': 'verbose',
        },
    },
    'root': {
        'handlers': ['console'],
        'level': ENV('DJANGO_LOG_LEVEL', 'INFO'),
    },
    'loggers': {
        'django': {
            'handlers': ['console'],
            'level': ENV('DJANGO_LOG_LEVEL', 'INFO'),
            'propagate': False,
        },
    },
}

# -----------------------
#  Pharmacy / integrations
# -----------------------
DEFAULT_CURRENCY = ENV('DEFAULT_CURRENCY', 'NGN')
TRIAL_DAYS = int(ENV('TRIAL_DAYS', '14'))

GEMINI_API_KEY = ENV('GEMINI_API_KEY', '')
GEMINI_MODEL = ENV('GEMINI_MODEL', 'gemini-2.0-flash')
AI_CACHE_TTL = int(ENV('AI_CACHE_TTL', '300'))

PAYSTACK_SECRET_KEY = ENV('PAYSTACK_SECRET_KEY', '')
PAYSTACK_PUBLIC_KEY = ENV('PAYSTACK_PUBLIC_KEY', '')
PAYSTACK_CALLBACK_URL = ENV('PAYSTACK_CALLBACK_URL', '')

TERMII_API_KEY = ENV('TERMII_API_KEY', '')
TERMII_WHATSAPP_DEVICE_ID = ENV('TERMII_WHATSAPP_DEVICE_ID', '')
