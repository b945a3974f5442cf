"""
Django settings for the Habitly project.

Values come from environment variables with development defaults.
"""

import os
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent


def env_bool(name, default=False):
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


def env_int(name, default):
    value = os.environ.get(name)
    if not value:
        return default
    try:
        return int(value)
    except ValueError:
        return default


SECRET_KEY = os.environ.get('DJANGO_SECRET_KEY', 'django-insecure-habitly-dev-key')

DEBUG = env_bool('DJANGO_DEBUG', False)

ALLOWED_HOSTS = [h for h in os.environ.get('DJANGO_ALLOWED_HOSTS', 'localhost,127.0.0.1').split(',') if h]

INSTALLED_APPS = [
    'django.contrib.auth',
    'django.contrib.contenttypes',
    'rest_framework',
    'users',
    'friends',
    'activity',
    'ranking',
]

MIDDLEWARE = [
    'django.middleware.security.SecurityMiddleware',
    'django.middleware.common.CommonMiddleware',
]

DATABASES = {
    'default': {
        'ENGINE': os.environ.get('DB_ENGINE', 'django.db.backends.sqlite3'),
        'NAME': os.environ.get('DB_NAME', str(BASE_DIR / 'db.sqlite3')),
        'USER': os.environ.get('DB_USER', ''),
        'PASSWORD': os.environ.get('DB_PASSWORD', ''),
        'HOST': os.environ.get('DB_HOST', ''),
        'PORT': os.environ.get('DB_PORT', ''),
        'CONN_MAX_AGE': env_int('DB_CONN_MAX_AGE', 60),
    }
}

DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'

AUTH_USER_MODEL = 'users.User'

# Calendar-day windows are interpreted in this zone; storage stays in UTC.
TIME_ZONE = os.environ.get('HABITLY_TIME_ZONE', 'Asia/Shanghai')
USE_TZ = True
LANGUAGE_CODE = 'en-us'
USE_I18N = True

REST_FRAMEWORK = {
    'EXCEPTION_HANDLER': 'habitly.utils.custom_exception_handler',
}

HABITLY = {
    'TIME_ZONE': TIME_ZONE,
    'GLOBAL_RANKING_LIMIT': env_int('HABITLY_GLOBAL_RANKING_LIMIT', 10),
    'DEFAULT_PAGE_SIZE': env_int('HABITLY_DEFAULT_PAGE_SIZE', 10),
    'MAX_PAGE_SIZE': env_int('HABITLY_MAX_PAGE_SIZE', 100),
}

LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'verbose': {
            'format': '{levelname} {asctime} {name} {process:d} {thread:d} {message}',
            'style': '{',
        },
        'simple': {
            'format': '{levelname} {message}',
            'style': '{',
        },
    },
    'handlers': {
        'console': {
            'class': 'logging.StreamHandler',
            'formatter': 'verbose' if not DEBUG else 'simple',
        },
    },
    'loggers': {
        'django': {
            'handlers': ['console'],
            'level': os.environ.get('DJANGO_LOG_LEVEL', 'INFO'),
            'propagate': False,
        },
        'habitly': {
            'handlers': ['console'],
            'level': os.environ.get('HABITLY_LOG_LEVEL', 'DEBUG' if DEBUG else 'INFO'),
            'propagate': False,
        },
    },
}
