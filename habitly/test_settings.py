"""
Django test settings for the Habitly project.
Overrides main settings for testing.
"""

from .settings import *
import os

# Use a file-based SQLite database for testing instead of in-memory
DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': os.path.join(BASE_DIR, 'test_db.sqlite3'),
        'TEST': {
            'NAME': os.path.join(BASE_DIR, 'test_db.sqlite3'),
        }
    }
}

TEST_RUNNER = 'django.test.runner.DiscoverRunner'

# Use faster password hasher for tests
PASSWORD_HASHERS = [
    'django.contrib.auth.hashers.MD5PasswordHasher',
]

HABITLY = {
    **HABITLY,
    'TIME_ZONE': 'Asia/Shanghai',
    'GLOBAL_RANKING_LIMIT': 10,
    'DEFAULT_PAGE_SIZE': 10,
    'MAX_PAGE_SIZE': 100,
}

# Use a simpler logging setup for tests
LOGGING = {
    'version': 1,
    'disable_existing_loggers': True,
    'handlers': {
        'null': {
            'class': 'logging.NullHandler',
        },
    },
    'loggers': {
        'django': {
            'handlers': ['null'],
            'propagate': False,
            'level': 'INFO',
        },
        'habitly': {
            'handlers': ['null'],
            'propagate': False,
            'level': 'DEBUG',
        },
    }
}
