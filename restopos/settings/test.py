"""
Settings for the test suite.

Usage:
    pytest  (DJANGO_SETTINGS_MODULE is set in pyproject.toml)
    DATABASE_NAME=restopos_test pytest  (PostgreSQL, enables the concurrency tests)
"""

from .base import *

DEPLOYMENT_MODE = 'test'

DEBUG = False

# Row-lock tests only run against PostgreSQL; export DATABASE_NAME to use it.
if os.getenv('DATABASE_NAME'):
    DATABASES = {
        'default': {
            'ENGINE': 'django.db.backends.postgresql',
            'NAME': os.getenv('DATABASE_NAME'),
            'USER': os.getenv('DATABASE_USER', 'postgres'),
            'PASSWORD': os.getenv('DATABASE_PASSWORD', ''),
            'HOST': os.getenv('DATABASE_HOST', 'localhost'),
            'PORT': os.getenv('DATABASE_PORT', '5432'),
        }
    }
else:
    DATABASES = {
        'default': {
            'ENGINE': 'django.db.backends.sqlite3',
            'NAME': ':memory:',
        }
    }

CACHES = {
    'default': {
        'BACKEND': 'django.core.cache.backends.locmem.LocMemCache',
        'LOCATION': 'restopos-test',
    }
}

PASSWORD_HASHERS = ['django.contrib.auth.hashers.MD5PasswordHasher']

LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'handlers': {
        'console': {
            'class': 'logging.StreamHandler',
        },
    },
    'loggers': {
        'stock': {
            'handlers': ['console'],
            'level': 'WARNING',
        },
    },
}
