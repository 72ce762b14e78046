"""
Base settings for restopos project.
Shared between local (POS) and cloud deployments.
"""

from pathlib import Path
import os

from django.urls import reverse_lazy

# Build paths inside the project like this: BASE_DIR / 'subdir'.
BASE_DIR = Path(__file__).resolve().parent.parent.parent


# SECURITY WARNING: keep the secret key used in production secret!
SECRET_KEY = os.getenv('SECRET_KEY', 'django-insecure-restopos-local-only-key')

# SECURITY WARNING: don't run with debug turned on in production!
DEBUG = os.getenv('DEBUG', 'True').lower() == 'true'

ALLOWED_HOSTS = os.getenv('ALLOWED_HOSTS', '*').split(',')


# Application definition
INSTALLED_APPS = [
    "unfold",
    "unfold.contrib.filters",
    'django.contrib.admin',
    'django.contrib.auth',
    'django.contrib.contenttypes',
    'django.contrib.sessions',
    'django.contrib.messages',
    'django.contrib.staticfiles',
    'corsheaders',
    'stock',
]

MIDDLEWARE = [
    'django.middleware.security.SecurityMiddleware',
    'django.contrib.sessions.middleware.SessionMiddleware',
    'corsheaders.middleware.CorsMiddleware',
    'django.middleware.common.CommonMiddleware',
    'django.middleware.csrf.CsrfViewMiddleware',
    'django.contrib.auth.middleware.AuthenticationMiddleware',
    'django.contrib.messages.middleware.MessageMiddleware',
    'django.middleware.clickjacking.XFrameOptionsMiddleware',
]

ROOT_URLCONF = 'restopos.urls'

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

WSGI_APPLICATION = 'restopos.wsgi.application'


# Password validation
AUTH_PASSWORD_VALIDATORS = [
    {'NAME': 'django.contrib.auth.password_validation.UserAttributeSimilarityValidator'},
    {'NAME': 'django.contrib.auth.password_validation.MinimumLengthValidator'},
    {'NAME': 'django.contrib.auth.password_validation.CommonPasswordValidator'},
    {'NAME': 'django.contrib.auth.password_validation.NumericPasswordValidator'},
]


# Internationalization
LANGUAGE_CODE = 'en-us'
TIME_ZONE = os.getenv('TIME_ZONE', 'Asia/Colombo')
USE_I18N = True
USE_TZ = True


# Static files
STATIC_URL = 'static/'
STATIC_ROOT = BASE_DIR / 'staticfiles'


# CORS
CORS_ALLOW_ALL_ORIGINS = True


# Default primary key field type
DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'


# =============================================================================
# STOCK LEDGER
# =============================================================================
STOCK_LEDGER = {
    # Reconciliation differences at or below this are treated as no variance
    'VARIANCE_EPSILON': os.getenv('STOCK_VARIANCE_EPSILON', '0.0001'),
    'EXPIRY_ALERT_DAYS': int(os.getenv('STOCK_EXPIRY_ALERT_DAYS', '7')),
    'SEQUENCE_PADDING': 4,
    'DEFAULT_RECONCILIATION_LOCATION': os.getenv('STOCK_DEFAULT_LOCATION', 'Warehouse'),
    'PAGE_SIZE_MAX': 100,
}


# Unfold Admin Configuration
UNFOLD = {
    "SITE_TITLE": "RestoPOS Admin",
    "SITE_HEADER": "RestoPOS",
    "SITE_URL": "/",
    "SITE_SYMBOL": "restaurant",

    "SIDEBAR": {
        "show_search": True,
        "show_all_applications": True,
        "navigation": [
            {
                "title": "Stock",
                "separator": True,
                "items": [
                    {
                        "title": "Ingredients",
                        "icon": "inventory_2",
                        "link": reverse_lazy("admin:stock_ingredient_changelist"),
                    },
                    {
                        "title": "Stock Ledger",
                        "icon": "receipt_long",
                        "link": reverse_lazy("admin:stock_stocktransaction_changelist"),
                    },
                    {
                        "title": "Transfers",
                        "icon": "local_shipping",
                        "link": reverse_lazy("admin:stock_stocktransfer_changelist"),
                    },
                    {
                        "title": "Reconciliations",
                        "icon": "fact_check",
                        "link": reverse_lazy("admin:stock_stockreconciliation_changelist"),
                    },
                ],
            },
        ],
    },
}
