"""
Base settings for Verbum Web project.
"""

import os
from pathlib import Path
from dotenv import load_dotenv

load_dotenv()

BASE_DIR = Path(__file__).resolve().parent.parent.parent

SECRET_KEY = os.environ.get('SECRET_KEY', 'django-insecure-change-me')

INSTALLED_APPS = [
    # Django apps
    'django.contrib.sessions',
    'django.contrib.messages',
    'django.contrib.staticfiles',

    # Third party
    'django_extensions',

    # Project apps
    'codex',
]

MIDDLEWARE = [
    'django.middleware.security.SecurityMiddleware',
    'whitenoise.middleware.WhiteNoiseMiddleware',
    'django.contrib.sessions.middleware.SessionMiddleware',
    'django.middleware.common.CommonMiddleware',
    'django.middleware.csrf.CsrfViewMiddleware',
    'django.contrib.messages.middleware.MessageMiddleware',
    'django.middleware.clickjacking.XFrameOptionsMiddleware',
    'codex.middleware.ErrorBoundaryMiddleware',
    'codex.middleware.AuthSessionMiddleware',
]

ROOT_URLCONF = 'verbum_web.urls'

TEMPLATES = [
    {
        'BACKEND': 'django.template.backends.django.DjangoTemplates',
        'DIRS': [
            BASE_DIR / 'templates',
        ],
        'APP_DIRS': True,
        'OPTIONS': {
            'context_processors': [
                'django.template.context_processors.debug',
                'django.template.context_processors.request',
                'django.contrib.messages.context_processors.messages',
                'codex.context_processors.auth_context',
            ],
        },
    },
]

ASGI_APPLICATION = 'verbum_web.asgi.application'

# The site keeps no database of its own: content, accounts and files live in
# Supabase. Sessions only carry the Supabase tokens.
DATABASES = {}
SESSION_ENGINE = 'django.contrib.sessions.backends.signed_cookies'
SESSION_COOKIE_HTTPONLY = True
MESSAGE_STORAGE = 'django.contrib.messages.storage.cookie.CookieStorage'

LANGUAGE_CODE = 'en-us'
TIME_ZONE = 'UTC'
USE_I18N = True
USE_TZ = True

# Static files
STATIC_URL = '/static/'
STATIC_ROOT = BASE_DIR / 'staticfiles'
STATICFILES_DIRS = []
STORAGES = {
    'default': {
        'BACKEND': 'django.core.files.storage.FileSystemStorage',
    },
    'staticfiles': {
        'BACKEND': 'whitenoise.storage.CompressedManifestStaticFilesStorage',
    },
}

# Uploads are streamed to Supabase Storage, never written locally.
DATA_UPLOAD_MAX_MEMORY_SIZE = 10 * 1024 * 1024
FILE_UPLOAD_MAX_MEMORY_SIZE = 10 * 1024 * 1024

# =============================================================================
# SUPABASE BACKEND
# =============================================================================

SUPABASE_URL = os.environ.get('SUPABASE_URL', 'http://localhost:54321')
SUPABASE_ANON_KEY = os.environ.get('SUPABASE_ANON_KEY', '')

SITE_NAME = 'Centurioes Verbum'
SITE_BASE_URL = os.environ.get('SITE_BASE_URL', 'https://centurioes-verbum.vercel.app')

# =============================================================================
# QUERY CACHE (seconds)
# =============================================================================
# Reads are served from the in-process query cache until they go stale, then
# refetched in the background. Unused entries are dropped after CODEX_GC_TIME.

CODEX_STALE_TIME = int(os.environ.get('CODEX_STALE_TIME', 300))
CODEX_COUNTS_STALE_TIME = int(os.environ.get('CODEX_COUNTS_STALE_TIME', 600))
CODEX_SEARCH_STALE_TIME = int(os.environ.get('CODEX_SEARCH_STALE_TIME', 60))
CODEX_GC_TIME = int(os.environ.get('CODEX_GC_TIME', 1800))
CODEX_QUERY_RETRIES = int(os.environ.get('CODEX_QUERY_RETRIES', 2))

CODEX_MEDIA_BUCKET = os.environ.get('CODEX_MEDIA_BUCKET', 'media')
CODEX_PAGE_SIZE = int(os.environ.get('CODEX_PAGE_SIZE', 20))

LOGIN_URL = '/login/'

# Logging
LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'simple': {
            'format': '%(asctime)s - %(levelname)s - %(name)s - %(message)s',
        },
    },
    'handlers': {
        'console': {
            'class': 'logging.StreamHandler',
            'formatter': 'simple',
        },
    },
    'root': {
        'handlers': ['console'],
        'level': 'WARNING',
    },
    'loggers': {
        'codex': {
            'handlers': ['console'],
            'level': os.environ.get('LOG_LEVEL', 'INFO').upper(),
            'propagate': False,
        },
    },
}
