"""
Production settings for Verbum Web.
"""

import os

from django.core.exceptions import ImproperlyConfigured

from .base import *

DEBUG = False

ALLOWED_HOSTS = os.environ.get('ALLOWED_HOSTS', '').split(',')
CSRF_TRUSTED_ORIGINS = [SITE_BASE_URL]

if not SUPABASE_ANON_KEY:
    raise ImproperlyConfigured('SUPABASE_ANON_KEY must be set in production')
if SECRET_KEY.startswith('django-insecure'):
    raise ImproperlyConfigured('SECRET_KEY must be set in production')

# Security settings for production
SECURE_PROXY_SSL_HEADER = ('HTTP_X_FORWARDED_PROTO', 'https')
SECURE_SSL_REDIRECT = True
SESSION_COOKIE_SECURE = True
CSRF_COOKIE_SECURE = True
SECURE_CONTENT_TYPE_NOSNIFF = True
X_FRAME_OPTIONS = 'DENY'

# Session cookies carry Supabase refresh tokens; keep them for a week
SESSION_COOKIE_AGE = 7 * 24 * 60 * 60

LOGGING['root']['level'] = 'INFO'
