"""
Test settings for Verbum Web.
"""

from .base import *

DEBUG = False

ALLOWED_HOSTS = ['testserver', 'localhost']

SUPABASE_URL = 'http://supabase.test'
SUPABASE_ANON_KEY = 'test-anon-key'

STORAGES['staticfiles'] = {
    'BACKEND': 'django.contrib.staticfiles.storage.StaticFilesStorage',
}

LOGGING['loggers']['codex']['level'] = 'CRITICAL'
