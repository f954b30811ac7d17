"""
Development settings for Verbum Web.
"""

from .base import *

DEBUG = True

ALLOWED_HOSTS = ['localhost', '127.0.0.1']

# Shorter cache windows make admin edits visible on the public pages sooner
CODEX_STALE_TIME = int(os.environ.get('CODEX_STALE_TIME', 30))

# Email backend for dev
EMAIL_BACKEND = 'django.core.mail.backends.console.EmailBackend'

# Simplified static files for dev
STORAGES['staticfiles'] = {
    'BACKEND': 'django.contrib.staticfiles.storage.StaticFilesStorage',
}

LOGGING['loggers']['codex']['level'] = os.environ.get('LOG_LEVEL', 'DEBUG').upper()
