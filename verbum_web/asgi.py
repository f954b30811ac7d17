"""
ASGI config for Verbum Web.

The codex views await every Supabase call; serving them from one event loop
lets the query cache share in-flight requests between concurrent readers.
"""

import os

from django.core.asgi import get_asgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'verbum_web.settings.dev')

application = get_asgi_application()
