"""
URL configuration for Verbum Web.
"""

from django.conf import settings
from django.conf.urls.static import static
from django.urls import path, include
from django.http import JsonResponse


def health_check(request):
    """Simple health check endpoint."""
    return JsonResponse({'status': 'ok'})


urlpatterns = [
    path('health/', health_check, name='health_check'),

    # Admin panel (stories, wiki, map positions, media library)
    path('admin/', include('codex.admin_urls')),

    # Public reader site, map and login
    path('', include('codex.urls')),
]

if settings.DEBUG:
    urlpatterns += static(settings.STATIC_URL, document_root=settings.STATIC_ROOT)
