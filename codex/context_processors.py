"""
Auth context processor for Verbum.

Exposes the state of the request's auth store (see AuthSessionMiddleware)
to every template.
"""

from django.conf import settings

from codex.auth import LOGGED_OUT


def auth_context(request):
    """
    Add the signed-in user to all templates.

    Requests that never went through AuthSessionMiddleware (error handlers,
    static files) read as logged out.
    """
    store = getattr(request, 'auth', None)
    state = store.get_state() if store is not None else LOGGED_OUT

    return {
        'auth': state,
        'current_user': state.user,
        'current_profile': state.profile,
        'is_admin': state.is_admin,
        'site_name': settings.SITE_NAME,
    }
