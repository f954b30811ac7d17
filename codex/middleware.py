"""
Request middleware for the codex app.

AuthSessionMiddleware
    Gives every request its own Supabase client (``request.supabase``) and
    auth store (``request.auth``), guards the admin panel and writes
    refreshed tokens back to the session.

ErrorBoundaryMiddleware
    Turns a data-layer error that escaped a view into an error page instead
    of a bare 500.
"""

import logging
from urllib.parse import urlencode

from asgiref.sync import iscoroutinefunction, markcoroutinefunction
from django.conf import settings
from django.shortcuts import redirect, render
from django.utils.deprecation import MiddlewareMixin

from codex.auth import AuthStore
from codex.backend import create_request_client, remember_session
from codex.errors import NotFound, PermissionDenied, Unauthenticated, Unknown, CodexError, user_message

logger = logging.getLogger(__name__)

ADMIN_PREFIX = '/admin/'


def login_redirect(request):
    query = urlencode({'redirect': request.get_full_path()})
    return redirect(f"{settings.LOGIN_URL}?{query}")


def forbidden(request):
    return render(request, 'codex/403.html', status=403)


class AuthSessionMiddleware:
    async_capable = True
    sync_capable = False

    def __init__(self, get_response):
        self.get_response = get_response
        if iscoroutinefunction(self.get_response):
            markcoroutinefunction(self)

    async def __call__(self, request):
        client = await create_request_client(request.session)
        store = AuthStore(client)
        request.supabase = client
        request.auth = store
        try:
            state = await store.init()

            if request.path_info.startswith(ADMIN_PREFIX):
                if not state.is_authenticated:
                    return login_redirect(request)
                if not state.is_admin:
                    logger.info("Refused admin access to %s", state.user.id)
                    return forbidden(request)

            response = await self.get_response(request)
            await remember_session(client, request.session)
            return response
        finally:
            store.close()


class ErrorBoundaryMiddleware(MiddlewareMixin):

    def process_exception(self, request, exception):
        if not isinstance(exception, CodexError):
            return None

        if isinstance(exception, Unauthenticated):
            return login_redirect(request)
        if isinstance(exception, PermissionDenied):
            return forbidden(request)

        if isinstance(exception, NotFound):
            status = 404
        elif isinstance(exception, Unknown):
            status = 503
        else:
            status = 500
        logger.error("Unhandled %s on %s: %s", type(exception).__name__, request.path,
                     exception.message, exc_info=exception)
        return render(request, 'codex/error.html', {
            'error_message': user_message(exception),
            'retry_url': request.get_full_path(),
        }, status=status)
