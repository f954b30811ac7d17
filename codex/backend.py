"""
Supabase client factories.

Two variants share the ``supabase.AsyncClient`` interface and are picked by
the caller's context:

- ``get_shared_client()``: one anonymous client for the whole process. Used
  by the public pages (through the query cache) and management commands.
- ``create_request_client(session)``: a client scoped to one HTTP request,
  restored from the Supabase tokens kept in the Django session. Used by the
  auth store and the admin panel, so row-level security sees the editor.
"""

import logging

from django.conf import settings
from supabase import AuthError, acreate_client
from supabase.lib.client_options import AsyncClientOptions

logger = logging.getLogger(__name__)

SESSION_KEY = 'codex_auth'

_shared_client = None


def _client_options():
    # Tokens live in the Django session, not in the client
    return AsyncClientOptions(persist_session=False, auto_refresh_token=False)


async def get_shared_client():
    """Return the process-wide anonymous client, creating it on first use."""
    global _shared_client
    if _shared_client is None:
        logger.debug("Creating shared Supabase client for %s", settings.SUPABASE_URL)
        _shared_client = await acreate_client(
            settings.SUPABASE_URL,
            settings.SUPABASE_ANON_KEY,
            options=_client_options(),
        )
    return _shared_client


def reset_shared_client():
    """Drop the shared client (tests, settings reload)."""
    global _shared_client
    _shared_client = None


async def create_request_client(session):
    """
    Build a client for one request.

    ``session`` is the Django session (any mapping works). Stored tokens that
    the backend rejects are dropped and the client stays anonymous.
    """
    client = await acreate_client(
        settings.SUPABASE_URL,
        settings.SUPABASE_ANON_KEY,
        options=_client_options(),
    )
    tokens = session.get(SESSION_KEY)
    if tokens:
        try:
            await client.auth.set_session(tokens['access_token'], tokens['refresh_token'])
        except (AuthError, KeyError) as e:
            logger.info("Discarding stored Supabase session: %s", e)
            forget_session(session)
    return client


async def remember_session(client, session):
    """Copy the client's current tokens into the Django session."""
    current = await client.auth.get_session()
    if current is None:
        forget_session(session)
        return
    tokens = {
        'access_token': current.access_token,
        'refresh_token': current.refresh_token,
    }
    if session.get(SESSION_KEY) != tokens:
        session[SESSION_KEY] = tokens


def forget_session(session):
    if SESSION_KEY in session:
        del session[SESSION_KEY]
