"""
Authentication store.

One ``AuthStore`` wraps one Supabase client and publishes an immutable
``AuthState`` (user, profile, admin flag, loading flag). The
``AuthSessionMiddleware`` creates a store per request and attaches it as
``request.auth``, so views, forms and templates of a request all read the
same state.

Usage:
    store = AuthStore(client)
    await store.init()
    unsubscribe = store.subscribe(lambda state: ...)
    store.get_state().is_admin
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Optional

from codex.errors import NotFound, translate_error
from codex.queries.base import execute

logger = logging.getLogger(__name__)

SIGNED_OUT = 'SIGNED_OUT'
TOKEN_REFRESHED = 'TOKEN_REFRESHED'


@dataclass(frozen=True)
class AuthState:
    user: Optional[Any] = None
    profile: Optional[dict] = None
    is_loading: bool = True
    is_admin: bool = False

    @property
    def is_authenticated(self):
        return self.user is not None


LOGGED_OUT = AuthState(is_loading=False)


class AuthStore:

    def __init__(self, client):
        self.client = client
        self._state = AuthState()
        self._listeners = []
        self._init_task = None
        self._profile_task = None
        self._profile_user_id = None
        self._subscription = None

    # =========================================================================
    # State
    # =========================================================================

    def get_state(self):
        return self._state

    def subscribe(self, listener):
        """Call ``listener(state)`` on every change. Returns an unsubscribe function."""
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)
        return unsubscribe

    def _set_state(self, state):
        if state == self._state:
            return
        self._state = state
        for listener in list(self._listeners):
            listener(state)

    # =========================================================================
    # Session
    # =========================================================================

    async def init(self):
        """Resolve the current session once; concurrent callers share the work."""
        if self._init_task is None:
            self._init_task = asyncio.ensure_future(self._initialize())
        await asyncio.shield(self._init_task)
        return self._state

    async def _initialize(self):
        if self._subscription is None:
            self._subscription = self.client.auth.on_auth_state_change(self._on_auth_state_change)
        try:
            response = await self.client.auth.get_user()
        except Exception as e:
            logger.warning("Could not read the current session: %s", e)
            self._set_state(LOGGED_OUT)
            return
        user = response.user if response else None
        if user is None:
            self._set_state(LOGGED_OUT)
            return
        await self._load_profile(user)

    def _on_auth_state_change(self, event, session):
        if event == TOKEN_REFRESHED:
            return
        if event == SIGNED_OUT or session is None:
            self._profile_user_id = None
            self._set_state(LOGGED_OUT)
            return
        self._schedule_profile_load(session.user)

    def _schedule_profile_load(self, user):
        if (self._profile_user_id == user.id and self._profile_task is not None
                and not self._profile_task.done()):
            return self._profile_task
        self._profile_user_id = user.id
        self._profile_task = asyncio.ensure_future(self._fetch_and_publish(user))
        return self._profile_task

    async def _load_profile(self, user):
        await self._schedule_profile_load(user)

    async def _fetch_and_publish(self, user):
        try:
            profile = await self._fetch_profile(user.id)
        except Exception as e:
            logger.warning("Could not load profile of %s: %s", user.id, e)
            profile = None
        if self._profile_user_id != user.id:
            # Signed out (or switched user) while the profile was loading
            return
        self._set_state(AuthState(
            user=user,
            profile=profile,
            is_loading=False,
            is_admin=bool(profile and profile.get('is_admin')),
        ))

    async def _fetch_profile(self, user_id):
        try:
            response = await execute(
                self.client.table('profiles').select('*').eq('id', user_id).single()
            )
        except NotFound:
            return None
        return response.data

    # =========================================================================
    # Actions
    # =========================================================================

    async def sign_in(self, email, password):
        """Sign in with email and password and publish the signed-in state."""
        try:
            response = await self.client.auth.sign_in_with_password({
                'email': email,
                'password': password,
            })
        except Exception as e:
            raise translate_error(e) from e
        logger.info("User %s signed in", response.user.id)
        await self._load_profile(response.user)
        return self._state

    async def sign_up(self, email, password, username=None, full_name=None):
        metadata = {}
        if username:
            metadata['username'] = username
        if full_name:
            metadata['full_name'] = full_name
        try:
            response = await self.client.auth.sign_up({
                'email': email,
                'password': password,
                'options': {'data': metadata},
            })
        except Exception as e:
            raise translate_error(e) from e
        if response.session is not None and response.user is not None:
            await self._load_profile(response.user)
        return response.user

    async def sign_out(self):
        try:
            await self.client.auth.sign_out()
        except Exception as e:
            raise translate_error(e) from e
        finally:
            self._profile_user_id = None
            self._profile_task = None
            self._set_state(LOGGED_OUT)

    def close(self):
        """Detach from the backend session events and drop the listeners."""
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None
        self._listeners.clear()
        for task in (self._init_task, self._profile_task):
            if task is not None and not task.done():
                task.cancel()
