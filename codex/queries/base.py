"""
Shared plumbing for the data-access functions.
"""

import logging

from codex.errors import Unauthenticated, ValidationFailed, translate_error
from codex.choices import MAP_MAX_COORD, MAP_MIN_COORD

logger = logging.getLogger(__name__)


async def execute(request):
    """
    Run one PostgREST request and return its response.

    Backend exceptions are translated into the codex error taxonomy; the
    original exception stays available as ``__cause__``.
    """
    try:
        return await request.execute()
    except Exception as e:
        error = translate_error(e)
        logger.warning("Backend request failed (%s): %s", type(error).__name__, error.message)
        raise error from e


async def current_user(db):
    """The signed-in user of ``db``, or None."""
    try:
        response = await db.auth.get_user()
    except Exception as e:
        error = translate_error(e)
        if isinstance(error, Unauthenticated):
            return None
        raise error from e
    return response.user if response else None


async def require_user(db):
    user = await current_user(db)
    if user is None:
        raise Unauthenticated()
    return user


def check_coordinates(values):
    """Reject map coordinates outside the world bounds."""
    for axis in ('x_coord', 'y_coord', 'z_coord'):
        value = values.get(axis)
        if value is None:
            continue
        if not MAP_MIN_COORD <= value <= MAP_MAX_COORD:
            raise ValidationFailed(
                f"{axis} must be between {MAP_MIN_COORD} and {MAP_MAX_COORD}",
                code='coordinates',
            )


def drop_unset(values):
    """Remove keys whose value is None (optional insert fields)."""
    return {key: value for key, value in values.items() if value is not None}
