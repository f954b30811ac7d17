"""
Error taxonomy for the codex data layer.

The data-access functions never leak raw Supabase exceptions: they are
translated here into one of a handful of classes that the views switch on.
"""

import logging

from django.utils.translation import gettext_lazy as _
from supabase import AuthError, AuthWeakPasswordError, PostgrestAPIError, StorageException

logger = logging.getLogger(__name__)


class CodexError(Exception):
    """Base class for every failure raised by the data layer."""
    default_message = 'Backend request failed'

    def __init__(self, message=None, code=None):
        self.message = message or self.default_message
        self.code = code
        super().__init__(self.message)


class NotFound(CodexError):
    default_message = 'Record not found'


class DuplicateSlug(CodexError):
    default_message = 'Slug already in use'


class Unauthenticated(CodexError):
    default_message = 'Not authenticated'


class PermissionDenied(CodexError):
    default_message = 'Permission denied'


class ValidationFailed(CodexError):
    default_message = 'Invalid data'


class Unknown(CodexError):
    default_message = 'Unexpected backend error'


# PostgREST / Postgres error codes
POSTGREST_CODES = {
    'PGRST116': NotFound,            # .single() matched zero (or many) rows
    '23505': DuplicateSlug,          # unique_violation
    '42501': PermissionDenied,       # insufficient_privilege / row-level security
    'PGRST301': Unauthenticated,     # JWT expired or invalid
    'PGRST302': Unauthenticated,     # anonymous access disabled
    '23502': ValidationFailed,       # not_null_violation
    '23503': ValidationFailed,       # foreign_key_violation
    '23514': ValidationFailed,       # check_violation
    '22P02': ValidationFailed,       # invalid_text_representation (bad enum / uuid)
    '22001': ValidationFailed,       # string_data_right_truncation
    'PGRST204': ValidationFailed,    # unknown column in payload
}

STORAGE_STATUSES = {
    400: ValidationFailed,
    401: Unauthenticated,
    403: PermissionDenied,
    404: NotFound,
    409: DuplicateSlug,
    413: ValidationFailed,
    422: ValidationFailed,
}


def _storage_status(exc):
    payload = exc.args[0] if exc.args else None
    if isinstance(payload, dict):
        status = payload.get('statusCode') or payload.get('status')
        try:
            return int(status)
        except (TypeError, ValueError):
            return None
    return None


def translate_error(exc):
    """
    Map a backend exception to the codex taxonomy.

    Codex errors pass through unchanged, so the function can be applied
    at any layer without double wrapping.
    """
    if isinstance(exc, CodexError):
        return exc

    if isinstance(exc, PostgrestAPIError):
        error_class = POSTGREST_CODES.get(str(exc.code), Unknown)
        return error_class(exc.message, code=exc.code)

    if isinstance(exc, AuthWeakPasswordError):
        return ValidationFailed(getattr(exc, 'message', str(exc)), code='weak_password')

    if isinstance(exc, AuthError):
        return Unauthenticated(getattr(exc, 'message', str(exc)), code=getattr(exc, 'code', None))

    if isinstance(exc, StorageException):
        status = _storage_status(exc)
        error_class = STORAGE_STATUSES.get(status, Unknown)
        return error_class(str(exc), code=status)

    logger.error("Untranslated backend error %s: %s", type(exc).__name__, exc)
    return Unknown(str(exc) or None)


USER_MESSAGES = {
    NotFound: _('The requested record no longer exists.'),
    DuplicateSlug: _('That slug is already taken. Choose another one.'),
    Unauthenticated: _('You need to be signed in to do that.'),
    PermissionDenied: _('No permission. Check that your account is an administrator.'),
    ValidationFailed: _('Some of the submitted data is invalid.'),
    Unknown: _('Something went wrong. Please try again.'),
}


def user_message(exc):
    """Localized message shown to the reader for a codex error."""
    for error_class, message in USER_MESSAGES.items():
        if isinstance(exc, error_class):
            return message
    return USER_MESSAGES[Unknown]
