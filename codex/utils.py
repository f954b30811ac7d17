"""
Small helpers shared across the codex app.
"""

import asyncio
import re
import unicodedata

_COMBINING_MARKS = re.compile('[\u0300-\u036f]')
_NON_ALNUM_RUN = re.compile(r'[^a-z0-9]+')


def slugify(text):
    """
    Build the URL slug used for stories and wiki entities.

    Lowercases, decomposes accented letters (NFD) and drops the combining
    marks, collapses every run of characters outside [a-z0-9] into a single
    hyphen and trims hyphens from both ends:

        >>> slugify('A Queda do Império!!')
        'a-queda-do-imperio'

    Stored slugs were produced by exactly this algorithm, so it must not be
    swapped for django.utils.text.slugify (which keeps underscores).
    """
    if not text:
        return ''
    text = unicodedata.normalize('NFD', text.lower())
    text = _COMBINING_MARKS.sub('', text)
    text = _NON_ALNUM_RUN.sub('-', text)
    return text.strip('-')


def is_abort_error(error):
    """
    True when an exception stands for a cancelled request.

    Covers asyncio cancellation, exception classes named ``AbortError`` and
    messages mentioning an aborted request. Cancellations come from a reader
    leaving the page and are neither retried nor reported.
    """
    if error is None:
        return False
    if isinstance(error, asyncio.CancelledError):
        return True
    if type(error).__name__ == 'AbortError':
        return True
    return 'aborted' in str(error).lower()


def should_retry(failure_count, error, max_retries=2):
    """
    Retry policy for cached reads.

    ``failure_count`` is the number of failed attempts so far.
    """
    if is_abort_error(error):
        return False
    return failure_count <= max_retries


def retry_delay(attempt):
    """Exponential backoff in seconds: 1, 2, 4, ... capped at 30."""
    return min(2 ** (attempt - 1), 30)


def estimate_reading_time(html, words_per_minute=200):
    """Minutes needed to read a chapter body (HTML tags ignored)."""
    if not html:
        return 0
    text = re.sub(r'<[^>]+>', ' ', html)
    words = len(text.split())
    if not words:
        return 0
    return max(1, round(words / words_per_minute))


DEFAULT_CHAPTER_PATTERN = 'Capítulo'
PROLOGUE_TITLE = 'Prólogo'


def split_chapters(text, pattern=DEFAULT_CHAPTER_PATTERN):
    """
    Split an imported manuscript into ``{'title', 'content'}`` chapters.

    A heading is a line starting with ``pattern`` (case-insensitive, taken
    literally), optionally followed by a number and a title:

        Capítulo 1: A Queda
        CAPÍTULO 2 - O Cerco

    Text before the first heading becomes a "Prólogo" chapter; headings with
    no text under them are dropped. Without any heading the whole text is
    one chapter, "Capítulo 1".
    """
    if not text or not text.strip():
        return []

    pattern = (pattern or DEFAULT_CHAPTER_PATTERN).strip()
    heading = re.compile(
        rf'^[ \t]*{re.escape(pattern)}[ \t]*\d*[: \t-]*[^\n]*$',
        re.IGNORECASE | re.MULTILINE,
    )
    matches = list(heading.finditer(text))

    chapters = []
    if matches:
        prologue = text[:matches[0].start()].strip()
        if prologue:
            chapters.append({'title': PROLOGUE_TITLE, 'content': prologue})
        for match, following in zip(matches, matches[1:] + [None]):
            end = following.start() if following else len(text)
            content = text[match.end():end].strip()
            if content:
                chapters.append({'title': match.group().strip(), 'content': content})

    if not chapters:
        chapters.append({'title': f'{DEFAULT_CHAPTER_PATTERN} 1', 'content': text.strip()})
    return chapters
