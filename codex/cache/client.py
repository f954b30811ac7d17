"""
In-process query cache.

Every cached read goes through ``QueryClient.fetch_query`` with a key from
``codex.keys`` and a zero-argument coroutine function that performs the read.
Per key the client keeps one ``Query``:

    idle -> fetching -> success | error
    success -> stale          (once stale_time has elapsed)

- Fresh data is served from memory.
- Stale data is served immediately while a background refetch runs.
- Missing, failed or invalidated data is fetched and awaited.
- Concurrent readers of the same key share one in-flight request.
- Failed reads are retried (2 extra attempts by default); cancellations are
  never retried and never recorded as errors.
- Mutations invalidate key prefixes; the next read of an invalidated key
  goes back to the backend.
- Entries nobody has read for gc_time are dropped.
"""

import asyncio
import logging
import time
from contextlib import contextmanager
from enum import Enum

from django.conf import settings

from codex.keys import is_prefix
from codex.utils import is_abort_error, retry_delay, should_retry

logger = logging.getLogger(__name__)


class QueryState(str, Enum):
    IDLE = 'idle'
    FETCHING = 'fetching'
    SUCCESS = 'success'
    ERROR = 'error'
    STALE = 'stale'


class Query:
    """Cache entry for one key."""

    def __init__(self, key, stale_time, now):
        self.key = key
        self.stale_time = stale_time
        self.status = QueryState.IDLE  # last settled outcome
        self.data = None
        self.error = None
        self.updated_at = None
        self.invalidated = False
        self.generation = 0
        self.failure_count = 0
        self.fetch_count = 0
        self.observers = 0
        self.released_at = now
        self.task = None

    @property
    def is_fetching(self):
        return self.task is not None and not self.task.done()

    def is_stale(self, now):
        if self.invalidated or self.updated_at is None:
            return True
        return now - self.updated_at >= self.stale_time

    def state_at(self, now):
        if self.is_fetching:
            return QueryState.FETCHING
        if self.status == QueryState.SUCCESS and self.is_stale(now):
            return QueryState.STALE
        return self.status

    def __repr__(self):
        return f"<Query {self.key!r} {self.status.value}>"


class QueryClient:
    """
    Keyed cache of backend reads.

    Args:
        stale_time: Seconds a successful read stays fresh.
        gc_time: Seconds an entry without readers is kept.
        retries: Extra attempts after a failed read.
        retry_delay: Callable(attempt) -> seconds to wait before a retry.
        clock: Monotonic time source.
    """

    def __init__(self, stale_time=300, gc_time=1800, retries=2, retry_delay=retry_delay,
                 clock=time.monotonic):
        self.stale_time = stale_time
        self.gc_time = gc_time
        self.retries = retries
        self.retry_delay = retry_delay
        self.clock = clock
        self._queries = {}

    # =========================================================================
    # Lookup
    # =========================================================================

    def get_query(self, key):
        return self._queries.get(tuple(key))

    def get_query_data(self, key):
        query = self.get_query(key)
        return query.data if query else None

    def get_query_state(self, key):
        query = self.get_query(key)
        return query.state_at(self.clock()) if query else QueryState.IDLE

    def find_queries(self, prefix=()):
        return [query for key, query in self._queries.items() if is_prefix(prefix, key)]

    def set_query_data(self, key, data):
        """Seed or overwrite a cached value as if it had just been fetched."""
        query = self._build(key)
        query.data = data
        query.error = None
        query.status = QueryState.SUCCESS
        query.updated_at = self.clock()
        query.invalidated = False
        return query

    def _build(self, key, stale_time=None):
        key = tuple(key)
        query = self._queries.get(key)
        if query is None:
            query = Query(key, self.stale_time if stale_time is None else stale_time, self.clock())
            self._queries[key] = query
        elif stale_time is not None:
            query.stale_time = stale_time
        return query

    # =========================================================================
    # Reads
    # =========================================================================

    @contextmanager
    def observe(self, key, stale_time=None):
        """Register an active reader of ``key`` for the duration of the block."""
        query = self._build(key, stale_time)
        query.observers += 1
        try:
            yield query
        finally:
            query.observers -= 1
            if query.observers == 0:
                query.released_at = self.clock()

    async def fetch_query(self, key, fn, stale_time=None, retries=None):
        """
        Read ``key`` through the cache.

        ``fn`` is a coroutine function performing the actual read. Raises the
        read's final error, or ``asyncio.CancelledError`` when it was
        cancelled.
        """
        self.collect_garbage()
        with self.observe(key, stale_time) as query:
            if query.status == QueryState.SUCCESS and not query.invalidated:
                if query.is_stale(self.clock()):
                    logger.debug("Serving stale %r while revalidating", query.key)
                    self._fetch(query, fn, retries)
                return query.data

            data = await self._wait(query, self._fetch(query, fn, retries))
            if query.invalidated:
                # Invalidated while the request was in flight
                data = await self._wait(query, self._fetch(query, fn, retries))
            return data

    async def _wait(self, query, task):
        try:
            return await asyncio.shield(task)
        except asyncio.CancelledError:
            # The reader went away; stop the request if nobody else waits on it
            if not task.done() and query.observers <= 1:
                task.cancel()
            raise

    def _fetch(self, query, fn, retries=None):
        if query.is_fetching:
            return query.task
        retries = self.retries if retries is None else retries
        query.task = asyncio.ensure_future(self._run(query, fn, retries, query.generation))
        query.task.add_done_callback(_consume_result)
        return query.task

    async def _run(self, query, fn, retries, generation):
        failures = 0
        while True:
            query.fetch_count += 1
            try:
                data = await fn()
            except asyncio.CancelledError:
                logger.debug("Fetch of %r cancelled", query.key)
                raise
            except Exception as e:
                if is_abort_error(e):
                    logger.debug("Fetch of %r aborted: %s", query.key, e)
                    raise asyncio.CancelledError() from e
                failures += 1
                query.failure_count = failures
                if should_retry(failures, e, retries):
                    delay = self.retry_delay(failures)
                    logger.debug("Retrying %r in %ss after %s", query.key, delay, e)
                    if delay:
                        await asyncio.sleep(delay)
                    continue
                query.status = QueryState.ERROR
                query.error = e
                logger.warning("Fetch of %r failed after %d attempt(s): %s", query.key, failures, e)
                raise

            query.data = data
            query.error = None
            query.status = QueryState.SUCCESS
            query.failure_count = 0
            query.updated_at = self.clock()
            query.invalidated = query.generation != generation
            return data

    # =========================================================================
    # Invalidation & housekeeping
    # =========================================================================

    def invalidate_queries(self, *prefixes):
        """Mark every query under any of ``prefixes`` for refetch. Returns the count."""
        count = 0
        for query in self._queries.values():
            if any(is_prefix(prefix, query.key) for prefix in prefixes):
                query.invalidated = True
                query.generation += 1
                count += 1
        logger.debug("Invalidated %d queries under %r", count, prefixes)
        return count

    def cancel_queries(self, prefix=()):
        """Cancel in-flight requests under ``prefix``. Returns the count."""
        count = 0
        for query in self.find_queries(prefix):
            if query.is_fetching:
                query.task.cancel()
                count += 1
        return count

    def remove_queries(self, prefix=()):
        for query in self.find_queries(prefix):
            if query.is_fetching:
                query.task.cancel()
            del self._queries[query.key]

    def collect_garbage(self):
        """Drop entries that have had no reader for ``gc_time`` seconds."""
        now = self.clock()
        expired = [
            key for key, query in self._queries.items()
            if query.observers == 0
            and not query.is_fetching
            and now - query.released_at >= self.gc_time
        ]
        for key in expired:
            del self._queries[key]
        if expired:
            logger.debug("Collected %d unused queries", len(expired))
        return len(expired)

    def clear(self):
        self.remove_queries(())

    # =========================================================================
    # Writes
    # =========================================================================

    async def mutate(self, fn, invalidate=None):
        """
        Run a write and, once it succeeded, invalidate the key prefixes
        returned by ``invalidate(result)``. Writes are not retried.
        """
        result = await fn()
        if invalidate is not None:
            self.invalidate_queries(*invalidate(result))
        return result


def _consume_result(task):
    # Background refetches have no awaiting reader; fetch the exception so
    # asyncio does not report it as never retrieved.
    if not task.cancelled():
        task.exception()


_query_client = None


def get_query_client():
    """The process-wide client, configured from settings."""
    global _query_client
    if _query_client is None:
        _query_client = QueryClient(
            stale_time=settings.CODEX_STALE_TIME,
            gc_time=settings.CODEX_GC_TIME,
            retries=settings.CODEX_QUERY_RETRIES,
        )
    return _query_client


def reset_query_client():
    global _query_client
    if _query_client is not None:
        _query_client.clear()
    _query_client = None
