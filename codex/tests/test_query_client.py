"""
Tests for the in-process query cache.
"""
import asyncio

from django.test import SimpleTestCase

from codex.cache import QueryClient, QueryState


class Counter:
    """Async fetch function returning 1, 2, 3, ... and counting its calls."""

    def __init__(self, gate=None, errors=()):
        self.calls = 0
        self.gate = gate
        self.errors = list(errors)

    async def __call__(self):
        self.calls += 1
        if self.gate is not None:
            await self.gate.wait()
        if self.errors:
            raise self.errors.pop(0)
        return self.calls


class QueryClientTestMixin:

    def setUp(self):
        super().setUp()
        self.now = 0

    def make_client(self, **kwargs):
        kwargs.setdefault('retry_delay', lambda attempt: 0)
        return QueryClient(clock=lambda: self.now, **kwargs)


# =============================================================================
# READS
# =============================================================================

class FetchQueryTest(QueryClientTestMixin, SimpleTestCase):

    async def test_fresh_data_served_from_cache(self):
        client = self.make_client(stale_time=10)
        fetch = Counter()

        self.assertEqual(await client.fetch_query(('k',), fetch), 1)
        self.now = 9
        self.assertEqual(await client.fetch_query(('k',), fetch), 1)
        self.assertEqual(fetch.calls, 1)
        self.assertEqual(client.get_query_state(('k',)), QueryState.SUCCESS)

    async def test_stale_data_served_while_revalidating(self):
        client = self.make_client(stale_time=10)
        fetch = Counter()
        await client.fetch_query(('k',), fetch)

        self.now = 11
        self.assertEqual(client.get_query_state(('k',)), QueryState.STALE)
        self.assertEqual(await client.fetch_query(('k',), fetch), 1)

        await client.get_query(('k',)).task
        self.assertEqual(fetch.calls, 2)
        self.assertEqual(await client.fetch_query(('k',), fetch), 2)

    async def test_per_query_stale_time(self):
        client = self.make_client(stale_time=10)
        fetch = Counter()
        await client.fetch_query(('counts',), fetch, stale_time=600)
        self.now = 300
        await client.fetch_query(('counts',), fetch, stale_time=600)
        self.assertEqual(fetch.calls, 1)

    async def test_concurrent_reads_share_one_request(self):
        client = self.make_client()
        gate = asyncio.Event()
        fetch = Counter(gate=gate)

        readers = [asyncio.ensure_future(client.fetch_query(('k',), fetch)) for _ in range(3)]
        await asyncio.sleep(0)
        self.assertEqual(client.get_query_state(('k',)), QueryState.FETCHING)
        gate.set()

        self.assertEqual(await asyncio.gather(*readers), [1, 1, 1])
        self.assertEqual(fetch.calls, 1)

    async def test_failed_read_retried_twice(self):
        client = self.make_client()
        fetch = Counter(errors=[RuntimeError('a'), RuntimeError('b')])

        self.assertEqual(await client.fetch_query(('k',), fetch), 3)
        self.assertEqual(fetch.calls, 3)

    async def test_error_after_retries(self):
        client = self.make_client()
        fetch = Counter(errors=[RuntimeError(str(n)) for n in range(5)])

        with self.assertRaisesMessage(RuntimeError, '2'):
            await client.fetch_query(('k',), fetch)
        self.assertEqual(fetch.calls, 3)
        query = client.get_query(('k',))
        self.assertEqual(query.status, QueryState.ERROR)
        self.assertEqual(query.failure_count, 3)

    async def test_retry_count_configurable(self):
        client = self.make_client(retries=0)
        fetch = Counter(errors=[RuntimeError('once')])
        with self.assertRaises(RuntimeError):
            await client.fetch_query(('k',), fetch)
        self.assertEqual(fetch.calls, 1)

    async def test_errored_query_refetched_on_next_read(self):
        client = self.make_client(retries=0)
        fetch = Counter(errors=[RuntimeError('down')])
        with self.assertRaises(RuntimeError):
            await client.fetch_query(('k',), fetch)
        self.assertEqual(await client.fetch_query(('k',), fetch), 2)


# =============================================================================
# CANCELLATION
# =============================================================================

class CancellationTest(QueryClientTestMixin, SimpleTestCase):

    async def test_abort_is_not_retried_nor_an_error(self):
        client = self.make_client()
        fetch = Counter(errors=[RuntimeError('The user aborted a request.')])

        with self.assertRaises(asyncio.CancelledError):
            await client.fetch_query(('k',), fetch)
        self.assertEqual(fetch.calls, 1)
        query = client.get_query(('k',))
        self.assertEqual(query.status, QueryState.IDLE)
        self.assertIsNone(query.error)

    async def test_abort_keeps_previous_data(self):
        client = self.make_client()
        client.set_query_data(('k',), 'cached')
        client.invalidate_queries(('k',))

        async def aborted():
            raise asyncio.CancelledError()

        with self.assertRaises(asyncio.CancelledError):
            await client.fetch_query(('k',), aborted)
        self.assertEqual(client.get_query_data(('k',)), 'cached')
        self.assertEqual(client.get_query(('k',)).status, QueryState.SUCCESS)

    async def test_last_reader_leaving_cancels_the_request(self):
        client = self.make_client()
        started = asyncio.Event()

        async def slow():
            started.set()
            await asyncio.sleep(3600)

        reader = asyncio.ensure_future(client.fetch_query(('k',), slow))
        await started.wait()
        query = client.get_query(('k',))

        reader.cancel()
        with self.assertRaises(asyncio.CancelledError):
            await reader
        with self.assertRaises(asyncio.CancelledError):
            await query.task
        self.assertEqual(query.status, QueryState.IDLE)

    async def test_other_readers_keep_the_request(self):
        client = self.make_client()
        gate = asyncio.Event()
        fetch = Counter(gate=gate)

        leaving = asyncio.ensure_future(client.fetch_query(('k',), fetch))
        staying = asyncio.ensure_future(client.fetch_query(('k',), fetch))
        await asyncio.sleep(0)

        leaving.cancel()
        with self.assertRaises(asyncio.CancelledError):
            await leaving
        gate.set()
        self.assertEqual(await staying, 1)

    async def test_cancel_queries(self):
        client = self.make_client()
        started = asyncio.Event()

        async def slow():
            started.set()
            await asyncio.sleep(3600)

        reader = asyncio.ensure_future(client.fetch_query(('stories', 'list'), slow))
        await started.wait()

        self.assertEqual(client.cancel_queries(('stories',)), 1)
        with self.assertRaises(asyncio.CancelledError):
            await reader


# =============================================================================
# INVALIDATION & GC
# =============================================================================

class InvalidationTest(QueryClientTestMixin, SimpleTestCase):

    async def test_invalidated_query_refetched_on_next_read(self):
        client = self.make_client()
        fetch = Counter()
        await client.fetch_query(('stories', 'detail', 'a'), fetch)

        self.assertEqual(client.invalidate_queries(('stories', 'detail', 'a')), 1)
        self.assertEqual(await client.fetch_query(('stories', 'detail', 'a'), fetch), 2)

    async def test_invalidation_is_prefix_based(self):
        client = self.make_client()
        client.set_query_data(('stories', 'list', ()), 'list')
        client.set_query_data(('stories', 'detail', 'a'), 'a')
        client.set_query_data(('stories', 'detail', 'a', 'chapters'), 'a+chapters')
        client.set_query_data(('stories', 'detail', 'b'), 'b')

        client.invalidate_queries(('stories', 'list'), ('stories', 'detail', 'a'))

        invalidated = {query.key for query in client.find_queries() if query.invalidated}
        self.assertEqual(invalidated, {
            ('stories', 'list', ()),
            ('stories', 'detail', 'a'),
            ('stories', 'detail', 'a', 'chapters'),
        })

    async def test_invalidation_during_fetch_triggers_refetch(self):
        client = self.make_client()
        gate = asyncio.Event()
        fetch = Counter(gate=gate)

        reader = asyncio.ensure_future(client.fetch_query(('k',), fetch))
        await asyncio.sleep(0)
        client.invalidate_queries(('k',))
        gate.set()

        self.assertEqual(await reader, 2)
        self.assertFalse(client.get_query(('k',)).invalidated)

    async def test_mutate_invalidates_on_success_only(self):
        client = self.make_client()
        client.set_query_data(('wiki', 'list'), 'list')

        async def failing():
            raise RuntimeError('write failed')

        with self.assertRaises(RuntimeError):
            await client.mutate(failing, invalidate=lambda result: [('wiki',)])
        self.assertFalse(client.get_query(('wiki', 'list')).invalidated)

        async def succeeding():
            return {'id': 1}

        result = await client.mutate(succeeding, invalidate=lambda result: [('wiki',)])
        self.assertEqual(result, {'id': 1})
        self.assertTrue(client.get_query(('wiki', 'list')).invalidated)

    async def test_mutations_are_not_retried(self):
        client = self.make_client()
        calls = []

        async def write():
            calls.append(1)
            raise RuntimeError('conflict')

        with self.assertRaises(RuntimeError):
            await client.mutate(write)
        self.assertEqual(len(calls), 1)

    async def test_unused_queries_collected_after_gc_time(self):
        client = self.make_client(gc_time=1800)
        await client.fetch_query(('old',), Counter())

        self.now = 1799
        self.assertEqual(client.collect_garbage(), 0)
        self.now = 1800
        self.assertEqual(client.collect_garbage(), 1)
        self.assertIsNone(client.get_query(('old',)))

    async def test_observed_queries_are_kept(self):
        client = self.make_client(gc_time=10)
        await client.fetch_query(('k',), Counter())
        with client.observe(('k',)):
            self.now = 100
            self.assertEqual(client.collect_garbage(), 0)
        self.assertIsNotNone(client.get_query(('k',)))
