"""
Cached reads and invalidating writes.

``codex.queries`` talks to the backend; this package puts the query cache in
front of it. Reads are named ``fetch_*`` and return cached data when it is
fresh enough; writes invalidate exactly the keys they make outdated.

Usage:
    from codex.cache import stories

    page = await stories.fetch_stories(db, status='published')
    story = await stories.update_story(db, story_id, updates, previous_slug=slug)
"""

from codex.cache.client import Query, QueryClient, QueryState, get_query_client, reset_query_client

__all__ = ['Query', 'QueryClient', 'QueryState', 'get_query_client', 'reset_query_client']
