"""
Cached story reads and story/chapter writes.
"""

from codex.cache.client import get_query_client
from codex.keys import story_keys
from codex.queries import stories as queries


def _client(query_client):
    return query_client or get_query_client()


def _story_keys(story):
    keys = [story_keys.detail_by_id(story['id'])]
    if story.get('slug'):
        keys.append(story_keys.detail(story['slug']))
    return keys


def _collection_keys():
    return [
        story_keys.lists(),
        story_keys.all() + ('featured',),
        story_keys.all() + ('recent',),
    ]


# =============================================================================
# READS
# =============================================================================

async def fetch_stories(db, category=None, status=None, featured=None, limit=20, offset=0,
                        query_client=None):
    return await _client(query_client).fetch_query(
        story_keys.list(category=category, status=status, featured=featured,
                        limit=limit, offset=offset),
        lambda: queries.get_stories(db, category=category, status=status, featured=featured,
                                    limit=limit, offset=offset),
    )


async def fetch_story(db, slug, query_client=None):
    return await _client(query_client).fetch_query(
        story_keys.detail(slug),
        lambda: queries.get_story_by_slug(db, slug),
    )


async def fetch_story_by_id(db, story_id, query_client=None):
    return await _client(query_client).fetch_query(
        story_keys.detail_by_id(story_id),
        lambda: queries.get_story_by_id(db, story_id),
    )


async def fetch_story_with_chapters(db, slug, query_client=None):
    return await _client(query_client).fetch_query(
        story_keys.with_chapters(slug),
        lambda: queries.get_story_with_chapters(db, slug),
    )


async def fetch_chapter(db, story_id, chapter_order, query_client=None):
    return await _client(query_client).fetch_query(
        story_keys.chapter(story_id, chapter_order),
        lambda: queries.get_chapter(db, story_id, chapter_order),
    )


async def fetch_featured_stories(db, limit=6, query_client=None):
    return await _client(query_client).fetch_query(
        story_keys.featured(limit),
        lambda: queries.get_featured_stories(db, limit=limit),
    )


async def fetch_recent_stories(db, limit=6, query_client=None):
    return await _client(query_client).fetch_query(
        story_keys.recent(limit),
        lambda: queries.get_recent_stories(db, limit=limit),
    )


# =============================================================================
# WRITES
# =============================================================================

async def create_story(db, query_client=None, **fields):
    return await _client(query_client).mutate(
        lambda: queries.create_story(db, **fields),
        invalidate=lambda story: _collection_keys(),
    )


async def update_story(db, story_id, updates, previous_slug=None, query_client=None):
    """
    Update a story and invalidate the lists plus this story's own details.

    Pass ``previous_slug`` when the slug may have changed so the detail
    cached under the old slug goes too.
    """
    def invalidate(story):
        keys = _collection_keys() + _story_keys(story)
        keys.append(story_keys.detail_by_id(story_id))
        if previous_slug and previous_slug != story.get('slug'):
            keys.append(story_keys.detail(previous_slug))
        return keys

    return await _client(query_client).mutate(
        lambda: queries.update_story(db, story_id, updates),
        invalidate=invalidate,
    )


async def delete_story(db, story_id, slug=None, query_client=None):
    def invalidate(result):
        keys = _collection_keys() + [story_keys.detail_by_id(story_id)]
        if slug:
            keys.append(story_keys.detail(slug))
        return keys

    return await _client(query_client).mutate(
        lambda: queries.delete_story(db, story_id),
        invalidate=invalidate,
    )


def _chapter_invalidation(story_id, story_slug):
    def invalidate(result):
        keys = [story_keys.detail_by_id(story_id)]
        if story_slug:
            keys.append(story_keys.detail(story_slug))
        return keys
    return invalidate


async def create_chapter(db, story_id, title, chapter_order, content=None, story_slug=None,
                         query_client=None):
    return await _client(query_client).mutate(
        lambda: queries.create_chapter(db, story_id, title, chapter_order, content=content),
        invalidate=_chapter_invalidation(story_id, story_slug),
    )


async def update_chapter(db, chapter_id, updates, story_id, story_slug=None, query_client=None):
    return await _client(query_client).mutate(
        lambda: queries.update_chapter(db, chapter_id, updates),
        invalidate=_chapter_invalidation(story_id, story_slug),
    )


async def delete_chapter(db, chapter_id, story_id, story_slug=None, query_client=None):
    return await _client(query_client).mutate(
        lambda: queries.delete_chapter(db, chapter_id),
        invalidate=_chapter_invalidation(story_id, story_slug),
    )


async def reorder_chapters(db, chapter_ids, story_id, story_slug=None, query_client=None):
    return await _client(query_client).mutate(
        lambda: queries.reorder_chapters(db, chapter_ids),
        invalidate=_chapter_invalidation(story_id, story_slug),
    )
