"""
Cached wiki reads and entity/relation writes.

Entity writes also invalidate the map: markers are wiki entities with
coordinates.
"""

from django.conf import settings

from codex.cache.client import get_query_client
from codex.keys import map_keys, wiki_keys
from codex.queries import wiki as queries


def _client(query_client):
    return query_client or get_query_client()


def _collection_keys():
    return [
        wiki_keys.lists(),
        wiki_keys.by_types(),
        wiki_keys.counts(),
        map_keys.markers(),
        map_keys.layers(),
    ]


# =============================================================================
# READS
# =============================================================================

async def fetch_wiki_entities(db, type=None, search=None, limit=20, offset=0, query_client=None):
    return await _client(query_client).fetch_query(
        wiki_keys.list(type=type, search=search, limit=limit, offset=offset),
        lambda: queries.get_wiki_entities(db, type=type, search=search, limit=limit, offset=offset),
    )


async def fetch_wiki_entity(db, slug, query_client=None):
    return await _client(query_client).fetch_query(
        wiki_keys.detail(slug),
        lambda: queries.get_wiki_entity_by_slug(db, slug),
    )


async def fetch_wiki_entity_by_id(db, entity_id, query_client=None):
    return await _client(query_client).fetch_query(
        wiki_keys.detail_by_id(entity_id),
        lambda: queries.get_wiki_entity_by_id(db, entity_id),
    )


async def fetch_wiki_entity_with_relations(db, slug, query_client=None):
    return await _client(query_client).fetch_query(
        wiki_keys.with_relations(slug),
        lambda: queries.get_wiki_entity_with_relations(db, slug),
    )


async def fetch_entities_by_type(db, entity_type, limit=10, query_client=None):
    return await _client(query_client).fetch_query(
        wiki_keys.by_type(entity_type, limit),
        lambda: queries.get_entities_by_type(db, entity_type, limit=limit),
    )


async def fetch_entity_counts(db, query_client=None):
    return await _client(query_client).fetch_query(
        wiki_keys.counts(),
        lambda: queries.get_entity_counts(db),
        stale_time=settings.CODEX_COUNTS_STALE_TIME,
    )


# =============================================================================
# WRITES
# =============================================================================

async def create_wiki_entity(db, query_client=None, **fields):
    return await _client(query_client).mutate(
        lambda: queries.create_wiki_entity(db, **fields),
        invalidate=lambda entity: _collection_keys(),
    )


async def update_wiki_entity(db, entity_id, updates, previous_slug=None, query_client=None):
    def invalidate(entity):
        keys = _collection_keys() + [
            wiki_keys.detail_by_id(entity_id),
            wiki_keys.detail(entity['slug']),
            map_keys.entity_details(entity_id),
        ]
        if previous_slug and previous_slug != entity['slug']:
            keys.append(wiki_keys.detail(previous_slug))
        return keys

    return await _client(query_client).mutate(
        lambda: queries.update_wiki_entity(db, entity_id, updates),
        invalidate=invalidate,
    )


async def delete_wiki_entity(db, entity_id, slug=None, query_client=None):
    def invalidate(result):
        keys = _collection_keys() + [
            wiki_keys.detail_by_id(entity_id),
            map_keys.entity_details(entity_id),
        ]
        if slug:
            keys.append(wiki_keys.detail(slug))
        return keys

    return await _client(query_client).mutate(
        lambda: queries.delete_wiki_entity(db, entity_id),
        invalidate=invalidate,
    )


def _relation_keys(result):
    # Both ends of a relation show it, so every entity detail goes
    return [wiki_keys.details(), wiki_keys.by_ids(), map_keys.entities()]


async def create_entity_relation(db, entity_a_id, entity_b_id, relation_type, description=None,
                                 query_client=None):
    return await _client(query_client).mutate(
        lambda: queries.create_entity_relation(db, entity_a_id, entity_b_id, relation_type,
                                               description=description),
        invalidate=_relation_keys,
    )


async def delete_entity_relation(db, relation_id, query_client=None):
    return await _client(query_client).mutate(
        lambda: queries.delete_entity_relation(db, relation_id),
        invalidate=_relation_keys,
    )


async def create_entity_story_relation(db, entity_id, story_id, relation_type=None,
                                       chapter_id=None, query_client=None):
    return await _client(query_client).mutate(
        lambda: queries.create_entity_story_relation(db, entity_id, story_id,
                                                     relation_type=relation_type,
                                                     chapter_id=chapter_id),
        invalidate=_relation_keys,
    )
