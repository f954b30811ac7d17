"""
Cached map reads and marker placement.
"""

from django.conf import settings

from codex.cache.client import get_query_client
from codex.keys import map_keys, wiki_keys
from codex.queries import map as queries


def _client(query_client):
    return query_client or get_query_client()


async def fetch_map_markers(db, layer=None, entity_types=None, query_client=None):
    return await _client(query_client).fetch_query(
        map_keys.markers_filtered(layer=layer, entity_types=entity_types),
        lambda: queries.get_map_markers(db, layer=layer, entity_types=entity_types),
    )


async def fetch_map_entity_details(db, entity_id, query_client=None):
    return await _client(query_client).fetch_query(
        map_keys.entity_details(entity_id),
        lambda: queries.get_map_entity_details(db, entity_id),
    )


async def fetch_map_layers(db, query_client=None):
    return await _client(query_client).fetch_query(
        map_keys.layers(),
        lambda: queries.get_map_layers(db),
        stale_time=settings.CODEX_COUNTS_STALE_TIME,
    )


async def search_entities(db, query, limit=10, query_client=None):
    """Name search for the placement form. Blank queries skip the backend."""
    query = (query or '').strip()
    if not query:
        return []
    return await _client(query_client).fetch_query(
        map_keys.search(query, limit),
        lambda: queries.search_entities_for_map(db, query, limit=limit),
        stale_time=settings.CODEX_SEARCH_STALE_TIME,
    )


async def update_entity_map_position(db, entity_id, x, y, layer=None, query_client=None):
    def invalidate(entity):
        keys = [
            map_keys.markers(),
            map_keys.layers(),
            map_keys.entity_details(entity_id),
            wiki_keys.detail_by_id(entity_id),
        ]
        if entity.get('slug'):
            keys.append(wiki_keys.detail(entity['slug']))
        return keys

    return await _client(query_client).mutate(
        lambda: queries.update_entity_map_position(db, entity_id, x, y, layer=layer),
        invalidate=invalidate,
    )
