"""
Wiki entities and their relations.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from codex.choices import WikiEntityType
from codex.errors import NotFound
from codex.queries.base import check_coordinates, drop_unset, execute

RELATED_ENTITY_COLUMNS = 'id, name, slug, entity_type, image_url'
RELATED_STORY_COLUMNS = 'id, title, slug, cover_image_url, category'


@dataclass
class EntityList:
    """One page of wiki entities plus the total number of matching rows."""
    entities: List[Dict] = field(default_factory=list)
    count: Optional[int] = None


async def get_wiki_entities(db, type=None, search=None, limit=20, offset=0):
    """List entities alphabetically, optionally by type and name substring."""
    query = (
        db.table('wiki_entities')
        .select('*', count='exact')
        .order('name', desc=False)
        .range(offset, offset + limit - 1)
    )
    if type:
        query = query.eq('entity_type', type)
    if search:
        query = query.ilike('name', f'%{search}%')

    response = await execute(query)
    return EntityList(entities=response.data or [], count=response.count)


async def get_wiki_entity_by_slug(db, slug):
    response = await execute(
        db.table('wiki_entities').select('*').eq('slug', slug).single()
    )
    return response.data


async def get_wiki_entity_by_id(db, entity_id):
    response = await execute(
        db.table('wiki_entities').select('*').eq('id', entity_id).single()
    )
    return response.data


async def get_relations(db, entity_id, related_columns=RELATED_ENTITY_COLUMNS):
    """
    Relations of an entity seen from both ends.

    Relations are stored once as (entity_a, entity_b); both directions are
    read concurrently and merged so that each item is the *other* entity,
    annotated with ``relation_type`` and ``description``.
    """
    outgoing, incoming = await asyncio.gather(
        execute(
            db.table('entity_relations')
            .select(f'*, entity_b:wiki_entities!entity_relations_entity_b_id_fkey({related_columns})')
            .eq('entity_a_id', entity_id)
        ),
        execute(
            db.table('entity_relations')
            .select(f'*, entity_a:wiki_entities!entity_relations_entity_a_id_fkey({related_columns})')
            .eq('entity_b_id', entity_id)
        ),
    )
    related = []
    for rows, other in ((outgoing.data or [], 'entity_b'), (incoming.data or [], 'entity_a')):
        for row in rows:
            if not row.get(other):
                continue
            related.append({
                **row[other],
                'relation_id': row['id'],
                'relation_type': row['relation_type'],
                'description': row.get('description'),
            })
    return related


async def get_story_relations(db, entity_id, story_columns=RELATED_STORY_COLUMNS):
    """Stories an entity appears in, with the relation type."""
    response = await execute(
        db.table('entity_story_relations')
        .select(f'*, story:stories({story_columns})')
        .eq('entity_id', entity_id)
    )
    return [
        {**row['story'], 'relation_type': row.get('relation_type'), 'chapter_id': row.get('chapter_id')}
        for row in response.data or []
        if row.get('story')
    ]


async def get_wiki_entity_with_relations(db, slug):
    """
    Entity row with ``related_entities`` and ``stories`` attached.

    The entity is read first; the relation reads only need its id and run
    concurrently.
    """
    entity = await get_wiki_entity_by_slug(db, slug)
    related_entities, stories = await asyncio.gather(
        get_relations(db, entity['id']),
        get_story_relations(db, entity['id']),
    )
    return {**entity, 'related_entities': related_entities, 'stories': stories}


async def get_entities_by_type(db, entity_type, limit=10):
    response = await execute(
        db.table('wiki_entities')
        .select('*')
        .eq('entity_type', entity_type)
        .order('name', desc=False)
        .limit(limit)
    )
    return response.data or []


async def get_entity_counts(db):
    """
    Number of entities per type.

    One round trip: the type column of every entity is fetched and tallied
    here instead of issuing a count query per type.
    """
    response = await execute(db.table('wiki_entities').select('entity_type'))
    counts = {entity_type.value: 0 for entity_type in WikiEntityType}
    for row in response.data or []:
        entity_type = row.get('entity_type')
        if entity_type in counts:
            counts[entity_type] += 1
    return counts


# =============================================================================
# ADMIN
# =============================================================================

def _single_row(response):
    if not response.data:
        raise NotFound("Wiki entity not found")
    return response.data[0]


async def create_wiki_entity(db, name, slug, entity_type, short_description=None,
                             full_description=None, image_url=None, properties=None,
                             x_coord=None, y_coord=None, z_coord=None, map_layer=None):
    row = drop_unset({
        'name': name,
        'slug': slug,
        'entity_type': entity_type,
        'short_description': short_description,
        'full_description': full_description,
        'image_url': image_url,
        'properties': properties,
        'x_coord': x_coord,
        'y_coord': y_coord,
        'z_coord': z_coord,
        'map_layer': map_layer,
    })
    check_coordinates(row)
    response = await execute(db.table('wiki_entities').insert(row))
    return _single_row(response)


async def update_wiki_entity(db, entity_id, updates):
    check_coordinates(updates)
    response = await execute(
        db.table('wiki_entities').update(updates).eq('id', entity_id)
    )
    return _single_row(response)


async def delete_wiki_entity(db, entity_id):
    await execute(db.table('wiki_entities').delete().eq('id', entity_id))


async def create_entity_relation(db, entity_a_id, entity_b_id, relation_type, description=None):
    row = drop_unset({
        'entity_a_id': entity_a_id,
        'entity_b_id': entity_b_id,
        'relation_type': relation_type,
        'description': description,
    })
    response = await execute(db.table('entity_relations').insert(row))
    return response.data[0] if response.data else None


async def delete_entity_relation(db, relation_id):
    await execute(db.table('entity_relations').delete().eq('id', relation_id))


async def create_entity_story_relation(db, entity_id, story_id, relation_type=None, chapter_id=None):
    row = drop_unset({
        'entity_id': entity_id,
        'story_id': story_id,
        'relation_type': relation_type,
        'chapter_id': chapter_id,
    })
    response = await execute(db.table('entity_story_relations').insert(row))
    return response.data[0] if response.data else None
