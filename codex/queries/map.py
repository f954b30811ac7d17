"""
Map markers: wiki entities placed on the world map.
"""

import asyncio
from dataclasses import asdict, dataclass
from typing import Optional

from codex.errors import NotFound
from codex.queries.base import check_coordinates, execute
from codex.queries.wiki import get_relations, get_story_relations, get_wiki_entity_by_id

MARKER_COLUMNS = 'id, name, slug, entity_type, short_description, image_url, x_coord, y_coord, map_layer'


@dataclass
class MapMarker:
    id: str
    name: str
    slug: str
    entity_type: str
    short_description: Optional[str]
    image_url: Optional[str]
    x: float
    y: float
    layer: Optional[str]

    @classmethod
    def from_row(cls, row):
        return cls(
            id=row['id'],
            name=row['name'],
            slug=row['slug'],
            entity_type=row['entity_type'],
            short_description=row.get('short_description'),
            image_url=row.get('image_url'),
            x=row['x_coord'],
            y=row['y_coord'],
            layer=row.get('map_layer'),
        )

    def as_dict(self):
        return asdict(self)


@dataclass
class MapSearchResult:
    id: str
    name: str
    entity_type: str
    has_coords: bool


async def get_map_markers(db, layer=None, entity_types=None):
    """Entities that have both an x and a y coordinate, by name."""
    query = (
        db.table('wiki_entities')
        .select(MARKER_COLUMNS)
        .not_.is_('x_coord', 'null')
        .not_.is_('y_coord', 'null')
    )
    if layer:
        query = query.eq('map_layer', layer)
    if entity_types:
        query = query.in_('entity_type', list(entity_types))

    response = await execute(query.order('name', desc=False))
    return [MapMarker.from_row(row) for row in response.data or []]


async def get_map_entity_details(db, entity_id):
    """
    Popup data for one marker: the entity row, ``related_stories`` and
    ``related_entities``. Returns None when the entity does not exist.
    """
    try:
        entity = await get_wiki_entity_by_id(db, entity_id)
    except NotFound:
        return None

    stories, related = await asyncio.gather(
        get_story_relations(db, entity_id, story_columns='id, title, slug, category'),
        get_relations(db, entity_id, related_columns='id, name, slug, entity_type'),
    )
    return {**entity, 'related_stories': stories, 'related_entities': related}


async def get_map_layers(db):
    """Sorted distinct layer names of positioned entities."""
    response = await execute(
        db.table('wiki_entities')
        .select('map_layer')
        .not_.is_('map_layer', 'null')
        .not_.is_('x_coord', 'null')
    )
    return sorted({row['map_layer'] for row in response.data or [] if row.get('map_layer')})


async def update_entity_map_position(db, entity_id, x, y, layer=None):
    updates = {'x_coord': x, 'y_coord': y}
    if layer is not None:
        updates['map_layer'] = layer
    check_coordinates(updates)
    response = await execute(
        db.table('wiki_entities').update(updates).eq('id', entity_id)
    )
    if not response.data:
        raise NotFound("Wiki entity not found")
    return response.data[0]


async def search_entities_for_map(db, query, limit=10):
    """Entities whose name contains ``query``, flagged with whether they are placed."""
    response = await execute(
        db.table('wiki_entities')
        .select('id, name, entity_type, x_coord')
        .ilike('name', f'%{query}%')
        .limit(limit)
    )
    return [
        MapSearchResult(
            id=row['id'],
            name=row['name'],
            entity_type=row['entity_type'],
            has_coords=row.get('x_coord') is not None,
        )
        for row in response.data or []
    ]
