"""
Stories and chapters.

Public pages always pass ``status='published'``; the admin list passes no
status at all and therefore sees drafts and archived stories too.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional

from codex.choices import StoryStatus
from codex.errors import NotFound
from codex.queries.base import drop_unset, execute, require_user

STORY_COLUMNS = '*, profiles(username, avatar_url)'


@dataclass
class StoryList:
    """One page of stories plus the total number of matching rows."""
    stories: List[Dict] = field(default_factory=list)
    count: Optional[int] = None


async def get_stories(db, category=None, status=None, featured=None, limit=20, offset=0):
    """
    List stories, newest first.

    Each filter constrains the query only when given.
    """
    query = (
        db.table('stories')
        .select(STORY_COLUMNS, count='exact')
        .order('created_at', desc=True)
        .range(offset, offset + limit - 1)
    )
    if status:
        query = query.eq('status', status)
    if category:
        query = query.eq('category', category)
    if featured is not None:
        query = query.eq('featured', featured)

    response = await execute(query)
    return StoryList(stories=response.data or [], count=response.count)


async def get_story_by_slug(db, slug):
    response = await execute(
        db.table('stories').select(STORY_COLUMNS).eq('slug', slug).single()
    )
    return response.data


async def get_story_by_id(db, story_id):
    response = await execute(
        db.table('stories').select(STORY_COLUMNS).eq('id', story_id).single()
    )
    return response.data


async def get_chapters(db, story_id):
    """Chapters of a story in reading order."""
    response = await execute(
        db.table('chapters')
        .select('*')
        .eq('story_id', story_id)
        .order('chapter_order', desc=False)
    )
    return response.data or []


async def get_story_with_chapters(db, slug):
    """The story row with a ``chapters`` list attached."""
    story = await get_story_by_slug(db, slug)
    chapters = await get_chapters(db, story['id'])
    return {**story, 'chapters': chapters}


async def get_chapter(db, story_id, chapter_order):
    response = await execute(
        db.table('chapters')
        .select('*')
        .eq('story_id', story_id)
        .eq('chapter_order', chapter_order)
        .single()
    )
    return response.data


async def get_featured_stories(db, limit=6):
    response = await execute(
        db.table('stories')
        .select(STORY_COLUMNS)
        .eq('status', StoryStatus.PUBLISHED.value)
        .eq('featured', True)
        .order('created_at', desc=True)
        .limit(limit)
    )
    return response.data or []


async def get_recent_stories(db, limit=6):
    response = await execute(
        db.table('stories')
        .select(STORY_COLUMNS)
        .eq('status', StoryStatus.PUBLISHED.value)
        .order('created_at', desc=True)
        .limit(limit)
    )
    return response.data or []


def _single_row(response, what):
    if not response.data:
        raise NotFound(f"{what} not found")
    return response.data[0]


# =============================================================================
# ADMIN
# =============================================================================

async def create_story(db, title, slug, synopsis=None, category=None, status=None,
                       cover_image_url=None, featured=None):
    """Insert a story authored by the signed-in user."""
    user = await require_user(db)
    row = drop_unset({
        'title': title,
        'slug': slug,
        'synopsis': synopsis,
        'category': category,
        'status': status,
        'cover_image_url': cover_image_url,
        'featured': featured,
    })
    row['author_id'] = user.id
    response = await execute(db.table('stories').insert(row))
    return _single_row(response, 'Story')


async def update_story(db, story_id, updates):
    """Apply ``updates`` to one story and return the updated row."""
    response = await execute(
        db.table('stories').update(updates).eq('id', story_id)
    )
    return _single_row(response, 'Story')


async def delete_story(db, story_id):
    await execute(db.table('stories').delete().eq('id', story_id))


async def create_chapter(db, story_id, title, chapter_order, content=None):
    row = drop_unset({
        'story_id': story_id,
        'title': title,
        'content': content,
        'chapter_order': chapter_order,
    })
    response = await execute(db.table('chapters').insert(row))
    return _single_row(response, 'Chapter')


async def update_chapter(db, chapter_id, updates):
    response = await execute(
        db.table('chapters').update(updates).eq('id', chapter_id)
    )
    return _single_row(response, 'Chapter')


async def delete_chapter(db, chapter_id):
    await execute(db.table('chapters').delete().eq('id', chapter_id))


async def reorder_chapters(db, chapter_ids):
    """
    Renumber chapters 1..n in the order of ``chapter_ids``.

    Keeps ``chapter_order`` unique within the story; the database does not
    enforce it.
    """
    updated = []
    for position, chapter_id in enumerate(chapter_ids, start=1):
        updated.append(await update_chapter(db, chapter_id, {'chapter_order': position}))
    return updated
