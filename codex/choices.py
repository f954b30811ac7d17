"""
Enumerations shared by the data layer, forms and templates.

The values mirror the enums of the Supabase schema (story_category,
story_status, wiki_entity_type).
"""

from django.db import models


class StoryCategory(models.TextChoices):
    """Kind of narrative a story is."""
    DREAM = 'dream', 'Dream'
    IDEA = 'idea', 'Idea'
    THOUGHT = 'thought', 'Thought'
    TALE = 'tale', 'Tale'
    CHRONICLE = 'chronicle', 'Chronicle'
    OTHER = 'other', 'Other'


class StoryStatus(models.TextChoices):
    """Publication state. Only published stories reach the public site."""
    DRAFT = 'draft', 'Draft'
    PUBLISHED = 'published', 'Published'
    ARCHIVED = 'archived', 'Archived'


class WikiEntityType(models.TextChoices):
    """Encyclopedia record types."""
    CHARACTER = 'character', 'Character'
    LOCATION = 'location', 'Location'
    FACT = 'fact', 'Fact'
    EVENT = 'event', 'Event'
    ITEM = 'item', 'Item'
    CONCEPT = 'concept', 'Concept'
    ORGANIZATION = 'organization', 'Organization'


class MediaFolder(models.TextChoices):
    """Top-level folders of the media bucket."""
    COVERS = 'covers', 'Covers'
    WIKI = 'wiki', 'Wiki'
    CONTENT = 'content', 'Content'


# Map world bounds, shared by the coordinate validation and the renderer
MAP_MIN_COORD = -256
MAP_MAX_COORD = 256

# Marker and badge colors per entity type
ENTITY_COLORS = {
    WikiEntityType.CHARACTER: '#dc143c',
    WikiEntityType.LOCATION: '#ffd700',
    WikiEntityType.FACT: '#8b5cf6',
    WikiEntityType.EVENT: '#f97316',
    WikiEntityType.ITEM: '#22c55e',
    WikiEntityType.CONCEPT: '#06b6d4',
    WikiEntityType.ORGANIZATION: '#ec4899',
}
DEFAULT_ENTITY_COLOR = '#9ca3af'
