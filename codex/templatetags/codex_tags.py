"""
Codex Template Tags

Labels, colors and small formatting helpers for stories and wiki entities.

Usage in templates:
    {% load codex_tags %}
    {{ story.category|category_label }}
    <span style="color: {{ entity.entity_type|entity_color }}">
"""

import math

from django import template
from django.utils.dateparse import parse_datetime
from django.utils.translation import gettext as _

from codex.choices import DEFAULT_ENTITY_COLOR, ENTITY_COLORS, StoryCategory, StoryStatus, WikiEntityType
from codex.utils import estimate_reading_time

register = template.Library()

ENTITY_ICONS = {
    WikiEntityType.CHARACTER: '👤',
    WikiEntityType.LOCATION: '📍',
    WikiEntityType.FACT: '📜',
    WikiEntityType.EVENT: '⚔',
    WikiEntityType.ITEM: '🗝',
    WikiEntityType.CONCEPT: '✦',
    WikiEntityType.ORGANIZATION: '🏛',
}


def _label(choices, value):
    try:
        return choices(value).label
    except ValueError:
        return value or ''


# =============================================================================
# FILTERS
# =============================================================================

@register.filter
def category_label(category):
    """
    Display name of a story category.
    Usage: {{ story.category|category_label }}
    """
    return _label(StoryCategory, category)


@register.filter
def status_label(status):
    return _label(StoryStatus, status)


@register.filter
def entity_label(entity_type):
    """
    Display name of a wiki entity type.
    Usage: {{ entity.entity_type|entity_label }}
    """
    return _label(WikiEntityType, entity_type)


@register.filter
def entity_color(entity_type):
    """
    Marker/badge color of a wiki entity type.
    Usage: {{ marker.entity_type|entity_color }}
    """
    return ENTITY_COLORS.get(entity_type, DEFAULT_ENTITY_COLOR)


@register.filter
def entity_icon(entity_type):
    return ENTITY_ICONS.get(entity_type, '•')


@register.filter
def reading_time(content):
    """
    Reading time of a chapter body.
    Usage: {{ chapter.content|reading_time }}
    """
    minutes = estimate_reading_time(content)
    if not minutes:
        return ''
    return _('%(minutes)s min read') % {'minutes': minutes}


@register.filter
def as_datetime(value):
    """Parse the ISO timestamps returned by the backend so |date can format them."""
    if not value or not isinstance(value, str):
        return value
    return parse_datetime(value) or value


@register.filter
def author_name(record):
    """
    Username of the embedded profile of a story or media row.
    Usage: {{ story|author_name }}
    """
    profile = (record or {}).get('profiles') or {}
    return profile.get('username') or _('Anonymous')


# =============================================================================
# SIMPLE TAGS
# =============================================================================

@register.simple_tag
def page_range(count, page_size, current=1):
    """
    Pagination data for a list page.
    Usage: {% page_range stories.count page_size page as pages %}
    """
    total = max(1, math.ceil((count or 0) / page_size))
    current = min(max(1, int(current)), total)
    return {
        'pages': range(1, total + 1),
        'current': current,
        'total': total,
        'previous': current - 1 if current > 1 else None,
        'next': current + 1 if current < total else None,
    }


@register.simple_tag(takes_context=True)
def query_string(context, **params):
    """
    Current query string with some parameters replaced.
    Usage: <a href="?{% query_string page=2 %}">
    """
    query = context['request'].GET.copy()
    for name, value in params.items():
        if value in (None, ''):
            query.pop(name, None)
        else:
            query[name] = value
    return query.urlencode()
