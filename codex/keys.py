"""
Query key registry.

Every cached read is stored under a tuple key built here. Keys are
hierarchical: a mutation invalidates a prefix (for instance every story list)
and everything built on top of that prefix goes with it, while unrelated
branches (another story's detail) keep their cached value.

Usage:
    from codex.keys import story_keys

    story_keys.list(status='published')  # ('stories', 'list', (('status', 'published'),))
    story_keys.with_chapters('a-queda')  # ('stories', 'detail', 'a-queda', 'chapters')
"""


def _freeze(value):
    if isinstance(value, (list, tuple, set, frozenset)):
        return tuple(sorted(_freeze(v) for v in value))
    if isinstance(value, dict):
        return filter_segment(**value)
    return value


def filter_segment(**filters):
    """
    Encode a filter object as one key segment.

    Missing (None) filters are dropped so that an absent filter and an
    explicit ``None`` share a key; names and list values are sorted so that
    the same filters always produce the same segment.
    """
    return tuple(
        (name, _freeze(value))
        for name, value in sorted(filters.items())
        if value is not None
    )


def is_prefix(prefix, key):
    """True when ``key`` starts with every segment of ``prefix``."""
    return tuple(key[:len(prefix)]) == tuple(prefix)


class StoryKeys:
    ALL = ('stories',)

    def all(self):
        return self.ALL

    def lists(self):
        return self.ALL + ('list',)

    def list(self, category=None, status=None, featured=None, limit=None, offset=None):
        return self.lists() + (filter_segment(
            category=category, status=status, featured=featured,
            limit=limit, offset=offset,
        ),)

    def featured(self, limit=None):
        return self.ALL + ('featured', filter_segment(limit=limit))

    def recent(self, limit=None):
        return self.ALL + ('recent', filter_segment(limit=limit))

    def details(self):
        return self.ALL + ('detail',)

    def detail(self, slug):
        return self.details() + (slug,)

    def by_ids(self):
        return self.ALL + ('by-id',)

    def detail_by_id(self, story_id):
        return self.by_ids() + (str(story_id),)

    def with_chapters(self, slug):
        return self.detail(slug) + ('chapters',)

    def chapter(self, story_id, chapter_order):
        return self.detail_by_id(story_id) + ('chapter', int(chapter_order))


class WikiKeys:
    ALL = ('wiki',)

    def all(self):
        return self.ALL

    def lists(self):
        return self.ALL + ('list',)

    def list(self, type=None, search=None, limit=None, offset=None):
        return self.lists() + (filter_segment(
            type=type, search=search or None, limit=limit, offset=offset,
        ),)

    def by_types(self):
        return self.ALL + ('type',)

    def by_type(self, entity_type, limit=None):
        return self.by_types() + (entity_type, filter_segment(limit=limit))

    def counts(self):
        return self.ALL + ('counts',)

    def details(self):
        return self.ALL + ('detail',)

    def detail(self, slug):
        return self.details() + (slug,)

    def by_ids(self):
        return self.ALL + ('by-id',)

    def detail_by_id(self, entity_id):
        return self.by_ids() + (str(entity_id),)

    def with_relations(self, slug):
        return self.detail(slug) + ('relations',)


class MapKeys:
    ALL = ('map',)

    def all(self):
        return self.ALL

    def markers(self):
        return self.ALL + ('markers',)

    def markers_filtered(self, layer=None, entity_types=None):
        return self.markers() + (filter_segment(
            layer=layer or None, entity_types=list(entity_types) if entity_types else None,
        ),)

    def layers(self):
        return self.ALL + ('layers',)

    def entities(self):
        return self.ALL + ('entity',)

    def entity_details(self, entity_id):
        return self.entities() + (str(entity_id),)

    def search(self, query, limit=None):
        return self.ALL + ('search', query, filter_segment(limit=limit))


class MediaKeys:
    ALL = ('media',)

    def all(self):
        return self.ALL

    def lists(self):
        return self.ALL + ('list',)

    def list(self, limit=None, offset=None):
        return self.lists() + (filter_segment(limit=limit, offset=offset),)

    def files(self, folder=''):
        return self.ALL + ('files', folder or '')


story_keys = StoryKeys()
wiki_keys = WikiKeys()
map_keys = MapKeys()
media_keys = MediaKeys()
