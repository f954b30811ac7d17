"""
Tests for the data-access functions against the in-memory backend.
"""
from django.test import SimpleTestCase

from codex.choices import WikiEntityType
from codex.errors import DuplicateSlug, NotFound, Unauthenticated, ValidationFailed
from codex.queries import map as map_queries
from codex.queries import media as media_queries
from codex.queries import stories as story_queries
from codex.queries import wiki as wiki_queries
from codex.tests.fakes import FakeBackend


class BackendTestMixin:

    def setUp(self):
        super().setUp()
        self.backend = FakeBackend()
        self.db = self.backend.client()

    async def sign_in(self, email='author@verbum.test'):
        self.backend.add_user(email, 'secret-pass', username='author')
        await self.db.auth.sign_in_with_password({'email': email, 'password': 'secret-pass'})
        return self.backend.accounts[email]['user']


# =============================================================================
# STORIES
# =============================================================================

class StoryQueriesTest(BackendTestMixin, SimpleTestCase):

    def setUp(self):
        super().setUp()
        self.backend.seed('stories', [
            {'title': 'Old Tale', 'slug': 'old-tale', 'category': 'tale', 'status': 'published',
             'created_at': '2024-01-01T00:00:00+00:00'},
            {'title': 'Draft', 'slug': 'draft', 'category': 'idea', 'status': 'draft',
             'created_at': '2024-02-01T00:00:00+00:00'},
            {'title': 'New Tale', 'slug': 'new-tale', 'category': 'tale', 'status': 'published',
             'featured': True, 'created_at': '2024-03-01T00:00:00+00:00'},
        ])

    async def test_filters_and_newest_first(self):
        result = await story_queries.get_stories(self.db, status='published')
        self.assertEqual([s['slug'] for s in result.stories], ['new-tale', 'old-tale'])
        self.assertEqual(result.count, 2)

        result = await story_queries.get_stories(self.db, category='idea')
        self.assertEqual([s['slug'] for s in result.stories], ['draft'])

        result = await story_queries.get_stories(self.db, featured=True)
        self.assertEqual([s['slug'] for s in result.stories], ['new-tale'])

    async def test_pagination_keeps_total_count(self):
        result = await story_queries.get_stories(self.db, limit=1, offset=1)
        self.assertEqual([s['slug'] for s in result.stories], ['draft'])
        self.assertEqual(result.count, 3)

    async def test_featured_and_recent_only_published(self):
        featured = await story_queries.get_featured_stories(self.db)
        recent = await story_queries.get_recent_stories(self.db, limit=5)
        self.assertEqual([s['slug'] for s in featured], ['new-tale'])
        self.assertEqual([s['slug'] for s in recent], ['new-tale', 'old-tale'])

    async def test_missing_story_is_not_found(self):
        with self.assertRaises(NotFound):
            await story_queries.get_story_by_slug(self.db, 'nope')

    async def test_story_with_chapters_in_order(self):
        story = self.backend.row('stories', slug='old-tale')
        self.backend.seed('chapters', [
            {'story_id': story['id'], 'title': 'Two', 'chapter_order': 2},
            {'story_id': story['id'], 'title': 'One', 'chapter_order': 1},
        ])
        result = await story_queries.get_story_with_chapters(self.db, 'old-tale')
        self.assertEqual([c['title'] for c in result['chapters']], ['One', 'Two'])

        chapter = await story_queries.get_chapter(self.db, story['id'], 2)
        self.assertEqual(chapter['title'], 'Two')

    async def test_create_requires_signed_in_user(self):
        with self.assertRaises(Unauthenticated):
            await story_queries.create_story(self.db, 'Untitled', 'untitled')

    async def test_create_stamps_author(self):
        user = await self.sign_in()
        story = await story_queries.create_story(self.db, 'Fresh', 'fresh', category='dream')
        self.assertEqual(story['author_id'], user.id)
        self.assertEqual(story['category'], 'dream')

        fetched = await story_queries.get_story_by_slug(self.db, 'fresh')
        self.assertEqual(fetched['profiles']['username'], 'author')

    async def test_duplicate_slug(self):
        await self.sign_in()
        with self.assertRaises(DuplicateSlug):
            await story_queries.create_story(self.db, 'Again', 'old-tale')

    async def test_update_missing_story(self):
        with self.assertRaises(NotFound):
            await story_queries.update_story(self.db, 'missing-id', {'title': 'X'})

    async def test_reorder_chapters(self):
        story = self.backend.row('stories', slug='old-tale')
        a, b, c = self.backend.seed('chapters', [
            {'story_id': story['id'], 'title': 'A', 'chapter_order': 1},
            {'story_id': story['id'], 'title': 'B', 'chapter_order': 2},
            {'story_id': story['id'], 'title': 'C', 'chapter_order': 3},
        ])
        await story_queries.reorder_chapters(self.db, [c['id'], a['id'], b['id']])
        chapters = await story_queries.get_chapters(self.db, story['id'])
        self.assertEqual([ch['title'] for ch in chapters], ['C', 'A', 'B'])

    async def test_swapped_orders_read_back_in_order(self):
        story = self.backend.row('stories', slug='old-tale')
        first, second, third = self.backend.seed('chapters', [
            {'story_id': story['id'], 'title': 'A', 'chapter_order': 1},
            {'story_id': story['id'], 'title': 'B', 'chapter_order': 2},
            {'story_id': story['id'], 'title': 'C', 'chapter_order': 3},
        ])
        await story_queries.update_chapter(self.db, first['id'], {'chapter_order': 2})
        await story_queries.update_chapter(self.db, second['id'], {'chapter_order': 1})
        chapters = await story_queries.get_chapters(self.db, story['id'])
        self.assertEqual([ch['id'] for ch in chapters], [second['id'], first['id'], third['id']])


# =============================================================================
# WIKI
# =============================================================================

class WikiQueriesTest(BackendTestMixin, SimpleTestCase):

    def setUp(self):
        super().setUp()
        self.rome, self.caesar, self.gladius = self.backend.seed('wiki_entities', [
            {'name': 'Rome', 'slug': 'rome', 'entity_type': 'location', 'x_coord': 10, 'y_coord': 20,
             'map_layer': 'surface'},
            {'name': 'Caesar', 'slug': 'caesar', 'entity_type': 'character'},
            {'name': 'Gladius', 'slug': 'gladius', 'entity_type': 'item'},
        ])

    async def test_list_alphabetical_with_filters(self):
        result = await wiki_queries.get_wiki_entities(self.db)
        self.assertEqual([e['name'] for e in result.entities], ['Caesar', 'Gladius', 'Rome'])

        result = await wiki_queries.get_wiki_entities(self.db, type='item')
        self.assertEqual([e['name'] for e in result.entities], ['Gladius'])

        result = await wiki_queries.get_wiki_entities(self.db, search='OM')
        self.assertEqual([e['name'] for e in result.entities], ['Rome'])
        self.assertEqual(result.count, 1)

    async def test_relations_seen_from_both_ends(self):
        await wiki_queries.create_entity_relation(self.db, self.caesar['id'], self.rome['id'], 'rules')
        await wiki_queries.create_entity_relation(self.db, self.gladius['id'], self.caesar['id'], 'owned_by')

        caesar = await wiki_queries.get_wiki_entity_with_relations(self.db, 'caesar')
        related = {(r['name'], r['relation_type']) for r in caesar['related_entities']}
        self.assertEqual(related, {('Rome', 'rules'), ('Gladius', 'owned_by')})

        rome = await wiki_queries.get_wiki_entity_with_relations(self.db, 'rome')
        self.assertEqual([r['name'] for r in rome['related_entities']], ['Caesar'])

    async def test_delete_relation(self):
        relation = await wiki_queries.create_entity_relation(
            self.db, self.caesar['id'], self.rome['id'], 'rules',
        )
        await wiki_queries.delete_entity_relation(self.db, relation['id'])
        self.assertEqual(await wiki_queries.get_relations(self.db, self.caesar['id']), [])

    async def test_story_relations(self):
        story, = self.backend.seed('stories', [{'title': 'Ides', 'slug': 'ides', 'status': 'published'}])
        await wiki_queries.create_entity_story_relation(self.db, self.caesar['id'], story['id'],
                                                        relation_type='protagonist')
        caesar = await wiki_queries.get_wiki_entity_with_relations(self.db, 'caesar')
        self.assertEqual(caesar['stories'][0]['slug'], 'ides')
        self.assertEqual(caesar['stories'][0]['relation_type'], 'protagonist')

    async def test_counts_cover_every_type(self):
        counts = await wiki_queries.get_entity_counts(self.db)
        self.assertEqual(counts['location'], 1)
        self.assertEqual(counts['character'], 1)
        self.assertEqual(counts['organization'], 0)
        self.assertEqual(len(counts), 7)
        self.assertEqual(self.backend.count_requests('wiki_entities'), 1)

    async def test_counts_match_a_tally_per_type(self):
        for number, entity_type in enumerate(WikiEntityType.values, start=1):
            self.backend.seed('wiki_entities', [
                {'name': f'{entity_type} {i}', 'slug': f'{entity_type}-{i}', 'entity_type': entity_type}
                for i in range(number)
            ])
        counts = await wiki_queries.get_entity_counts(self.db)
        rows = self.backend.tables['wiki_entities']
        self.assertEqual(counts, {
            entity_type: sum(1 for row in rows if row['entity_type'] == entity_type)
            for entity_type in WikiEntityType.values
        })

    async def test_coordinates_out_of_bounds(self):
        with self.assertRaises(ValidationFailed):
            await wiki_queries.create_wiki_entity(self.db, 'Far', 'far', 'location', x_coord=300, y_coord=0)
        with self.assertRaises(ValidationFailed):
            await wiki_queries.update_wiki_entity(self.db, self.rome['id'], {'y_coord': -257})

    async def test_duplicate_slug(self):
        with self.assertRaises(DuplicateSlug):
            await wiki_queries.create_wiki_entity(self.db, 'Rome II', 'rome', 'location')


# =============================================================================
# MAP
# =============================================================================

class MapQueriesTest(BackendTestMixin, SimpleTestCase):

    def setUp(self):
        super().setUp()
        self.rome, self.athens, self.caesar = self.backend.seed('wiki_entities', [
            {'name': 'Rome', 'slug': 'rome', 'entity_type': 'location', 'x_coord': 10, 'y_coord': 20,
             'map_layer': 'surface'},
            {'name': 'Athens', 'slug': 'athens', 'entity_type': 'location', 'x_coord': -5, 'y_coord': 3,
             'map_layer': 'underworld'},
            {'name': 'Caesar', 'slug': 'caesar', 'entity_type': 'character', 'x_coord': 12},
        ])

    async def test_markers_need_both_coordinates(self):
        markers = await map_queries.get_map_markers(self.db)
        self.assertEqual([m.name for m in markers], ['Athens', 'Rome'])
        self.assertEqual((markers[1].x, markers[1].y, markers[1].layer), (10, 20, 'surface'))

    async def test_marker_filters(self):
        markers = await map_queries.get_map_markers(self.db, layer='underworld')
        self.assertEqual([m.name for m in markers], ['Athens'])
        markers = await map_queries.get_map_markers(self.db, entity_types=['character'])
        self.assertEqual(markers, [])

    async def test_layers_sorted_and_distinct(self):
        self.backend.seed('wiki_entities', [
            {'name': 'Ostia', 'slug': 'ostia', 'entity_type': 'location', 'x_coord': 1, 'y_coord': 1,
             'map_layer': 'surface'},
        ])
        self.assertEqual(await map_queries.get_map_layers(self.db), ['surface', 'underworld'])

    async def test_update_position(self):
        entity = await map_queries.update_entity_map_position(self.db, self.caesar['id'], 12, -40, layer='surface')
        self.assertEqual((entity['x_coord'], entity['y_coord'], entity['map_layer']), (12, -40, 'surface'))

        with self.assertRaises(ValidationFailed):
            await map_queries.update_entity_map_position(self.db, self.caesar['id'], 0, 999)
        with self.assertRaises(NotFound):
            await map_queries.update_entity_map_position(self.db, 'missing', 0, 0)

    async def test_entity_details(self):
        await wiki_queries.create_entity_relation(self.db, self.caesar['id'], self.rome['id'], 'rules')
        details = await map_queries.get_map_entity_details(self.db, self.rome['id'])
        self.assertEqual(details['name'], 'Rome')
        self.assertEqual([e['name'] for e in details['related_entities']], ['Caesar'])
        self.assertEqual(details['related_stories'], [])

        self.assertIsNone(await map_queries.get_map_entity_details(self.db, 'missing'))

    async def test_search(self):
        results = await map_queries.search_entities_for_map(self.db, 'ae')
        self.assertEqual([(r.name, r.has_coords) for r in results], [('Caesar', True)])


# =============================================================================
# MEDIA
# =============================================================================

class MediaQueriesTest(BackendTestMixin, SimpleTestCase):

    def test_storage_path(self):
        path = media_queries.build_storage_path('Cover Art.PNG', 'covers')
        self.assertRegex(path, r'^covers/\d+-[0-9a-f]{8}\.png$')
        self.assertTrue(media_queries.build_storage_path('README').endswith('.bin'))

    def test_unknown_folder(self):
        with self.assertRaises(ValidationFailed):
            media_queries.build_storage_path('a.png', 'secrets')

    async def test_upload_record_and_delete(self):
        await self.sign_in()
        uploaded = await media_queries.upload_file(self.db, 'map.png', b'png-bytes', folder='wiki',
                                                   content_type='image/png')
        self.assertTrue(uploaded.path.startswith('wiki/'))
        self.assertTrue(uploaded.public_url.endswith(uploaded.path))

        record = await media_queries.save_media_record(
            self.db, 'map.png', uploaded.path, uploaded.public_url,
            mime_type='image/png', size_bytes=9,
        )
        listing = await media_queries.get_media_records(self.db)
        self.assertEqual(listing.count, 1)
        self.assertEqual(listing.media[0]['profiles']['username'], 'author')

        files = await media_queries.list_files(self.db, 'wiki')
        self.assertEqual([f['path'] for f in files], [uploaded.path])

        await media_queries.delete_media_record(self.db, record['id'])
        self.assertEqual(self.backend.buckets['media'], {})
        self.assertEqual((await media_queries.get_media_records(self.db)).count, 0)
