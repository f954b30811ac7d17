"""
Tests for the admin and login forms.
"""
from django.core.files.uploadedfile import SimpleUploadedFile
from django.test import SimpleTestCase

from codex.forms import (
    ChapterFormSet,
    EntityRelationForm,
    LoginForm,
    MapPositionForm,
    StoryCreateForm,
    StoryForm,
    WikiEntityForm,
)


def formset_data(*rows):
    data = {
        'chapters-TOTAL_FORMS': str(len(rows)),
        'chapters-INITIAL_FORMS': '0',
        'chapters-MIN_NUM_FORMS': '0',
        'chapters-MAX_NUM_FORMS': '1000',
    }
    for index, row in enumerate(rows):
        for name, value in row.items():
            data[f'chapters-{index}-{name}'] = value
    return data


class StoryFormTest(SimpleTestCase):

    def test_slug_built_from_title(self):
        form = StoryForm({'title': 'Os Centuriões de Roma', 'category': 'tale', 'status': 'draft'})
        self.assertTrue(form.is_valid(), form.errors)
        record = form.to_record()
        self.assertEqual(record['slug'], 'os-centurioes-de-roma')
        self.assertIsNone(record['synopsis'])
        self.assertFalse(record['featured'])

    def test_given_slug_normalised(self):
        form = StoryForm({'title': 'X', 'slug': 'My  Slug!', 'category': 'idea', 'status': 'draft'})
        self.assertTrue(form.is_valid(), form.errors)
        self.assertEqual(form.cleaned_data['slug'], 'my-slug')

    def test_unusable_title(self):
        form = StoryForm({'title': '!!!', 'category': 'tale', 'status': 'draft'})
        self.assertFalse(form.is_valid())
        self.assertIn('slug', form.errors)

    def test_unknown_category(self):
        form = StoryForm({'title': 'X', 'category': 'saga', 'status': 'draft'})
        self.assertFalse(form.is_valid())
        self.assertIn('category', form.errors)


class StoryCreateFormTest(SimpleTestCase):

    data = {'title': 'Os Anais', 'category': 'chronicle', 'status': 'draft'}

    def test_no_import(self):
        form = StoryCreateForm(self.data)
        self.assertTrue(form.is_valid(), form.errors)
        self.assertEqual(form.imported_chapters(), [])

    def test_pasted_text(self):
        form = StoryCreateForm({**self.data, 'import_text': 'Capítulo 1\nRoma & Cartago\n\nCapítulo 2\nFim.',
                                'chapter_pattern': 'Capítulo'})
        self.assertTrue(form.is_valid(), form.errors)
        chapters = form.imported_chapters()
        self.assertEqual([(c['chapter_order'], c['title']) for c in chapters],
                         [(1, 'Capítulo 1'), (2, 'Capítulo 2')])
        self.assertEqual(chapters[0]['content'], '<p>Roma &amp; Cartago</p>')

    def test_uploaded_file_wins_over_text(self):
        upload = SimpleUploadedFile('livro.txt', 'Parte 1\nUm.\nParte 2\nDois.'.encode('utf-8'))
        form = StoryCreateForm({**self.data, 'import_text': 'ignored', 'chapter_pattern': 'Parte'},
                               {'import_file': upload})
        self.assertTrue(form.is_valid(), form.errors)
        self.assertEqual([c['title'] for c in form.imported_chapters()], ['Parte 1', 'Parte 2'])

    def test_rejects_non_text_files(self):
        upload = SimpleUploadedFile('livro.docx', b'PK\x03\x04')
        form = StoryCreateForm(self.data, {'import_file': upload})
        self.assertFalse(form.is_valid())
        self.assertIn('import_file', form.errors)


class ChapterFormSetTest(SimpleTestCase):

    def test_valid(self):
        formset = ChapterFormSet(formset_data(
            {'title': 'One', 'chapter_order': '1'},
            {'title': 'Two', 'chapter_order': '2'},
        ), prefix='chapters')
        self.assertTrue(formset.is_valid(), formset.errors)
        self.assertEqual(formset.forms[1].to_record()['chapter_order'], 2)

    def test_duplicate_order(self):
        formset = ChapterFormSet(formset_data(
            {'title': 'One', 'chapter_order': '1'},
            {'title': 'Also one', 'chapter_order': '1'},
        ), prefix='chapters')
        self.assertFalse(formset.is_valid())
        self.assertIn('Chapter 1 appears twice.', formset.non_form_errors())

    def test_deleted_rows_do_not_clash(self):
        formset = ChapterFormSet(formset_data(
            {'id': 'c1', 'title': 'Old', 'chapter_order': '1', 'DELETE': 'on'},
            {'title': 'New', 'chapter_order': '1'},
        ), prefix='chapters')
        self.assertTrue(formset.is_valid(), formset.non_form_errors())

    def test_order_starts_at_one(self):
        formset = ChapterFormSet(formset_data({'title': 'Zero', 'chapter_order': '0'}),
                                 prefix='chapters')
        self.assertFalse(formset.is_valid())


class WikiEntityFormTest(SimpleTestCase):

    def test_record(self):
        form = WikiEntityForm({
            'name': 'Legião X',
            'entity_type': 'organization',
            'properties': '{"founded": "58 BC"}',
            'x_coord': '12.5',
            'y_coord': '-4',
        })
        self.assertTrue(form.is_valid(), form.errors)
        record = form.to_record()
        self.assertEqual(record['slug'], 'legiao-x')
        self.assertEqual(record['properties'], {'founded': '58 BC'})
        self.assertEqual((record['x_coord'], record['y_coord']), (12.5, -4))
        self.assertIsNone(record['map_layer'])

    def test_half_a_position(self):
        form = WikiEntityForm({'name': 'Rome', 'entity_type': 'location', 'x_coord': '3'})
        self.assertFalse(form.is_valid())
        self.assertIn('Give both map coordinates or neither.', form.non_field_errors())

    def test_coordinates_bounded(self):
        form = WikiEntityForm({'name': 'Rome', 'entity_type': 'location',
                               'x_coord': '257', 'y_coord': '0'})
        self.assertFalse(form.is_valid())
        self.assertIn('x_coord', form.errors)

    def test_no_position(self):
        form = WikiEntityForm({'name': 'Rome', 'entity_type': 'location'})
        self.assertTrue(form.is_valid(), form.errors)
        self.assertEqual(form.to_record()['properties'], {})


class SmallFormsTest(SimpleTestCase):

    def test_relation_choices_exclude_self(self):
        entities = [{'id': 'a', 'name': 'Rome'}, {'id': 'b', 'name': 'Caesar'}]
        form = EntityRelationForm(entities=entities, exclude_id='a')
        self.assertEqual([value for value, label in form.fields['entity_b_id'].choices], ['b'])

        form = EntityRelationForm({'entity_b_id': 'a', 'relation_type': 'self'},
                                  entities=entities, exclude_id='a')
        self.assertFalse(form.is_valid())

    def test_map_position(self):
        form = MapPositionForm({'entity_id': 'a', 'x': '-256', 'y': '256'})
        self.assertTrue(form.is_valid(), form.errors)
        form = MapPositionForm({'entity_id': 'a', 'x': '0', 'y': '-300'})
        self.assertFalse(form.is_valid())

    def test_login(self):
        self.assertFalse(LoginForm({'email': 'not-an-email', 'password': 'x'}).is_valid())
        self.assertTrue(LoginForm({'email': 'a@verbum.test', 'password': 'x'}).is_valid())
