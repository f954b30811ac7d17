"""
Forms for the admin panel and the login page.

Forms validate input and turn it into backend rows (``to_record``); they
never talk to the backend themselves.
"""

from django import forms
from django.utils.html import linebreaks
from django.utils.translation import gettext_lazy as _

from codex.choices import MAP_MAX_COORD, MAP_MIN_COORD, MediaFolder, StoryCategory, StoryStatus, WikiEntityType
from codex.utils import DEFAULT_CHAPTER_PATTERN, slugify, split_chapters


def _optional(value):
    return value if value not in ('', None) else None


class SlugSourceMixin:
    """Fill a blank ``slug`` from another field and normalise a given one."""
    slug_source = 'title'

    def clean_slug_from_source(self, cleaned_data):
        slug = slugify(cleaned_data.get('slug') or cleaned_data.get(self.slug_source) or '')
        if not slug:
            self.add_error('slug', _('Could not build a slug. Use letters or digits.'))
        cleaned_data['slug'] = slug
        return cleaned_data


class StoryForm(SlugSourceMixin, forms.Form):
    title = forms.CharField(max_length=200)
    slug = forms.CharField(max_length=200, required=False,
                           help_text=_('Leave blank to build it from the title.'))
    synopsis = forms.CharField(widget=forms.Textarea(attrs={'rows': 3}), required=False)
    category = forms.ChoiceField(choices=StoryCategory.choices, initial=StoryCategory.TALE)
    status = forms.ChoiceField(choices=StoryStatus.choices, initial=StoryStatus.DRAFT)
    cover_image_url = forms.URLField(required=False, assume_scheme='https')
    featured = forms.BooleanField(required=False)

    def clean(self):
        return self.clean_slug_from_source(super().clean())

    def to_record(self):
        data = self.cleaned_data
        return {
            'title': data['title'],
            'slug': data['slug'],
            'synopsis': _optional(data.get('synopsis')),
            'category': data['category'],
            'status': data['status'],
            'cover_image_url': _optional(data.get('cover_image_url')),
            'featured': bool(data.get('featured')),
        }


class StoryCreateForm(StoryForm):
    """A new story, optionally with its chapters imported from a manuscript."""
    import_text = forms.CharField(
        label=_('Import chapters'), required=False,
        widget=forms.Textarea(attrs={'rows': 8}),
        help_text=_('Paste the text; it is split into chapters on the heading below.'),
    )
    import_file = forms.FileField(label=_('Or a .txt file'), required=False)
    chapter_pattern = forms.CharField(max_length=50, initial=DEFAULT_CHAPTER_PATTERN, required=False,
                                      help_text=_('Lines starting with this word open a chapter.'))

    def clean_import_file(self):
        upload = self.cleaned_data.get('import_file')
        if not upload:
            return ''
        if not upload.name.lower().endswith('.txt'):
            raise forms.ValidationError(_('Only plain text (.txt) files can be imported.'))
        try:
            return upload.read().decode('utf-8-sig')
        except UnicodeDecodeError:
            raise forms.ValidationError(_('The file is not UTF-8 text.'))

    def imported_chapters(self):
        """Chapters to create with the story, numbered from 1, bodies as HTML."""
        text = self.cleaned_data.get('import_file') or self.cleaned_data.get('import_text')
        chapters = split_chapters(text, self.cleaned_data.get('chapter_pattern'))
        return [
            {
                'title': chapter['title'][:200],
                'chapter_order': order,
                'content': linebreaks(chapter['content'], autoescape=True),
            }
            for order, chapter in enumerate(chapters, start=1)
        ]


class ChapterForm(forms.Form):
    id = forms.CharField(widget=forms.HiddenInput, required=False)
    title = forms.CharField(max_length=200)
    chapter_order = forms.IntegerField(min_value=1)
    content = forms.CharField(widget=forms.Textarea(attrs={'rows': 12}), required=False)

    def to_record(self):
        data = self.cleaned_data
        return {
            'title': data['title'],
            'chapter_order': data['chapter_order'],
            'content': _optional(data.get('content')),
        }


class BaseChapterFormSet(forms.BaseFormSet):

    def clean(self):
        """Chapter numbers must be unique within the story."""
        if any(self.errors):
            return
        seen = set()
        for form in self.forms:
            if not form.has_changed() and not form.cleaned_data.get('id'):
                continue
            if form.cleaned_data.get('DELETE'):
                continue
            order = form.cleaned_data.get('chapter_order')
            if order in seen:
                raise forms.ValidationError(_('Chapter %(order)s appears twice.'),
                                            params={'order': order})
            seen.add(order)


ChapterFormSet = forms.formset_factory(ChapterForm, formset=BaseChapterFormSet,
                                       extra=1, can_delete=True)


class WikiEntityForm(SlugSourceMixin, forms.Form):
    slug_source = 'name'

    name = forms.CharField(max_length=200)
    slug = forms.CharField(max_length=200, required=False,
                           help_text=_('Leave blank to build it from the name.'))
    entity_type = forms.ChoiceField(choices=WikiEntityType.choices)
    short_description = forms.CharField(max_length=500, required=False)
    full_description = forms.CharField(widget=forms.Textarea(attrs={'rows': 10}), required=False)
    image_url = forms.URLField(required=False, assume_scheme='https')
    properties = forms.JSONField(required=False)
    x_coord = forms.FloatField(required=False, min_value=MAP_MIN_COORD, max_value=MAP_MAX_COORD)
    y_coord = forms.FloatField(required=False, min_value=MAP_MIN_COORD, max_value=MAP_MAX_COORD)
    map_layer = forms.CharField(max_length=100, required=False)

    def clean(self):
        cleaned_data = self.clean_slug_from_source(super().clean())
        has_x = cleaned_data.get('x_coord') is not None
        has_y = cleaned_data.get('y_coord') is not None
        if has_x != has_y:
            raise forms.ValidationError(_('Give both map coordinates or neither.'))
        return cleaned_data

    def to_record(self):
        data = self.cleaned_data
        return {
            'name': data['name'],
            'slug': data['slug'],
            'entity_type': data['entity_type'],
            'short_description': _optional(data.get('short_description')),
            'full_description': _optional(data.get('full_description')),
            'image_url': _optional(data.get('image_url')),
            'properties': data.get('properties') or {},
            'x_coord': data.get('x_coord'),
            'y_coord': data.get('y_coord'),
            'map_layer': _optional(data.get('map_layer')),
        }


class EntityRelationForm(forms.Form):
    entity_b_id = forms.ChoiceField(label=_('Related entity'))
    relation_type = forms.CharField(max_length=100)
    description = forms.CharField(max_length=500, required=False)

    def __init__(self, *args, entities=(), exclude_id=None, **kwargs):
        super().__init__(*args, **kwargs)
        self.fields['entity_b_id'].choices = [
            (entity['id'], entity['name'])
            for entity in entities
            if entity['id'] != exclude_id
        ]


class MapPositionForm(forms.Form):
    entity_id = forms.CharField(widget=forms.HiddenInput)
    x = forms.FloatField(min_value=MAP_MIN_COORD, max_value=MAP_MAX_COORD)
    y = forms.FloatField(min_value=MAP_MIN_COORD, max_value=MAP_MAX_COORD)
    layer = forms.CharField(max_length=100, required=False)


class LoginForm(forms.Form):
    email = forms.EmailField()
    password = forms.CharField(widget=forms.PasswordInput)
    redirect = forms.CharField(widget=forms.HiddenInput, required=False)


class MediaUploadForm(forms.Form):
    file = forms.FileField()
    folder = forms.ChoiceField(choices=MediaFolder.choices, initial=MediaFolder.CONTENT)
    alt_text = forms.CharField(max_length=300, required=False)
