"""
Admin panel views.

AuthSessionMiddleware only lets signed-in administrators reach these views.
Every read and write goes through the request's own Supabase client
(``request.supabase``) so row-level security sees the editor. Backend
errors on a form are shown on the form; anything else escapes to
ErrorBoundaryMiddleware.
"""

import asyncio
import logging

from django.conf import settings
from django.contrib import messages
from django.http import Http404
from django.shortcuts import redirect, render
from django.views import View

from codex.cache import map as map_cache
from codex.cache import media as media_cache
from codex.cache import stories as story_cache
from codex.cache import wiki as wiki_cache
from codex.choices import StoryStatus, WikiEntityType
from codex.errors import CodexError, DuplicateSlug, NotFound, ValidationFailed, user_message
from codex.forms import (
    ChapterFormSet, EntityRelationForm, MapPositionForm, MediaUploadForm, StoryCreateForm, StoryForm,
    WikiEntityForm,
)
from codex.views import get_page

logger = logging.getLogger(__name__)


def form_error(form, error):
    """Attach a backend error to the field it concerns, or to the whole form."""
    field = None
    if isinstance(error, DuplicateSlug) and 'slug' in form.fields:
        field = 'slug'
    form.add_error(field, user_message(error))


class AdminView(View):
    """Base for admin views: the request client is the database handle."""

    def db(self):
        return self.request.supabase

    async def load_story(self, story_id):
        try:
            return await story_cache.fetch_story_by_id(self.db(), story_id)
        except NotFound:
            raise Http404("Story not found")

    async def load_entity(self, entity_id):
        try:
            return await wiki_cache.fetch_wiki_entity_by_id(self.db(), entity_id)
        except NotFound:
            raise Http404("Entity not found")


# =============================================================================
# DASHBOARD
# =============================================================================

class DashboardView(AdminView):

    async def get(self, request):
        db = self.db()
        recent, counts, media = await asyncio.gather(
            story_cache.fetch_stories(db, limit=5),
            wiki_cache.fetch_entity_counts(db),
            media_cache.fetch_media(db, limit=1),
        )
        return render(request, 'codex/admin/dashboard.html', {
            'recent_stories': recent.stories,
            'story_count': recent.count or 0,
            'entity_counts': counts,
            'entity_total': sum(counts.values()),
            'media_count': media.count or 0,
        })


# =============================================================================
# STORIES
# =============================================================================

class AdminStoryListView(AdminView):
    """Every story regardless of status; ``?status=`` narrows it down."""

    async def get(self, request):
        status = request.GET.get('status')
        if status not in StoryStatus.values:
            status = None
        page = get_page(request)
        page_size = settings.CODEX_PAGE_SIZE
        result = await story_cache.fetch_stories(
            self.db(), status=status, limit=page_size, offset=(page - 1) * page_size,
        )
        return render(request, 'codex/admin/story_list.html', {
            'stories': result.stories,
            'total_count': result.count or 0,
            'page': page,
            'page_size': page_size,
            'status': status,
            'statuses': StoryStatus.choices,
        })


class StoryCreateView(AdminView):
    template_name = 'codex/admin/story_form.html'

    async def get(self, request):
        return render(request, self.template_name, {'form': StoryCreateForm()})

    async def post(self, request):
        form = StoryCreateForm(request.POST, request.FILES)
        if form.is_valid():
            try:
                story = await story_cache.create_story(self.db(), **form.to_record())
            except CodexError as e:
                form_error(form, e)
            else:
                await self.import_chapters(story, form.imported_chapters())
                messages.success(request, f"Story “{story['title']}” created.")
                return redirect('codex_admin:story_edit', story['id'])
        return render(request, self.template_name, {'form': form}, status=400)

    async def import_chapters(self, story, chapters):
        """Create the imported chapters; a failure keeps the story and is reported."""
        for chapter in chapters:
            try:
                await story_cache.create_chapter(
                    self.db(), story['id'], chapter['title'], chapter['chapter_order'],
                    content=chapter['content'], story_slug=story['slug'],
                )
            except CodexError as e:
                logger.warning("Chapter import into %s stopped at %r: %s",
                               story['id'], chapter['title'], e.message)
                messages.error(self.request, user_message(e))
                return
        if chapters:
            messages.info(self.request, f"Imported {len(chapters)} chapter(s).")


class StoryEditView(AdminView):
    """Story fields and its chapters on one page."""
    template_name = 'codex/admin/story_form.html'

    async def load(self, story_id):
        story = await self.load_story(story_id)
        try:
            return await story_cache.fetch_story_with_chapters(self.db(), story['slug'])
        except NotFound:
            raise Http404("Story not found")

    @staticmethod
    def chapter_initial(story):
        return [
            {
                'id': chapter['id'],
                'title': chapter['title'],
                'chapter_order': chapter['chapter_order'],
                'content': chapter.get('content') or '',
            }
            for chapter in story['chapters']
        ]

    async def get(self, request, story_id):
        story = await self.load(story_id)
        return render(request, self.template_name, {
            'story': story,
            'form': StoryForm(initial=story),
            'chapters': ChapterFormSet(initial=self.chapter_initial(story), prefix='chapters'),
        })

    async def post(self, request, story_id):
        story = await self.load(story_id)
        form = StoryForm(request.POST, initial=story)
        chapters = ChapterFormSet(request.POST, initial=self.chapter_initial(story), prefix='chapters')

        if form.is_valid() and chapters.is_valid():
            try:
                updated = await story_cache.update_story(
                    self.db(), story_id, form.to_record(), previous_slug=story['slug'],
                )
                await self.save_chapters(story_id, updated['slug'], chapters)
            except CodexError as e:
                form_error(form, e)
            else:
                messages.success(request, "Story saved.")
                return redirect('codex_admin:story_edit', story_id)

        return render(request, self.template_name, {
            'story': story,
            'form': form,
            'chapters': chapters,
        }, status=400)

    async def save_chapters(self, story_id, story_slug, formset):
        db = self.db()
        for chapter_form in formset.forms:
            data = chapter_form.cleaned_data
            if not data:
                continue
            chapter_id = data.get('id')
            if data.get('DELETE'):
                if chapter_id:
                    await story_cache.delete_chapter(db, chapter_id, story_id, story_slug=story_slug)
            elif chapter_id:
                if chapter_form.has_changed():
                    await story_cache.update_chapter(db, chapter_id, chapter_form.to_record(),
                                                     story_id, story_slug=story_slug)
            else:
                record = chapter_form.to_record()
                await story_cache.create_chapter(db, story_id, record['title'],
                                                 record['chapter_order'],
                                                 content=record['content'],
                                                 story_slug=story_slug)


class StoryDeleteView(AdminView):
    template_name = 'codex/admin/confirm_delete.html'

    async def get(self, request, story_id):
        story = await self.load_story(story_id)
        return render(request, self.template_name, {
            'object_name': story['title'],
            'cancel_url': 'codex_admin:story_list',
        })

    async def post(self, request, story_id):
        story = await self.load_story(story_id)
        await story_cache.delete_story(self.db(), story_id, slug=story['slug'])
        messages.success(request, f"Story “{story['title']}” deleted.")
        return redirect('codex_admin:story_list')


# =============================================================================
# WIKI
# =============================================================================

class AdminWikiListView(AdminView):

    async def get(self, request):
        entity_type = request.GET.get('type')
        if entity_type not in WikiEntityType.values:
            entity_type = None
        search = request.GET.get('q', '').strip() or None
        page = get_page(request)
        page_size = settings.CODEX_PAGE_SIZE
        result = await wiki_cache.fetch_wiki_entities(
            self.db(), type=entity_type, search=search,
            limit=page_size, offset=(page - 1) * page_size,
        )
        return render(request, 'codex/admin/wiki_list.html', {
            'entities': result.entities,
            'total_count': result.count or 0,
            'page': page,
            'page_size': page_size,
            'entity_type': entity_type,
            'search': search or '',
            'entity_types': WikiEntityType.choices,
        })


class WikiCreateView(AdminView):
    template_name = 'codex/admin/wiki_form.html'

    async def get(self, request):
        form = WikiEntityForm(initial={'entity_type': request.GET.get('type')})
        return render(request, self.template_name, {'form': form})

    async def post(self, request):
        form = WikiEntityForm(request.POST)
        if form.is_valid():
            try:
                entity = await wiki_cache.create_wiki_entity(self.db(), **form.to_record())
            except CodexError as e:
                form_error(form, e)
            else:
                messages.success(request, f"“{entity['name']}” created.")
                return redirect('codex_admin:wiki_edit', entity['id'])
        return render(request, self.template_name, {'form': form}, status=400)


class WikiEditView(AdminView):
    template_name = 'codex/admin/wiki_form.html'

    async def get(self, request, entity_id):
        entity = await self.load_entity(entity_id)
        return render(request, self.template_name, {
            'entity': entity,
            'form': WikiEntityForm(initial=entity),
        })

    async def post(self, request, entity_id):
        entity = await self.load_entity(entity_id)
        form = WikiEntityForm(request.POST, initial=entity)
        if form.is_valid():
            try:
                await wiki_cache.update_wiki_entity(
                    self.db(), entity_id, form.to_record(), previous_slug=entity['slug'],
                )
            except CodexError as e:
                form_error(form, e)
            else:
                messages.success(request, "Entity saved.")
                return redirect('codex_admin:wiki_edit', entity_id)
        return render(request, self.template_name, {'entity': entity, 'form': form}, status=400)


class WikiDeleteView(AdminView):
    template_name = 'codex/admin/confirm_delete.html'

    async def get(self, request, entity_id):
        entity = await self.load_entity(entity_id)
        return render(request, self.template_name, {
            'object_name': entity['name'],
            'cancel_url': 'codex_admin:wiki_list',
        })

    async def post(self, request, entity_id):
        entity = await self.load_entity(entity_id)
        await wiki_cache.delete_wiki_entity(self.db(), entity_id, slug=entity['slug'])
        messages.success(request, f"“{entity['name']}” deleted.")
        return redirect('codex_admin:wiki_list')


class WikiRelationsView(AdminView):
    """List, add and remove the relations of one entity."""
    template_name = 'codex/admin/wiki_relations.html'

    async def context(self, entity_id, form=None):
        db = self.db()
        entity = await self.load_entity(entity_id)
        detailed, candidates = await asyncio.gather(
            wiki_cache.fetch_wiki_entity_with_relations(db, entity['slug']),
            wiki_cache.fetch_wiki_entities(db, limit=1000),
        )
        if form is None:
            form = EntityRelationForm(entities=candidates.entities, exclude_id=entity['id'])
        return {
            'entity': detailed,
            'related_entities': detailed['related_entities'],
            'candidates': candidates.entities,
            'form': form,
        }

    async def get(self, request, entity_id):
        return render(request, self.template_name, await self.context(entity_id))

    async def post(self, request, entity_id):
        db = self.db()
        if request.POST.get('action') == 'delete':
            relation_id = request.POST.get('relation_id')
            if relation_id:
                await wiki_cache.delete_entity_relation(db, relation_id)
                messages.success(request, "Relation removed.")
            return redirect('codex_admin:wiki_relations', entity_id)

        context = await self.context(entity_id)
        form = EntityRelationForm(request.POST, entities=context['candidates'], exclude_id=entity_id)
        if form.is_valid():
            try:
                await wiki_cache.create_entity_relation(
                    db,
                    entity_id,
                    form.cleaned_data['entity_b_id'],
                    form.cleaned_data['relation_type'],
                    description=form.cleaned_data.get('description') or None,
                )
            except CodexError as e:
                form_error(form, e)
            else:
                messages.success(request, "Relation added.")
                return redirect('codex_admin:wiki_relations', entity_id)
        context['form'] = form
        return render(request, self.template_name, context, status=400)


# =============================================================================
# MAP
# =============================================================================

class MapPositionView(AdminView):
    """Search an entity by name and place it on the map."""
    template_name = 'codex/admin/map_position.html'

    async def context(self, request, form=None):
        db = self.db()
        query = request.GET.get('q', '')
        results, layers = await asyncio.gather(
            map_cache.search_entities(db, query),
            map_cache.fetch_map_layers(db),
        )
        entity_id = request.GET.get('entity')
        if form is None:
            form = MapPositionForm(initial={'entity_id': entity_id} if entity_id else None)
        return {'form': form, 'query': query, 'results': results, 'layers': layers}

    async def get(self, request):
        return render(request, self.template_name, await self.context(request))

    async def post(self, request):
        form = MapPositionForm(request.POST)
        if form.is_valid():
            data = form.cleaned_data
            try:
                entity = await map_cache.update_entity_map_position(
                    self.db(), data['entity_id'], data['x'], data['y'],
                    layer=data.get('layer') or None,
                )
            except (NotFound, ValidationFailed) as e:
                form_error(form, e)
            else:
                messages.success(request, f"“{entity['name']}” placed at ({data['x']:g}, {data['y']:g}).")
                return redirect('codex_admin:map_position')
        return render(request, self.template_name, await self.context(request, form), status=400)


# =============================================================================
# MEDIA
# =============================================================================

class MediaLibraryView(AdminView):
    template_name = 'codex/admin/media.html'

    async def context(self, request, form=None):
        page = get_page(request)
        page_size = settings.CODEX_PAGE_SIZE
        result = await media_cache.fetch_media(self.db(), limit=page_size,
                                               offset=(page - 1) * page_size)
        return {
            'media': result.media,
            'total_count': result.count or 0,
            'page': page,
            'page_size': page_size,
            'form': form or MediaUploadForm(),
        }

    async def get(self, request):
        return render(request, self.template_name, await self.context(request))

    async def post(self, request):
        form = MediaUploadForm(request.POST, request.FILES)
        if form.is_valid():
            upload = form.cleaned_data['file']
            try:
                record = await media_cache.upload_media(
                    self.db(),
                    upload.name,
                    upload.read(),
                    folder=form.cleaned_data['folder'],
                    content_type=upload.content_type,
                    alt_text=form.cleaned_data.get('alt_text') or None,
                )
            except CodexError as e:
                form_error(form, e)
            else:
                messages.success(request, f"Uploaded {record['filename'] if record else upload.name}.")
                return redirect('codex_admin:media')
        return render(request, self.template_name, await self.context(request, form), status=400)


class MediaDeleteView(AdminView):

    async def post(self, request, media_id):
        try:
            await media_cache.delete_media(self.db(), media_id)
        except NotFound:
            raise Http404("Media not found")
        messages.success(request, "File deleted.")
        return redirect('codex_admin:media')
