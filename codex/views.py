"""
Public views for Verbum.

Reader pages (home, stories, wiki, map) use the shared anonymous Supabase
client through the query cache. Login and logout act on the request's own
client and auth store, set up by AuthSessionMiddleware.
"""

import asyncio
import logging

from django.conf import settings
from django.http import Http404, HttpResponse, JsonResponse
from django.shortcuts import redirect, render
from django.urls import reverse
from django.utils.http import url_has_allowed_host_and_scheme
from django.views import View

from codex.backend import get_shared_client
from codex.cache import map as map_cache
from codex.cache import stories as story_cache
from codex.cache import wiki as wiki_cache
from codex.choices import StoryCategory, StoryStatus, WikiEntityType
from codex.errors import CodexError, NotFound, user_message
from codex.forms import LoginForm
from codex.map_render import DEFAULT_MAP_VIEW, MAX_ZOOM, MIN_ZOOM, SvgMapRenderer

logger = logging.getLogger(__name__)


def get_page(request):
    try:
        return max(1, int(request.GET.get('page', 1)))
    except ValueError:
        return 1


def _choice(value, choices):
    return value if value in choices.values else None


# =============================================================================
# HOME
# =============================================================================

class HomeView(View):

    async def get(self, request):
        db = await get_shared_client()
        featured, recent, counts = await asyncio.gather(
            story_cache.fetch_featured_stories(db),
            story_cache.fetch_recent_stories(db),
            wiki_cache.fetch_entity_counts(db),
        )
        return render(request, 'codex/home.html', {
            'featured_stories': featured,
            'recent_stories': recent,
            'entity_counts': counts,
        })


# =============================================================================
# STORIES
# =============================================================================

class StoryListView(View):
    """Published stories, newest first, optionally by category."""

    async def get(self, request):
        db = await get_shared_client()
        category = _choice(request.GET.get('category'), StoryCategory)
        page = get_page(request)
        page_size = settings.CODEX_PAGE_SIZE

        result = await story_cache.fetch_stories(
            db,
            category=category,
            status=StoryStatus.PUBLISHED.value,
            limit=page_size,
            offset=(page - 1) * page_size,
        )
        return render(request, 'codex/story_list.html', {
            'stories': result.stories,
            'total_count': result.count or 0,
            'page': page,
            'page_size': page_size,
            'category': category,
            'categories': StoryCategory.choices,
        })


class StoryDetailView(View):
    """
    A story with its table of contents and one chapter.

    ``?chapter=<n>`` picks the chapter by its number; the first chapter is
    shown by default.
    """

    async def get(self, request, slug):
        db = await get_shared_client()
        try:
            story = await story_cache.fetch_story_with_chapters(db, slug)
        except NotFound:
            raise Http404("Story not found")
        if story.get('status') != StoryStatus.PUBLISHED:
            raise Http404("Story not found")

        chapters = story['chapters']
        chapter = chapters[0] if chapters else None
        requested = request.GET.get('chapter')
        if requested:
            try:
                number = int(requested)
            except ValueError:
                raise Http404("Chapter not found")
            chapter = next((c for c in chapters if c['chapter_order'] == number), None)
            if chapter is None:
                raise Http404("Chapter not found")

        index = chapters.index(chapter) if chapter else -1
        return render(request, 'codex/story_detail.html', {
            'story': story,
            'chapters': chapters,
            'chapter': chapter,
            'previous_chapter': chapters[index - 1] if index > 0 else None,
            'next_chapter': chapters[index + 1] if 0 <= index < len(chapters) - 1 else None,
        })


# =============================================================================
# WIKI
# =============================================================================

class WikiListView(View):
    """Encyclopedia index: ``?type=`` filter, ``?q=`` name search, ``?page=``."""

    async def get(self, request):
        db = await get_shared_client()
        entity_type = _choice(request.GET.get('type'), WikiEntityType)
        search = request.GET.get('q', '').strip() or None
        page = get_page(request)
        page_size = settings.CODEX_PAGE_SIZE

        result, counts = await asyncio.gather(
            wiki_cache.fetch_wiki_entities(
                db,
                type=entity_type,
                search=search,
                limit=page_size,
                offset=(page - 1) * page_size,
            ),
            wiki_cache.fetch_entity_counts(db),
        )
        return render(request, 'codex/wiki_list.html', {
            'entities': result.entities,
            'total_count': result.count or 0,
            'page': page,
            'page_size': page_size,
            'entity_type': entity_type,
            'search': search or '',
            'entity_types': WikiEntityType.choices,
            'entity_counts': counts,
        })


class WikiDetailView(View):

    async def get(self, request, entity_type, slug):
        db = await get_shared_client()
        try:
            entity = await wiki_cache.fetch_wiki_entity_with_relations(db, slug)
        except NotFound:
            raise Http404("Entity not found")
        if entity['entity_type'] != entity_type:
            return redirect('codex:wiki_detail', entity['entity_type'], slug, permanent=True)

        return render(request, 'codex/wiki_detail.html', {
            'entity': entity,
            'related_entities': entity['related_entities'],
            'stories': entity['stories'],
            'has_position': entity.get('x_coord') is not None and entity.get('y_coord') is not None,
        })


# =============================================================================
# MAP
# =============================================================================

def _marker_filters(request):
    layer = request.GET.get('layer') or None
    types = [t for t in request.GET.getlist('type') if t in WikiEntityType.values]
    return layer, types or None


class MapView(View):

    async def get(self, request):
        db = await get_shared_client()
        layer, entity_types = _marker_filters(request)
        markers, layers = await asyncio.gather(
            map_cache.fetch_map_markers(db, layer=layer, entity_types=entity_types),
            map_cache.fetch_map_layers(db),
        )
        return render(request, 'codex/map.html', {
            'markers': markers,
            'layers': layers,
            'layer': layer,
            'selected_types': entity_types or [],
            'entity_types': WikiEntityType.choices,
            'map_svg': SvgMapRenderer().render(markers),
            'map_view': DEFAULT_MAP_VIEW,
            'min_zoom': MIN_ZOOM,
            'max_zoom': MAX_ZOOM,
        })


class MapMarkersJsonView(View):
    """Markers as JSON for the client-side map."""

    async def get(self, request):
        db = await get_shared_client()
        layer, entity_types = _marker_filters(request)
        markers = await map_cache.fetch_map_markers(db, layer=layer, entity_types=entity_types)
        return JsonResponse({'markers': [marker.as_dict() for marker in markers]})


class MapEntityJsonView(View):
    """Popup data for one marker."""

    async def get(self, request, entity_id):
        db = await get_shared_client()
        details = await map_cache.fetch_map_entity_details(db, entity_id)
        if details is None:
            return JsonResponse({'error': 'not found'}, status=404)
        return JsonResponse(details)


class MapSvgView(View):

    async def get(self, request):
        db = await get_shared_client()
        layer, entity_types = _marker_filters(request)
        markers = await map_cache.fetch_map_markers(db, layer=layer, entity_types=entity_types)
        renderer = SvgMapRenderer()
        return HttpResponse(renderer.render(markers), content_type=renderer.content_type)


# =============================================================================
# AUTHENTICATION
# =============================================================================

def _safe_redirect(request, target, default):
    if target and url_has_allowed_host_and_scheme(
        target, allowed_hosts={request.get_host()}, require_https=request.is_secure()
    ):
        return target
    return default


class LoginView(View):
    template_name = 'codex/login.html'

    def _default_target(self, state):
        return reverse('codex_admin:dashboard') if state.is_admin else reverse('codex:home')

    async def get(self, request):
        state = request.auth.get_state()
        if state.is_authenticated:
            return redirect(_safe_redirect(request, request.GET.get('redirect'),
                                           self._default_target(state)))
        form = LoginForm(initial={'redirect': request.GET.get('redirect', '')})
        return render(request, self.template_name, {'form': form})

    async def post(self, request):
        form = LoginForm(request.POST)
        if not form.is_valid():
            return render(request, self.template_name, {'form': form}, status=400)

        try:
            state = await request.auth.sign_in(form.cleaned_data['email'],
                                               form.cleaned_data['password'])
        except CodexError as e:
            logger.info("Sign-in failed for %s: %s", form.cleaned_data['email'], e.message)
            form.add_error(None, user_message(e))
            return render(request, self.template_name, {'form': form}, status=400)

        return redirect(_safe_redirect(request, form.cleaned_data.get('redirect'),
                                       self._default_target(state)))


class LogoutView(View):

    async def post(self, request):
        await request.auth.sign_out()
        return redirect('codex:home')


# =============================================================================
# SITEMAP
# =============================================================================

SITEMAP_ROUTES = [
    ('codex:home', 'yearly', '1.0'),
    ('codex:story_list', 'weekly', '0.8'),
    ('codex:wiki_list', 'weekly', '0.8'),
    ('codex:map', 'monthly', '0.8'),
    ('codex:login', 'yearly', '0.3'),
]


class SitemapView(View):

    async def get(self, request):
        base_url = settings.SITE_BASE_URL.rstrip('/')
        urls = [
            {
                'loc': base_url + reverse(name),
                'changefreq': changefreq,
                'priority': priority,
            }
            for name, changefreq, priority in SITEMAP_ROUTES
        ]
        return render(request, 'codex/sitemap.xml', {'urls': urls},
                      content_type='application/xml')
