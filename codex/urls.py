"""
URL Configuration for the Verbum reader site

- Home, stories and chapters
- Wiki (encyclopedia)
- World map (page, JSON feeds, SVG)
- Login / logout and the sitemap

Included from the project's urls.py:
    path('', include('codex.urls')),
"""

from django.urls import path
from . import views

app_name = 'codex'

urlpatterns = [
    path('',
         views.HomeView.as_view(),
         name='home'),

    # Stories
    path('stories/',
         views.StoryListView.as_view(),
         name='story_list'),
    path('stories/<slug:slug>/',
         views.StoryDetailView.as_view(),
         name='story_detail'),

    # Wiki
    path('wiki/',
         views.WikiListView.as_view(),
         name='wiki_list'),
    path('wiki/<str:entity_type>/<slug:slug>/',
         views.WikiDetailView.as_view(),
         name='wiki_detail'),

    # Map
    path('map/',
         views.MapView.as_view(),
         name='map'),
    path('map/markers.json',
         views.MapMarkersJsonView.as_view(),
         name='map_markers'),
    path('map/entities/<str:entity_id>.json',
         views.MapEntityJsonView.as_view(),
         name='map_entity'),
    path('map/map.svg',
         views.MapSvgView.as_view(),
         name='map_svg'),

    # Accounts
    path('login/',
         views.LoginView.as_view(),
         name='login'),
    path('logout/',
         views.LogoutView.as_view(),
         name='logout'),

    path('sitemap.xml',
         views.SitemapView.as_view(),
         name='sitemap'),
]
