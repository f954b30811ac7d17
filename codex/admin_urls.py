"""
URL Configuration for the Verbum admin panel

Only administrators get past AuthSessionMiddleware to these views.

Included from the project's urls.py:
    path('admin/', include('codex.admin_urls')),
"""

from django.urls import path
from . import admin_views as views

app_name = 'codex_admin'

urlpatterns = [
    path('',
         views.DashboardView.as_view(),
         name='dashboard'),

    # Stories and chapters
    path('stories/',
         views.AdminStoryListView.as_view(),
         name='story_list'),
    path('stories/new/',
         views.StoryCreateView.as_view(),
         name='story_create'),
    path('stories/<str:story_id>/',
         views.StoryEditView.as_view(),
         name='story_edit'),
    path('stories/<str:story_id>/delete/',
         views.StoryDeleteView.as_view(),
         name='story_delete'),

    # Wiki
    path('wiki/',
         views.AdminWikiListView.as_view(),
         name='wiki_list'),
    path('wiki/new/',
         views.WikiCreateView.as_view(),
         name='wiki_create'),
    path('wiki/<str:entity_id>/',
         views.WikiEditView.as_view(),
         name='wiki_edit'),
    path('wiki/<str:entity_id>/delete/',
         views.WikiDeleteView.as_view(),
         name='wiki_delete'),
    path('wiki/<str:entity_id>/relations/',
         views.WikiRelationsView.as_view(),
         name='wiki_relations'),

    # Map
    path('map/position/',
         views.MapPositionView.as_view(),
         name='map_position'),

    # Media library
    path('media/',
         views.MediaLibraryView.as_view(),
         name='media'),
    path('media/<str:media_id>/delete/',
         views.MediaDeleteView.as_view(),
         name='media_delete'),
]
