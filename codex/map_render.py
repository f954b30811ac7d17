"""
World map rendering.

The interactive map of the reader site is drawn client-side; this module
produces the server-side picture of it: a standalone SVG used by the map
page, the ``/map/map.svg`` route and the ``export_map_svg`` command.

World coordinates run from MAP_MIN_COORD to MAP_MAX_COORD on both axes with
y pointing north, so y is negated on the way into SVG space.
"""

import logging
from itertools import groupby

from django.template.loader import render_to_string
from django.urls import reverse

from codex.choices import DEFAULT_ENTITY_COLOR, ENTITY_COLORS, MAP_MAX_COORD, MAP_MIN_COORD

logger = logging.getLogger(__name__)

DEFAULT_MAP_VIEW = {'center': (0, 0), 'zoom': 2}
MIN_ZOOM = 1
MAX_ZOOM = 6

MARKER_RADIUS = 4


def in_bounds(marker):
    return (MAP_MIN_COORD <= marker.x <= MAP_MAX_COORD
            and MAP_MIN_COORD <= marker.y <= MAP_MAX_COORD)


class MapRenderer:
    """Interface: turn a list of ``MapMarker`` into a document."""
    content_type = 'application/octet-stream'

    def render(self, markers, width=800, height=800):
        raise NotImplementedError


class SvgMapRenderer(MapRenderer):
    content_type = 'image/svg+xml'
    template_name = 'codex/map.svg'

    def points(self, markers):
        """Drawable points for the markers inside the world bounds, grouped by layer."""
        inside = [marker for marker in markers if in_bounds(marker)]
        skipped = len(markers) - len(inside)
        if skipped:
            logger.warning("Skipped %d map marker(s) outside the world bounds", skipped)

        inside.sort(key=lambda marker: (marker.layer or '', marker.name))
        layers = []
        for layer, group in groupby(inside, key=lambda marker: marker.layer or ''):
            layers.append({
                'name': layer,
                'points': [
                    {
                        'marker': marker,
                        'cx': marker.x,
                        'cy': -marker.y,
                        'color': ENTITY_COLORS.get(marker.entity_type, DEFAULT_ENTITY_COLOR),
                        'url': reverse('codex:wiki_detail', args=[marker.entity_type, marker.slug]),
                    }
                    for marker in group
                ],
            })
        return layers

    def render(self, markers, width=800, height=800):
        size = MAP_MAX_COORD - MAP_MIN_COORD
        return render_to_string(self.template_name, {
            'layers': self.points(markers),
            'width': width,
            'height': height,
            'view_box': f"{MAP_MIN_COORD} {MAP_MIN_COORD} {size} {size}",
            'min_coord': MAP_MIN_COORD,
            'size': size,
            'radius': MARKER_RADIUS,
        })
