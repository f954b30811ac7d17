"""
Management command to export the world map as an SVG file.

Reads the positioned wiki entities from Supabase and draws them with the
same renderer as the /map/map.svg route.

Usage:
    python manage.py export_map_svg map.svg
    python manage.py export_map_svg map.svg --layer surface
    python manage.py export_map_svg map.svg --type location --type organization
"""

import asyncio

from django.core.management.base import BaseCommand, CommandError

from codex.backend import get_shared_client
from codex.choices import WikiEntityType
from codex.errors import CodexError
from codex.map_render import SvgMapRenderer
from codex.queries.map import get_map_markers


class Command(BaseCommand):
    help = 'Render the world map markers to a standalone SVG file'

    def add_arguments(self, parser):
        parser.add_argument(
            'path',
            help='Output file',
        )
        parser.add_argument(
            '--layer',
            help='Only markers of this map layer',
        )
        parser.add_argument(
            '--type',
            dest='types',
            action='append',
            choices=WikiEntityType.values,
            help='Only markers of this entity type (repeatable)',
        )
        parser.add_argument(
            '--size',
            type=int,
            default=1024,
            help='Width and height of the image in pixels (default: 1024)',
        )

    async def load_markers(self, layer, types):
        db = await get_shared_client()
        return await get_map_markers(db, layer=layer, entity_types=types)

    def handle(self, *args, **options):
        try:
            markers = asyncio.run(self.load_markers(options['layer'], options['types']))
        except CodexError as e:
            raise CommandError(f"Could not load map markers: {e.message}") from e

        self.stdout.write(f"  Found {len(markers)} positioned entities")

        svg = SvgMapRenderer().render(markers, width=options['size'], height=options['size'])
        with open(options['path'], 'w', encoding='utf-8') as f:
            f.write(svg)

        self.stdout.write(self.style.SUCCESS(f"Map written to {options['path']}"))
