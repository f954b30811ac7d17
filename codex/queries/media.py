"""
Media library: files in the Supabase Storage bucket and their ``media`` rows.
"""

import logging
import os
import secrets
import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from django.conf import settings

from codex.choices import MediaFolder
from codex.errors import ValidationFailed, translate_error
from codex.queries.base import current_user, drop_unset, execute

logger = logging.getLogger(__name__)


@dataclass
class UploadResult:
    path: str
    public_url: str


@dataclass
class MediaList:
    media: List[Dict] = field(default_factory=list)
    count: Optional[int] = None


def _bucket(db):
    return db.storage.from_(settings.CODEX_MEDIA_BUCKET)


async def _storage(awaitable):
    try:
        return await awaitable
    except Exception as e:
        error = translate_error(e)
        logger.warning("Storage request failed (%s): %s", type(error).__name__, error.message)
        raise error from e


def build_storage_path(filename, folder=MediaFolder.CONTENT):
    """``<folder>/<millis>-<random>.<ext>`` so uploads never overwrite each other."""
    folder = str(folder)
    if folder not in MediaFolder.values:
        raise ValidationFailed(f"Unknown media folder: {folder}", code='folder')
    extension = os.path.splitext(filename)[1].lstrip('.').lower() or 'bin'
    stamp = int(time.time() * 1000)
    return f"{folder}/{stamp}-{secrets.token_hex(4)}.{extension}"


async def upload_file(db, filename, content, folder=MediaFolder.CONTENT, content_type=None):
    """Store ``content`` (bytes) in the media bucket and return its path and public URL."""
    path = build_storage_path(filename, folder)
    options = {'cache-control': '3600', 'upsert': 'false'}
    if content_type:
        options['content-type'] = content_type

    bucket = _bucket(db)
    await _storage(bucket.upload(path=path, file=content, file_options=options))
    public_url = await _storage(bucket.get_public_url(path))
    logger.info("Uploaded %s (%d bytes)", path, len(content))
    return UploadResult(path=path, public_url=public_url)


async def delete_file(db, path):
    await _storage(_bucket(db).remove([path]))


async def list_files(db, folder=''):
    """Newest first, at most 100 entries, each with ``path`` and ``public_url``."""
    bucket = _bucket(db)
    entries = await _storage(bucket.list(folder, {
        'limit': 100,
        'offset': 0,
        'sortBy': {'column': 'created_at', 'order': 'desc'},
    }))
    files = []
    for entry in entries or []:
        path = f"{folder}/{entry['name']}" if folder else entry['name']
        files.append({
            **entry,
            'path': path,
            'public_url': await _storage(bucket.get_public_url(path)),
        })
    return files


async def save_media_record(db, filename, storage_path, url, mime_type=None, size_bytes=None,
                            alt_text=None, story_id=None, chapter_id=None, entity_id=None):
    user = await current_user(db)
    row = drop_unset({
        'filename': filename,
        'storage_path': storage_path,
        'url': url,
        'mime_type': mime_type,
        'size_bytes': size_bytes,
        'alt_text': alt_text,
        'story_id': story_id,
        'chapter_id': chapter_id,
        'entity_id': entity_id,
        'uploaded_by': user.id if user else None,
    })
    response = await execute(db.table('media').insert(row))
    return response.data[0] if response.data else None


async def get_media_records(db, limit=50, offset=0):
    response = await execute(
        db.table('media')
        .select('*, profiles(username)', count='exact')
        .order('created_at', desc=True)
        .range(offset, offset + limit - 1)
    )
    return MediaList(media=response.data or [], count=response.count)


async def delete_media_record(db, media_id):
    """Remove the stored object first, then the row that points at it."""
    response = await execute(
        db.table('media').select('storage_path').eq('id', media_id).single()
    )
    storage_path = response.data.get('storage_path')
    if storage_path:
        await delete_file(db, storage_path)
    await execute(db.table('media').delete().eq('id', media_id))
