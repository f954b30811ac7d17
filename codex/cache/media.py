"""
Cached media library reads and upload/delete writes.
"""

from codex.cache.client import get_query_client
from codex.choices import MediaFolder
from codex.errors import CodexError
from codex.keys import media_keys
from codex.queries import media as queries


def _client(query_client):
    return query_client or get_query_client()


def _invalidate(result):
    return [media_keys.lists(), media_keys.all() + ('files',)]


async def fetch_media(db, limit=50, offset=0, query_client=None):
    return await _client(query_client).fetch_query(
        media_keys.list(limit=limit, offset=offset),
        lambda: queries.get_media_records(db, limit=limit, offset=offset),
    )


async def fetch_files(db, folder='', query_client=None):
    return await _client(query_client).fetch_query(
        media_keys.files(folder),
        lambda: queries.list_files(db, folder),
    )


async def upload_media(db, filename, content, folder=MediaFolder.CONTENT, content_type=None,
                       alt_text=None, query_client=None):
    """Store a file and record it in the media library; returns the media row."""
    async def upload():
        uploaded = await queries.upload_file(db, filename, content, folder=folder,
                                             content_type=content_type)
        try:
            return await queries.save_media_record(
                db,
                filename=filename,
                storage_path=uploaded.path,
                url=uploaded.public_url,
                mime_type=content_type,
                size_bytes=len(content),
                alt_text=alt_text,
            )
        except CodexError:
            # No orphaned objects in the bucket
            await queries.delete_file(db, uploaded.path)
            raise

    return await _client(query_client).mutate(upload, invalidate=_invalidate)


async def delete_media(db, media_id, query_client=None):
    return await _client(query_client).mutate(
        lambda: queries.delete_media_record(db, media_id),
        invalidate=_invalidate,
    )
