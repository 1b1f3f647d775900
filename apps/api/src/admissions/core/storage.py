"""
Blob Storage using Supabase

Applicant photos and signatures are written to a public Supabase Storage
bucket; the record keeps the public URL.
"""

import asyncio
import logging

from supabase import Client, create_client

from admissions.core.config import settings

logger = logging.getLogger(__name__)

_client: Client | None = None


class StorageError(Exception):
    """Raised when an object cannot be stored or its URL resolved."""


def get_storage_client() -> Client:
    """
    Return the shared Supabase client, creating it on first use.

    Raises:
        StorageError: If Supabase credentials are not configured
    """
    global _client
    if _client is None:
        if not settings.supabase_url or not settings.supabase_key:
            raise StorageError("Storage service unavailable: SUPABASE_URL/SUPABASE_KEY not set")
        _client = create_client(settings.supabase_url, settings.supabase_key)
    return _client


def _upload_sync(path: str, content: bytes, content_type: str) -> str:
    bucket = get_storage_client().storage.from_(settings.storage_bucket)
    bucket.upload(
        path=path,
        file=content,
        file_options={"content-type": content_type, "upsert": "false"},
    )
    return bucket.get_public_url(path)


async def upload_blob(path: str, content: bytes, content_type: str) -> str:
    """
    Store bytes under ``path`` and return the object's public URL.

    The blocking SDK call runs in a worker thread with a bounded wait.

    Raises:
        StorageError: On any client failure or timeout
    """
    try:
        url = await asyncio.wait_for(
            asyncio.to_thread(_upload_sync, path, content, content_type),
            timeout=settings.storage_timeout_seconds,
        )
    except StorageError:
        raise
    except TimeoutError as e:
        raise StorageError(f"Upload of {path} timed out") from e
    except Exception as e:
        raise StorageError(f"Upload of {path} failed: {e}") from e

    logger.info(f"Stored blob {path} ({len(content)} bytes)")
    return url.rstrip("?")
