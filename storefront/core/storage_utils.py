# storefront/core/storage_utils.py
import logging
import uuid

from storefront.core.supabase_client import storage_client

logger = logging.getLogger(__name__)

BUCKET = "assets"
_PUBLIC_PREFIX = f"/storage/v1/object/public/{BUCKET}/"


def product_image_path(product_id: uuid.UUID, ext: str) -> str:
    """Fresh object path for one product image, e.g. products/<id>/<uuid4>.png"""
    return f"products/{product_id}/{uuid.uuid4()}.{ext}"


def upload_to_storage(path: str, file_bytes: bytes, content_type: str) -> str:
    """
    Store an image in the bucket and return its public URL.

    An object already at `path` is replaced. Errors from the Supabase
    client propagate to the caller.
    """
    bucket = storage_client().storage.from_(BUCKET)
    bucket.upload(path, file_bytes, {"upsert": "true", "content-type": content_type})
    return bucket.get_public_url(path)


def _object_path(url: str) -> str | None:
    head, sep, path = url.partition(_PUBLIC_PREFIX)
    return path if sep and path else None


def delete_public_urls(urls: list[str]) -> None:
    """Remove the objects behind public URLs; URLs outside the bucket are skipped."""
    paths = [path for path in map(_object_path, urls) if path]
    skipped = len(urls) - len(paths)
    if skipped:
        logger.info("Skipping %d image URL(s) outside bucket %s", skipped, BUCKET)
    if paths:
        storage_client().storage.from_(BUCKET).remove(paths)
