"""Cover image download into the local blob store.

Covers are stored under a name derived from the MD5 of their source URL, so
fetching the same URL twice reuses the stored file.
"""

import hashlib
import io
import logging
import re
from pathlib import Path

import requests
from flask import current_app

from .errors import ExternalProviderError
from .storage import image_format, public_path, storage_dir

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 10  # seconds per HTTP request
MAX_COVER_SIZE = 10 * 1024 * 1024

_EXTENSION_RE = re.compile(r"\.(jpg|jpeg|png|gif|webp)$", re.IGNORECASE)


def is_remote_url(value):
    return isinstance(value, str) and value.lower().startswith(("http://", "https://"))


def cover_filename(url):
    digest = hashlib.md5(url.encode("utf-8")).hexdigest()
    match = _EXTENSION_RE.search(url)
    ext = match.group(1).lower() if match else "jpg"
    return f"cover_{digest}.{ext}"


def download_cover(url, cover_storage_dir, timeout=REQUEST_TIMEOUT, max_size=MAX_COVER_SIZE):
    """Download *url* into *cover_storage_dir*.

    Returns the public ``/uploads/<filename>`` path. Raises
    ExternalProviderError when the URL cannot be fetched or is not an image.
    """
    if not is_remote_url(url):
        raise ExternalProviderError(f"Not a remote cover URL: {url!r}")

    filename = cover_filename(url)
    dest_path = Path(cover_storage_dir) / filename
    if dest_path.exists():
        logger.debug("Cover for %s already stored as %s", url, filename)
        return public_path(filename)

    try:
        resp = requests.get(url, timeout=timeout, allow_redirects=True)
        resp.raise_for_status()
    except requests.RequestException as exc:
        raise ExternalProviderError(f"Cover fetch failed for {url}: {exc}") from exc

    content_type = resp.headers.get("Content-Type", "")
    if not content_type.startswith("image/"):
        raise ExternalProviderError(f"Cover URL {url} returned non-image content type: {content_type}")

    content = resp.content
    if len(content) > max_size:
        raise ExternalProviderError(f"Cover at {url} is too large ({len(content)} bytes)")
    if image_format(io.BytesIO(content)) is None:
        raise ExternalProviderError(f"Cover at {url} is not a readable image")

    dest_path.parent.mkdir(parents=True, exist_ok=True)
    dest_path.write_bytes(content)
    logger.info("Downloaded cover %s -> %s", url, filename)
    return public_path(filename)


def store_remote_cover(url):
    """Download a cover for a create/update request; None when the download fails."""
    try:
        return download_cover(
            url,
            storage_dir(),
            timeout=current_app.config.get("METADATA_REQUEST_TIMEOUT", REQUEST_TIMEOUT),
            max_size=current_app.config.get("MAX_IMAGE_FILE_SIZE", MAX_COVER_SIZE),
        )
    except ExternalProviderError as exc:
        logger.warning("Keeping remote cover URL: %s", exc.message)
        return None
