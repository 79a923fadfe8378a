"""Local blob store for cover images and book photos, served under /uploads."""

import os
import secrets
from pathlib import Path

from flask import current_app
from PIL import Image, UnidentifiedImageError

from .errors import ValidationError

PUBLIC_PREFIX = "/uploads/"

_JPEG_MAGIC = b"\xff\xd8\xff"
_PNG_MAGIC = b"\x89PNG\r\n\x1a\n"
_GIF_MAGICS = (b"GIF87a", b"GIF89a")
_WEBP_RIFF_MAGIC = b"RIFF"
_WEBP_WEBP_MAGIC = b"WEBP"

_EXTENSIONS = {"JPEG": "jpg", "PNG": "png", "GIF": "gif", "WEBP": "webp"}


def storage_dir():
    path = Path(current_app.config["UPLOAD_STORAGE"])
    path.mkdir(parents=True, exist_ok=True)
    return path


def public_path(filename):
    return f"{PUBLIC_PREFIX}{filename}"


def _uploaded_file_size(file_storage):
    """Return uploaded file size in bytes without consuming the stream."""
    try:
        stream = file_storage.stream
        pos = stream.tell()
        stream.seek(0, os.SEEK_END)
        size = stream.tell()
        stream.seek(pos)
        return size
    except (AttributeError, OSError):
        return None


def has_image_signature(header):
    """Check JPEG/PNG/GIF/WebP magic bytes."""
    if header.startswith(_JPEG_MAGIC) or header.startswith(_PNG_MAGIC):
        return True
    if header.startswith(_GIF_MAGICS):
        return True
    return header[:4] == _WEBP_RIFF_MAGIC and header[8:12] == _WEBP_WEBP_MAGIC


def image_format(stream):
    """Return the Pillow format name of *stream*, or None when it is not a readable image."""
    try:
        with Image.open(stream) as img:
            fmt = img.format
            img.verify()
    except (UnidentifiedImageError, OSError, SyntaxError, ValueError):
        return None
    return fmt if fmt in _EXTENSIONS else None


def save_uploaded_image(file_storage, prefix):
    """Validate an uploaded image and store it under a random name.

    Returns the public ``/uploads/<filename>`` path. Raises ValidationError
    for anything that is not a JPEG, PNG, GIF or WebP image.
    """
    if file_storage is None or not file_storage.filename:
        raise ValidationError("No file uploaded")

    size = _uploaded_file_size(file_storage)
    max_size = current_app.config["MAX_IMAGE_FILE_SIZE"]
    if size is not None and size > max_size:
        raise ValidationError(f"Image exceeds the {max_size // (1024 * 1024)} MB limit")

    header = file_storage.stream.read(12)
    file_storage.stream.seek(0)
    if not has_image_signature(header):
        raise ValidationError("Only image files are allowed")

    fmt = image_format(file_storage.stream)
    file_storage.stream.seek(0)
    if fmt is None:
        raise ValidationError("Only image files are allowed")

    filename = f"{prefix}_{secrets.token_hex(12)}.{_EXTENSIONS[fmt]}"
    file_storage.save(storage_dir() / filename)
    current_app.logger.info("Stored uploaded image %s (%s bytes)", filename, size)
    return public_path(filename)


def delete_upload(path):
    """Best-effort removal of a stored blob. Missing files are ignored."""
    if not path or not path.startswith(PUBLIC_PREFIX):
        return False
    base_dir = Path(current_app.config["UPLOAD_STORAGE"]).resolve()
    target = (base_dir / path[len(PUBLIC_PREFIX) :]).resolve()
    try:
        target.relative_to(base_dir)
    except ValueError:
        current_app.logger.warning("Blocked path traversal attempt in upload deletion: %s", path)
        return False
    try:
        target.unlink()
    except FileNotFoundError:
        return False
    except OSError as exc:
        current_app.logger.warning("Could not delete upload %s: %s", target, exc)
        return False
    return True
