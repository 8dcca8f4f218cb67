from __future__ import annotations

import io
import logging
import mimetypes
import zipfile
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from PIL import Image, ImageOps

from ..config import MAX_ATTACHMENT_BYTES
from ..db import Compression
from ..errors import TooLarge

logger = logging.getLogger(__name__)

# Formats whose payload is already compressed; deflating them again only adds overhead.
SKIP_EXTENSIONS = (
    ".zip",
    ".rar",
    ".7z",
    ".gz",
    ".tgz",
    ".bz2",
    ".xz",
    ".mp4",
    ".mov",
    ".avi",
    ".mkv",
    ".webm",
    ".mp3",
    ".aac",
    ".ogg",
    ".flac",
    ".m4a",
)

DEFAULT_MAX_DIMENSION = 1920
DEFAULT_TARGET_BYTES = 1024 * 1024
ZIP_MIME_TYPE = "application/zip"

_LOSSY_FORMATS = {"JPEG", "WEBP"}
_REENCODABLE_FORMATS = _LOSSY_FORMATS | {"PNG"}
_QUALITY_STEPS = (85, 75, 65, 55, 45)


class Strategy(str, Enum):
    SKIP = "skip"
    IMAGE = "image"
    ARCHIVE = "archive"


@dataclass(frozen=True)
class Upload:
    name: str
    data: bytes
    content_type: str | None = None

    @classmethod
    def from_path(cls, path: Path | str, content_type: str | None = None) -> Upload:
        source = Path(path).expanduser()
        return cls(name=source.name, data=source.read_bytes(), content_type=content_type)

    @property
    def size(self) -> int:
        return len(self.data)

    @property
    def mime_type(self) -> str:
        if self.content_type:
            return self.content_type
        guessed, _ = mimetypes.guess_type(self.name)
        return guessed or "application/octet-stream"


@dataclass(frozen=True)
class CompressedPayload:
    payload: bytes
    original_size: int
    compressed_size: int
    compression: str
    stored_name: str
    mime_type: str


def safe_name(name: str) -> str:
    base = Path(name.replace("\\", "/")).name.strip()
    if not base or base in {".", ".."}:
        raise ValueError(f"invalid file name: {name!r}")
    return base


def decide_strategy(upload: Upload) -> Strategy:
    if upload.name.lower().endswith(SKIP_EXTENSIONS):
        return Strategy.SKIP
    if upload.mime_type.startswith("image/"):
        return Strategy.IMAGE
    return Strategy.ARCHIVE


def recompress_image(
    data: bytes,
    *,
    max_dimension: int = DEFAULT_MAX_DIMENSION,
    target_bytes: int = DEFAULT_TARGET_BYTES,
) -> bytes:
    """Downscale and re-encode a raster image in its own format.

    Returns ``data`` unchanged for animated or unsupported formats. Lossy
    formats step the quality down until the result fits ``target_bytes``.
    """

    with Image.open(io.BytesIO(data)) as source:
        fmt = (source.format or "").upper()
        if fmt not in _REENCODABLE_FORMATS or getattr(source, "is_animated", False):
            return data
        image = ImageOps.exif_transpose(source)
    image.thumbnail((max_dimension, max_dimension))
    if fmt == "JPEG" and image.mode not in {"RGB", "L"}:
        image = image.convert("RGB")
    encoded = data
    for quality in _QUALITY_STEPS:
        buf = io.BytesIO()
        if fmt in _LOSSY_FORMATS:
            image.save(buf, format=fmt, quality=quality, optimize=True)
        else:
            image.save(buf, format=fmt, optimize=True)
        encoded = buf.getvalue()
        if fmt not in _LOSSY_FORMATS or len(encoded) <= target_bytes:
            break
    return encoded


def archive_bytes(name: str, data: bytes) -> bytes:
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w", compression=zipfile.ZIP_DEFLATED, compresslevel=9) as archive:
        archive.writestr(name, data)
    return buf.getvalue()


def extract_archive(payload: bytes) -> bytes:
    with zipfile.ZipFile(io.BytesIO(payload)) as archive:
        entries = [info for info in archive.infolist() if not info.is_dir()]
        if len(entries) != 1:
            raise ValueError(f"expected a single-file archive, found {len(entries)} entries")
        return archive.read(entries[0])


def _identity(upload: Upload, name: str) -> CompressedPayload:
    return CompressedPayload(
        payload=upload.data,
        original_size=upload.size,
        compressed_size=upload.size,
        compression=Compression.NONE.value,
        stored_name=name,
        mime_type=upload.mime_type,
    )


def compress(
    upload: Upload,
    strategy: Strategy | None = None,
    *,
    max_dimension: int = DEFAULT_MAX_DIMENSION,
    target_bytes: int = DEFAULT_TARGET_BYTES,
) -> CompressedPayload:
    """Compress ``upload``; any failure or non-shrinking result keeps the original bytes."""

    name = safe_name(upload.name)
    strategy = strategy or decide_strategy(upload)
    if strategy is Strategy.IMAGE:
        try:
            candidate = recompress_image(
                upload.data, max_dimension=max_dimension, target_bytes=target_bytes
            )
        except Exception as exc:
            logger.warning("image recompress failed for %s; keeping original", name, exc_info=exc)
            return _identity(upload, name)
        if len(candidate) < upload.size:
            return CompressedPayload(
                payload=candidate,
                original_size=upload.size,
                compressed_size=len(candidate),
                compression=Compression.IMAGE.value,
                stored_name=name,
                mime_type=upload.mime_type,
            )
    elif strategy is Strategy.ARCHIVE:
        try:
            archived = archive_bytes(name, upload.data)
        except (OSError, ValueError, zipfile.LargeZipFile) as exc:
            logger.warning("archive failed for %s; keeping original", name, exc_info=exc)
            return _identity(upload, name)
        if len(archived) < upload.size:
            return CompressedPayload(
                payload=archived,
                original_size=upload.size,
                compressed_size=len(archived),
                compression=Compression.ZIP.value,
                stored_name=f"{name}.zip",
                mime_type=ZIP_MIME_TYPE,
            )
    return _identity(upload, name)


def enforce_size_limit(name: str, size: int, limit: int = MAX_ATTACHMENT_BYTES) -> None:
    if size > limit:
        raise TooLarge(name, size, limit)
