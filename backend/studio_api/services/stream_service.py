"""Byte serving: range selection, cache policy and file resolution."""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterator

from studio_api.constants.project_layout import (
    LIBRARY_DIR,
    ORIGINAL_AUDIO_MP3,
    PUBLISHED_VIDEO_FILE,
    THUMBS_DIR,
    VIDEO_FILE,
)
from studio_api.exceptions import MediaNotFoundError
from studio_api.services.project_repository import ProjectRepository
from studio_api.utils.filename import get_audio_mime_type, get_mime_type, sanitize_filename, sanitize_path

logger = logging.getLogger(__name__)

STREAM_CHUNK_SIZE = 1 << 16

CACHE_IMMUTABLE = "public, max-age=31536000, immutable"
CACHE_MANIFEST = "public, max-age=3600"
CACHE_FRAME = "public, max-age=86400"


class RangeNotSatisfiable(Exception):
    """Raised when the supplied Range header cannot be satisfied."""


@dataclass
class ByteRange:
    status_code: int
    start: int = 0
    end: int = -1
    file_size: int = 0
    headers: dict[str, str] = field(default_factory=dict)

    @property
    def length(self) -> int:
        return max(self.end - self.start + 1, 0)


def parse_byte_range(range_value: str, file_size: int) -> tuple[int, int]:
    """Return the inclusive byte range requested by ``range_value``.

    Only a single ``bytes=start-end`` range is supported (end optional).
    Unlike RFC 7233 the end is not clamped: an end at or past the file
    size is rejected, as is a start past the end of the file.
    """
    if not range_value.startswith("bytes="):
        raise RangeNotSatisfiable
    spec = range_value[len("bytes="):].strip()
    if "," in spec or "-" not in spec:
        raise RangeNotSatisfiable

    start_token, end_token = spec.split("-", 1)
    if not start_token.isdigit():
        raise RangeNotSatisfiable
    start = int(start_token)
    if end_token:
        if not end_token.isdigit():
            raise RangeNotSatisfiable
        end = int(end_token)
    else:
        end = file_size - 1

    if start >= file_size or end >= file_size or end < start:
        raise RangeNotSatisfiable
    return start, end


def select_byte_range(range_header: str | None, file_size: int) -> ByteRange:
    """Decide between a full (200), partial (206) or unsatisfiable (416) response."""
    if not range_header:
        return ByteRange(
            status_code=200,
            start=0,
            end=file_size - 1,
            file_size=file_size,
            headers={"Accept-Ranges": "bytes", "Content-Length": str(file_size)},
        )
    try:
        start, end = parse_byte_range(range_header, file_size)
    except RangeNotSatisfiable:
        return ByteRange(
            status_code=416,
            file_size=file_size,
            headers={"Content-Range": f"bytes */{file_size}"},
        )
    return ByteRange(
        status_code=206,
        start=start,
        end=end,
        file_size=file_size,
        headers={
            "Content-Range": f"bytes {start}-{end}/{file_size}",
            "Accept-Ranges": "bytes",
            "Content-Length": str(end - start + 1),
        },
    )


def iter_file_range(path: Path, start: int, end: int, chunk_size: int = STREAM_CHUNK_SIZE) -> Iterator[bytes]:
    """Yield chunks from ``path`` between ``start`` and ``end`` (inclusive)."""
    remaining = end - start + 1
    if remaining <= 0:
        return
    with path.open("rb") as stream:
        stream.seek(start)
        while remaining > 0:
            chunk = stream.read(min(chunk_size, remaining))
            if not chunk:
                break
            remaining -= len(chunk)
            yield chunk


def etag(*parts: object) -> str:
    return '"' + "-".join(str(p) for p in parts) + '"'


def cache_headers(cache_control: str, *etag_parts: object) -> dict[str, str]:
    headers = {"Cache-Control": cache_control}
    if etag_parts:
        headers["ETag"] = etag(*etag_parts)
    return headers


@dataclass
class ServedFile:
    path: Path
    media_type: str
    headers: dict[str, str] = field(default_factory=dict)


class StreamService:
    """Resolves project media to files on disk, with their content type and caching headers."""

    def __init__(self, projects: ProjectRepository) -> None:
        self.projects = projects

    def _require(self, path: Path, kind: str, resource_id: str | None = None) -> Path:
        if not path.is_file():
            raise MediaNotFoundError(kind, resource_id)
        return path

    def video_file(self, project_uuid: str) -> Path:
        path = self.projects.get_project_path(project_uuid) / VIDEO_FILE
        return self._require(path, "Video file")

    def original_audio(self, project_uuid: str) -> ServedFile:
        path = self.projects.get_project_path(project_uuid) / ORIGINAL_AUDIO_MP3
        return ServedFile(self._require(path, "Audio file"), "audio/mpeg")

    def library_audio(self, project_uuid: str, filename: str) -> ServedFile:
        safe_name = sanitize_filename(filename)
        path = self.projects.get_project_path(project_uuid) / LIBRARY_DIR / safe_name
        return ServedFile(
            self._require(path, "Audio file", safe_name),
            get_audio_mime_type(safe_name),
            cache_headers(CACHE_IMMUTABLE, project_uuid, filename),
        )

    def thumb(self, project_uuid: str, relative_path: str, *etag_parts: object) -> ServedFile:
        safe_path = sanitize_path(relative_path) if "/" in relative_path else sanitize_filename(relative_path)
        if not safe_path:
            raise MediaNotFoundError("Thumbnail", relative_path)
        path = self.projects.get_project_path(project_uuid) / THUMBS_DIR / safe_path
        is_manifest = safe_path.endswith(".json")
        headers = cache_headers(CACHE_MANIFEST if is_manifest else CACHE_IMMUTABLE, *etag_parts)
        return ServedFile(
            self._require(path, "Thumbnail", relative_path),
            "application/json" if is_manifest else "image/webp",
            headers,
        )

    def published(self, project_uuid: str) -> ServedFile:
        path = self.projects.get_project_path(project_uuid) / PUBLISHED_VIDEO_FILE
        return ServedFile(self._require(path, "Published video"), get_mime_type(path.name, "video/mp4"))
