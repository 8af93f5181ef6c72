"""Filename parsing, generation and MIME type helpers."""

import secrets
import string
import time
from pathlib import PurePosixPath

AUDIO_MIME_TYPES = {
    "mp3": "audio/mpeg",
    "wav": "audio/wav",
    "ogg": "audio/ogg",
    "flac": "audio/flac",
    "aac": "audio/aac",
    "m4a": "audio/mp4",
}

VIDEO_MIME_TYPES = {
    "mp4": "video/mp4",
    "webm": "video/webm",
    "mov": "video/quicktime",
}

IMAGE_MIME_TYPES = {
    "webp": "image/webp",
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "png": "image/png",
}

ALL_MIME_TYPES = {**AUDIO_MIME_TYPES, **VIDEO_MIME_TYPES, **IMAGE_MIME_TYPES, "json": "application/json"}

_ALPHABET = string.ascii_lowercase + string.digits


def parse_filename(filename: str) -> tuple[str, str]:
    """Split a filename into (base name, extension with dot)."""
    path = PurePosixPath(filename)
    return path.stem if path.suffix else path.name, path.suffix


def extension(filename: str) -> str:
    return parse_filename(filename)[1][1:].lower()


def _millis() -> int:
    return int(time.time() * 1000)


def generate_unique_filename(filename: str, suffix: str = "") -> str:
    """``name[-suffix]-<millis>-<random>.ext``; unique enough for a project library."""
    base, ext = parse_filename(filename)
    unique = f"{_millis()}-{''.join(secrets.choice(_ALPHABET) for _ in range(9))}"
    suffix_part = f"-{suffix}" if suffix else ""
    return f"{base}{suffix_part}-{unique}{ext}"


def generate_stretched_filename(filename: str, ext: str = ".mp3") -> str:
    base, _ = parse_filename(filename)
    return f"{base}-stretched-{_millis()}{ext}"


def get_mime_type(filename: str, default: str = "application/octet-stream") -> str:
    return ALL_MIME_TYPES.get(extension(filename), default)


def get_audio_mime_type(filename: str) -> str:
    return AUDIO_MIME_TYPES.get(extension(filename), "audio/mpeg")


def sanitize_filename(filename: str) -> str:
    """Reduce a client-supplied name to its last path component."""
    name = PurePosixPath(filename.replace("\\", "/")).name
    return "" if name in (".", "..") else name


def sanitize_path(file_path: str) -> str:
    """Drop ``.``/``..``/empty segments while keeping subdirectories (``0.01/tile_0.webp``)."""
    segments = file_path.replace("\\", "/").split("/")
    return "/".join(s for s in segments if s not in ("", ".", ".."))
