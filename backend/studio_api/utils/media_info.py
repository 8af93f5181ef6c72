"""Media file information parsed from ffprobe JSON output."""

from dataclasses import dataclass, field
from typing import Any


@dataclass
class MediaProbe:
    """Media file information."""

    filename: str
    format: dict[str, Any] = field(default_factory=dict)
    streams: list[dict[str, Any]] = field(default_factory=list)
    tags: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_ffprobe(cls, data: dict[str, Any], filename: str) -> "MediaProbe":
        format_info = data.get("format") or {}
        return cls(
            filename=format_info.get("filename", filename),
            format=format_info,
            streams=list(data.get("streams") or []),
            tags=dict(format_info.get("tags") or {}),
        )

    @property
    def duration(self) -> float:
        """Container duration in seconds (0.0 when unknown)."""
        try:
            return float(self.format.get("duration", 0) or 0)
        except (TypeError, ValueError):
            return 0.0

    @property
    def bit_rate(self) -> int | None:
        value = self.format.get("bit_rate")
        return int(value) if value is not None else None

    def _first(self, codec_type: str) -> dict[str, Any] | None:
        for stream in self.streams:
            if stream.get("codec_type") == codec_type:
                return stream
        return None

    @property
    def video_stream(self) -> dict[str, Any] | None:
        return self._first("video")

    @property
    def audio_stream(self) -> dict[str, Any] | None:
        return self._first("audio")

    @property
    def has_audio(self) -> bool:
        return self.audio_stream is not None

    @property
    def width(self) -> int | None:
        stream = self.video_stream
        return stream.get("width") if stream else None

    @property
    def height(self) -> int | None:
        stream = self.video_stream
        return stream.get("height") if stream else None

    @property
    def video_codec(self) -> str | None:
        stream = self.video_stream
        return stream.get("codec_name") if stream else None


ASPECT_RATIOS = {"16:9": 16 / 9, "4:3": 4 / 3, "21:9": 21 / 9}


def display_aspect_ratio(probe: MediaProbe) -> str | None:
    """Aspect ratio label for the video stream.

    Uses ffprobe's ``display_aspect_ratio`` when present (and not ``0:1``),
    otherwise snaps width/height to a common ratio within 0.1, otherwise
    falls back to ``w:h``.
    """
    stream = probe.video_stream
    if not stream:
        return None
    reported = stream.get("display_aspect_ratio")
    if reported and reported not in ("0:1", "N/A"):
        return reported
    width, height = stream.get("width"), stream.get("height")
    if not width or not height:
        return None
    ratio = width / height
    for label, value in ASPECT_RATIOS.items():
        if abs(ratio - value) < 0.1:
            return label
    return f"{width}:{height}"
