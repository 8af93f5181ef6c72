"""Media engine gateway.

Every ffmpeg / ffprobe / rubberband invocation in the project goes through
this module:

1. ``build_*`` functions turn a structured request (paths, trim window,
   filter stages, tile geometry, stretch ratio) into an argument list.
2. ``serialize_filter_chain`` is the only place filter stages become ffmpeg
   filter syntax.
3. ``MediaEngine`` executes argument lists as subprocesses (no shell) and
   raises ``MediaEngineError`` on a non-zero exit.

The builders are pure so they can be tested without the binaries installed.
"""

import asyncio
import json
import logging
from pathlib import Path
from typing import Sequence

from studio_api.config import Settings
from studio_api.exceptions import MediaEngineError
from studio_api.render.filters import Delay, FilterStage, Pan, VolumeEnvelope
from studio_api.utils.media_info import MediaProbe

logger = logging.getLogger(__name__)

WEB_VIDEO_CODECS = frozenset({"h264", "avc1", "vp8", "vp9", "av1"})
FASTSTART_SCAN_BYTES = 1024 * 1024


def fmt_number(value: float) -> str:
    """Render a number for a command line without float noise (``95``, ``0.2``, ``12.345``)."""
    if isinstance(value, int):
        return str(value)
    text = f"{value:.6f}".rstrip("0").rstrip(".")
    return text if text not in ("", "-0") else "0"


# =============================================================================
# Filter serialization
# =============================================================================


def serialize_volume(envelope: VolumeEnvelope) -> str:
    if envelope.is_constant:
        return f"volume={fmt_number(envelope.default)}"
    return ",".join(
        f"volume={segment.value:.5f}:eval=frame:"
        f"enable='between(t,{segment.start:.5f},{segment.end:.5f})'"
        for segment in envelope.segments
    )


def serialize_delay(delay: Delay) -> str:
    return f"adelay={delay.milliseconds}|{delay.milliseconds}"


def serialize_pan(pan: Pan) -> str:
    gain = fmt_number(pan.gain)
    left = f"{gain}*c0" if pan.value > 0 else "c0"
    right = f"{gain}*c1" if pan.value < 0 else "c1"
    return f"pan=stereo|FL<{left}|FR<{right}"


def serialize_filter_chain(stages: Sequence[FilterStage]) -> str:
    """Join filter stages, in the given order, into one ``-filter:a`` expression."""
    parts = []
    for stage in stages:
        if isinstance(stage, VolumeEnvelope):
            parts.append(serialize_volume(stage))
        elif isinstance(stage, Delay):
            parts.append(serialize_delay(stage))
        elif isinstance(stage, Pan):
            parts.append(serialize_pan(stage))
        else:
            raise TypeError(f"Unsupported filter stage: {stage!r}")
    return ",".join(parts)


# =============================================================================
# Command builders
# =============================================================================


def build_probe_command(ffprobe: str, input_path: Path) -> list[str]:
    return [
        ffprobe,
        "-v", "quiet",
        "-print_format", "json",
        "-show_format",
        "-show_streams",
        str(input_path),
    ]


def build_render_track_command(
    ffmpeg: str,
    source: Path,
    output: Path,
    stages: Sequence[FilterStage],
    trim: tuple[float, float] | None = None,
) -> list[str]:
    """Decode one timeline track, apply its filter chain and write WAV.

    ``trim`` is ``(seek, duration)`` applied on the input side.
    """
    cmd = [ffmpeg, "-y"]
    if trim is not None:
        seek, duration = trim
        cmd += ["-ss", fmt_number(seek), "-t", fmt_number(duration)]
    cmd += ["-i", str(source), "-filter:a", serialize_filter_chain(stages), str(output)]
    return cmd


def build_stretch_command(
    rubberband: str, source: Path, output: Path, ratio: float, pitch: float = 0
) -> list[str]:
    return [
        rubberband,
        "--ignore-clipping",
        "-t", fmt_number(ratio),
        "-p", fmt_number(pitch),
        str(source),
        str(output),
    ]


def build_mix_command(ffmpeg: str, inputs: Sequence[Path], output: Path, duration: float) -> list[str]:
    """Mix N inputs, scaling the result by N to undo amix's 1/N attenuation."""
    count = len(inputs)
    cmd = [ffmpeg, "-y"]
    for path in inputs:
        cmd += ["-i", str(path)]
    cmd += [
        "-t", fmt_number(duration),
        "-filter_complex",
        f"amix=inputs={count}:dropout_transition={fmt_number(duration)},volume={count}[out]",
        "-map", "[out]",
        str(output),
    ]
    return cmd


def build_mux_command(ffmpeg: str, video: Path, audio: Path, output: Path, duration: float) -> list[str]:
    return [
        ffmpeg, "-y",
        "-i", str(video),
        "-i", str(audio),
        "-t", fmt_number(duration),
        "-vcodec", "copy",
        "-acodec", "copy",
        "-map", "0:v",
        "-map", "1:a",
        str(output),
    ]


def build_copy_video_command(ffmpeg: str, video: Path, output: Path) -> list[str]:
    """Copy the video stream untouched and drop audio."""
    return [ffmpeg, "-y", "-i", str(video), "-c:v", "copy", "-an", str(output)]


def build_faststart_copy_command(ffmpeg: str, video: Path, output: Path) -> list[str]:
    return [ffmpeg, "-y", "-i", str(video), "-c:v", "copy", "-movflags", "+faststart", "-an", str(output)]


def build_h264_encode_command(ffmpeg: str, video: Path, output: Path) -> list[str]:
    return [
        ffmpeg, "-y",
        "-i", str(video),
        "-c:v", "libx264",
        "-preset", "fast",
        "-crf", "18",
        "-movflags", "+faststart",
        "-an",
        str(output),
    ]


def build_renditions_command(
    ffmpeg: str,
    video: Path,
    original_output: Path,
    small_output: Path,
    small_height: int,
    audio_outputs: Sequence[Path] = (),
) -> list[str]:
    """One decode, several outputs: muted copy, small preview, and optional audio tracks."""
    cmd = [
        ffmpeg, "-y",
        "-i", str(video),
        "-map", "0:v:0", "-c:v", "copy", "-an", str(original_output),
        "-map", "0:v:0", "-c:v", "libx264",
        "-preset", "veryfast",
        "-crf", "28",
        "-threads", "0",
        "-movflags", "+faststart",
        "-vf", f"scale=-2:{small_height}",
        "-an", str(small_output),
    ]
    for audio_output in audio_outputs:
        cmd += ["-map", "0:a:0", "-vn", str(audio_output)]
    return cmd


def build_tile_command(
    ffmpeg: str,
    video: Path,
    output: Path,
    *,
    fps: float,
    start: float,
    duration: float,
    cols: int,
    rows: int,
    thumb_height: int,
    quality: int,
) -> list[str]:
    return [
        ffmpeg, "-y",
        "-ss", fmt_number(start),
        "-t", fmt_number(duration),
        "-i", str(video),
        "-vf", f"fps={fmt_number(fps)},scale=-1:{thumb_height},tile={cols}x{rows}",
        "-frames:v", "1",
        "-quality", str(quality),
        str(output),
    ]


def build_strip_command(
    ffmpeg: str, video: Path, output: Path, *, fps: float, count: int, thumb_height: int, quality: int
) -> list[str]:
    return [
        ffmpeg, "-y",
        "-i", str(video),
        "-vf", f"fps={fmt_number(fps)},scale=-1:{thumb_height},tile={count}x1",
        "-frames:v", "1",
        "-quality", str(quality),
        str(output),
    ]


def build_frame_command(ffmpeg: str, video: Path, output: Path, time: float, height: int) -> list[str]:
    return [
        ffmpeg, "-y",
        "-ss", fmt_number(time),
        "-i", str(video),
        "-frames:v", "1",
        "-vf", f"scale=-1:{height}",
        str(output),
    ]


def build_wav_command(
    ffmpeg: str, source: Path, output: Path, start: float = 0, duration: float = 0
) -> list[str]:
    cmd = [ffmpeg, "-y", "-i", str(source)]
    if start > 0 or duration > 0:
        cmd += ["-ss", fmt_number(start)]
        if duration > 0:
            cmd += ["-t", fmt_number(duration)]
    cmd.append(str(output))
    return cmd


def build_mp3_command(ffmpeg: str, source: Path, output: Path) -> list[str]:
    return [ffmpeg, "-y", "-i", str(source), "-codec:a", "libmp3lame", "-qscale:a", "3", str(output)]


def has_faststart(path: Path) -> bool:
    """True if the ``moov`` atom precedes ``mdat`` within the first MiB of an MP4."""
    with open(path, "rb") as f:
        head = f.read(FASTSTART_SCAN_BYTES)
    moov = head.find(b"moov")
    mdat = head.find(b"mdat")
    return moov != -1 and mdat != -1 and moov < mdat


def is_web_codec(codec_name: str | None) -> bool:
    return (codec_name or "").lower() in WEB_VIDEO_CODECS


# =============================================================================
# Execution
# =============================================================================


class MediaEngine:
    """Runs media engine commands as subprocesses."""

    def __init__(self, settings: Settings) -> None:
        self.ffmpeg = settings.ffmpeg_path
        self.ffprobe = settings.ffprobe_path
        self.rubberband = settings.rubberband_path
        self.small_video_height = settings.small_video_height
        self.webp_quality = settings.webp_quality

    async def run(self, cmd: Sequence[str]) -> bytes:
        """Run cmd and return its stdout; raise MediaEngineError on failure."""
        logger.debug(f"[ENGINE] {' '.join(cmd)[:300]}")
        try:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as e:
            raise MediaEngineError(cmd[0], None, str(e)) from e
        stdout, stderr = await process.communicate()
        if process.returncode != 0:
            error = MediaEngineError(
                Path(cmd[0]).name, process.returncode, stderr.decode(errors="replace")
            )
            logger.error(f"[ENGINE] {error.message}")
            raise error
        return stdout

    async def probe(self, path: Path) -> MediaProbe:
        stdout = await self.run(build_probe_command(self.ffprobe, path))
        try:
            data = json.loads(stdout or b"{}")
        except json.JSONDecodeError as e:
            raise MediaEngineError("ffprobe", 0, f"Failed to parse ffprobe output: {e}") from e
        return MediaProbe.from_ffprobe(data, str(path))

    async def render_track(
        self,
        source: Path,
        output: Path,
        stages: Sequence[FilterStage],
        trim: tuple[float, float] | None = None,
    ) -> Path:
        await self.run(build_render_track_command(self.ffmpeg, source, output, stages, trim))
        return output

    async def stretch(self, source: Path, output: Path, ratio: float, pitch: float = 0) -> Path:
        await self.run(build_stretch_command(self.rubberband, source, output, ratio, pitch))
        return output

    async def mix(self, inputs: Sequence[Path], output: Path, duration: float) -> Path:
        await self.run(build_mix_command(self.ffmpeg, inputs, output, duration))
        return output

    async def mux(self, video: Path, audio: Path, output: Path, duration: float) -> Path:
        await self.run(build_mux_command(self.ffmpeg, video, audio, output, duration))
        return output

    async def copy_video(self, video: Path, output: Path) -> Path:
        await self.run(build_copy_video_command(self.ffmpeg, video, output))
        return output

    async def faststart_copy(self, video: Path, output: Path) -> Path:
        await self.run(build_faststart_copy_command(self.ffmpeg, video, output))
        return output

    async def encode_h264(self, video: Path, output: Path) -> Path:
        await self.run(build_h264_encode_command(self.ffmpeg, video, output))
        return output

    async def make_renditions(
        self,
        video: Path,
        original_output: Path,
        small_output: Path,
        audio_outputs: Sequence[Path] = (),
    ) -> None:
        for path in (original_output, small_output, *audio_outputs):
            path.parent.mkdir(parents=True, exist_ok=True)
        await self.run(
            build_renditions_command(
                self.ffmpeg, video, original_output, small_output, self.small_video_height, audio_outputs
            )
        )

    async def generate_tile(
        self,
        video: Path,
        output: Path,
        *,
        fps: float,
        start: float,
        duration: float,
        cols: int,
        rows: int,
        thumb_height: int,
    ) -> Path:
        await self.run(
            build_tile_command(
                self.ffmpeg, video, output,
                fps=fps, start=start, duration=duration,
                cols=cols, rows=rows, thumb_height=thumb_height, quality=self.webp_quality,
            )
        )
        return output

    async def generate_strip(
        self, video: Path, output: Path, *, fps: float, count: int, thumb_height: int
    ) -> Path:
        await self.run(
            build_strip_command(
                self.ffmpeg, video, output,
                fps=fps, count=count, thumb_height=thumb_height, quality=self.webp_quality,
            )
        )
        return output

    async def extract_frame(self, video: Path, output: Path, time: float, height: int) -> Path:
        output.parent.mkdir(parents=True, exist_ok=True)
        await self.run(build_frame_command(self.ffmpeg, video, output, time, height))
        return output

    async def to_wav(self, source: Path, output: Path, start: float = 0, duration: float = 0) -> Path:
        await self.run(build_wav_command(self.ffmpeg, source, output, start, duration))
        return output

    async def to_mp3(self, source: Path, output: Path) -> Path:
        await self.run(build_mp3_command(self.ffmpeg, source, output))
        return output
