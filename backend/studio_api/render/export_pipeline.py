"""Export pipeline: render a project's timeline onto its muted video.

Steps:
1. No tracks: copy the video stream as-is (no transcode) and stop.
2. For every track, concurrently:
   a. resolve the source (original audio for id -1, else a library file)
   b. derive the trim window and the filter chain (volume, delay, pan)
   c. render to ``out<i>.wav``, then time-stretch to ``outZ<i>.wav``
3. Once all tracks settle, mix the stretched files to ``out.mp3`` with
   gain compensation, truncated to the video duration.
4. Mux the mix with the video stream into the output file.

Intermediates are always deleted, whether the export succeeds or not.
"""

import asyncio
import logging
from pathlib import Path
from typing import Sequence

from studio_api.constants.project_layout import ORIGINAL_AUDIO_TRACK_ID, PUBLISHED_MIX_FILE
from studio_api.exceptions import MediaNotFoundError
from studio_api.render.filters import (
    DEFAULT_VOLUME,
    Delay,
    FilterStage,
    Pan,
    VolumeEnvelope,
    VolumeSegment,
)
from studio_api.render.media_engine import MediaEngine
from studio_api.schemas.timeline import TrackEntry, VolumeCurve
from studio_api.utils.filename import sanitize_filename

logger = logging.getLogger(__name__)


# =============================================================================
# Filter construction
# =============================================================================


def _same_instant(a: float, b: float) -> bool:
    return f"{a:.5f}" == f"{b:.5f}"


def build_volume_envelope(curves: Sequence[VolumeCurve], duration: float) -> VolumeEnvelope:
    """Turn volume automation curves into constant-gain segments.

    Each point pair ``(t_i, t_i+1)`` becomes a segment at ``v_i``; the last
    value of a curve is held until the next curve starts (or ``duration``
    for the last curve). Before the first point the default gain applies.
    """
    if not curves:
        return VolumeEnvelope()

    segments: list[VolumeSegment] = []
    for j, curve in enumerate(curves):
        times = curve.data.times
        values = curve.data.values

        if j == 0 and times[0] > 0:
            segments.append(VolumeSegment(0.0, times[0], DEFAULT_VOLUME))

        for i in range(len(times) - 1):
            if _same_instant(times[i], times[i + 1]):
                continue
            segments.append(VolumeSegment(times[i], times[i + 1], values[i]))

        hold_until = curves[j + 1].data.times[0] if j < len(curves) - 1 else duration
        if times[-1] < hold_until:
            segments.append(VolumeSegment(times[-1], hold_until, values[-1]))

    if not segments:
        return VolumeEnvelope()
    return VolumeEnvelope(segments=tuple(segments))


def build_trim_window(track: TrackEntry) -> tuple[float, float] | None:
    """``(seek, duration)`` for cut tracks.

    ``durationTimeBuffer`` wins when positive, ``durationTimeCut`` is the
    fallback; no window when the track is not cut or neither is positive.
    """
    if not track.is_cut:
        return None
    duration = track.duration_time_buffer if track.duration_time_buffer > 0 else track.duration_time_cut
    if duration > 0:
        return track.start_time_buffer, duration
    return None


def build_track_filters(track: TrackEntry, export_duration: float) -> list[FilterStage]:
    """Filter stages in fixed order: volume envelope, delay, pan."""
    stages: list[FilterStage] = [build_volume_envelope(track.volume_values, export_duration)]
    if track.start_time > 0:
        stages.append(Delay(round(track.start_time / track.stretch_factor * 1000)))
    if track.pan_value != 0:
        stages.append(Pan(track.pan_value))
    return stages


# =============================================================================
# Pipeline
# =============================================================================


class ExportPipeline:
    """Renders timeline tracks and muxes them onto a video."""

    def __init__(self, engine: MediaEngine) -> None:
        self.engine = engine

    def resolve_source(self, track: TrackEntry, library_dir: Path, original_audio: Path) -> Path:
        if track.id_track == ORIGINAL_AUDIO_TRACK_ID:
            source = original_audio
        else:
            safe_name = sanitize_filename(track.id_track)
            if not safe_name or safe_name != track.id_track:
                raise MediaNotFoundError("Audio file", track.id_track)
            source = library_dir / safe_name
        if not source.is_file():
            raise MediaNotFoundError("Audio file", track.id_track)
        return source

    async def export(
        self,
        video: Path,
        output: Path,
        tracks: Sequence[TrackEntry],
        library_dir: Path,
        original_audio: Path,
        duration: float,
    ) -> Path:
        if not video.is_file():
            raise MediaNotFoundError("Video")
        work_dir = output.parent
        work_dir.mkdir(parents=True, exist_ok=True)

        if not tracks:
            logger.info(f"[EXPORT] No audio tracks, copying video stream to {output}")
            return await self.engine.copy_video(video, output)

        temp_files: list[Path] = []
        try:
            logger.info(f"[EXPORT] Rendering {len(tracks)} tracks (duration={duration}s)")
            results = await asyncio.gather(
                *(
                    self._render_track(track, i, work_dir, library_dir, original_audio, duration, temp_files)
                    for i, track in enumerate(tracks)
                ),
                return_exceptions=True,
            )
            errors = [r for r in results if isinstance(r, BaseException)]
            if errors:
                logger.error(f"[EXPORT] {len(errors)} of {len(tracks)} tracks failed: {errors[0]}")
                raise errors[0]

            mixed = work_dir / PUBLISHED_MIX_FILE
            temp_files.append(mixed)
            logger.info("[EXPORT] Mixing audio tracks")
            await self.engine.mix(list(results), mixed, duration)

            logger.info(f"[EXPORT] Muxing final video -> {output}")
            await self.engine.mux(video, mixed, output, duration)
            return output
        finally:
            self._cleanup(temp_files)

    async def _render_track(
        self,
        track: TrackEntry,
        index: int,
        work_dir: Path,
        library_dir: Path,
        original_audio: Path,
        duration: float,
        temp_files: list[Path],
    ) -> Path:
        source = self.resolve_source(track, library_dir, original_audio)
        rendered = work_dir / f"out{index}.wav"
        stretched = work_dir / f"outZ{index}.wav"
        trim = build_trim_window(track)
        stages = build_track_filters(track, duration)

        logger.debug(f"[EXPORT] Track {index} ({track.id_track}) trim={trim}")
        temp_files.append(rendered)
        await self.engine.render_track(source, rendered, stages, trim)
        temp_files.append(stretched)
        await self.engine.stretch(rendered, stretched, track.stretch_factor, track.pitch)
        return stretched

    def _cleanup(self, paths: Sequence[Path]) -> None:
        for path in paths:
            try:
                path.unlink(missing_ok=True)
            except OSError as e:
                logger.warning(f"[EXPORT] Failed to delete temp file {path}: {e}")
