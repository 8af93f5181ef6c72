"""Editor operations on a project: metadata, timeline, stretch, state, export, frames."""

import asyncio
import logging
import time
from pathlib import Path
from typing import Any

from studio_api.constants.project_layout import (
    BACKUP_FILE,
    INFO_FILE,
    LIBRARY_DIR,
    ORIGINAL_AUDIO_TRACK_ID,
    ORIGINAL_AUDIO_WAV,
    PUBLISHED_DIR,
    PUBLISHED_VIDEO_FILE,
    RESOURCES_DIR,
    THUMBS_CACHE_DIR,
    THUMBS_DIR,
    UPLOADED_VIDEO_FILE,
    VIDEO_FILE,
)
from studio_api.exceptions import (
    ConflictError,
    InvalidStretchRatioError,
    MediaNotFoundError,
    ValidationError,
)
from studio_api.render.export_pipeline import ExportPipeline
from studio_api.render.media_engine import MediaEngine
from studio_api.schemas.timeline import ExportRequest, StretchRequest, TrackEntry
from studio_api.services.file_store import LocalFileStore
from studio_api.services.job_tracker import NOT_FOUND, JobStatus, JobTracker
from studio_api.services.project_repository import ProjectRepository
from studio_api.services.track_list import TrackListStore
from studio_api.utils.filename import generate_stretched_filename, parse_filename, sanitize_filename

logger = logging.getLogger(__name__)

MAX_STRETCH_RATIO = 10
EXPORT_RESOURCE = "export"
ORIGINAL_AUDIO_NAME = "original-audio.wav"


class EditorService:
    def __init__(
        self,
        projects: ProjectRepository,
        store: LocalFileStore,
        track_lists: TrackListStore,
        engine: MediaEngine,
        exporter: ExportPipeline,
        operations: JobTracker,
        frame_height: int = 180,
    ) -> None:
        self.projects = projects
        self.store = store
        self.track_lists = track_lists
        self.engine = engine
        self.exporter = exporter
        self.operations = operations
        self.frame_height = frame_height

    async def _project_path(self, project_uuid: str) -> Path:
        await self.projects.require(project_uuid)
        return self.projects.get_project_path(project_uuid)

    # =========================================================================
    # Metadata and timeline
    # =========================================================================

    async def get_video_metadata(self, project_uuid: str) -> dict[str, Any]:
        project_path = await self._project_path(project_uuid)
        data = await asyncio.to_thread(self.store.read_json, project_path / INFO_FILE)
        if not isinstance(data, dict) or not data.get("metadata"):
            raise MediaNotFoundError("Video metadata")
        return data["metadata"]

    async def get_audio_list(self, project_uuid: str) -> dict[str, Any]:
        project_path = await self._project_path(project_uuid)
        return await self.track_lists.for_project(project_path).get_tracks()

    async def get_audio_file(self, project_uuid: str, audio_id: str) -> Path:
        project_path = await self._project_path(project_uuid)
        path = project_path / LIBRARY_DIR / sanitize_filename(audio_id)
        if not path.is_file():
            raise MediaNotFoundError("Audio file", audio_id)
        return path

    async def add_audio_to_timeline(
        self, project_uuid: str, audio_id: str, meta_info: dict[str, Any]
    ) -> dict[str, Any]:
        project_path = await self._project_path(project_uuid)
        logger.info(f"[TIMELINE] Adding {audio_id} to {project_uuid}")
        await self.track_lists.for_project(project_path).add_track(audio_id, meta_info)
        return {"success": True}

    async def remove_audio_from_timeline(self, project_uuid: str, audio_id: str) -> dict[str, Any]:
        project_path = await self._project_path(project_uuid)
        logger.info(f"[TIMELINE] Removing {audio_id} from {project_uuid}")
        await self.track_lists.for_project(project_path).remove_track(audio_id)
        return {"success": True}

    # =========================================================================
    # Stretch
    # =========================================================================

    async def stretch_audio(self, project_uuid: str, audio_id: str, request: StretchRequest) -> dict[str, Any]:
        """Time-stretch / pitch-shift a library file (or the original audio) into a new library file.

        Input errors raise. Once the operation is admitted, failures are
        returned and recorded as an ``error`` status instead of raised.
        """
        ratio = request.ratio
        if ratio is None or not 0 < ratio <= MAX_STRETCH_RATIO:
            raise InvalidStretchRatioError()

        project_path = await self._project_path(project_uuid)
        audio_id = request.audio_id or audio_id
        is_original = audio_id == ORIGINAL_AUDIO_TRACK_ID
        if is_original:
            source = project_path / ORIGINAL_AUDIO_WAV
            source_name = ORIGINAL_AUDIO_NAME
        else:
            source_name = sanitize_filename(audio_id)
            source = project_path / LIBRARY_DIR / source_name
        if not source.is_file():
            raise MediaNotFoundError("Audio file", audio_id)

        key = (project_uuid, audio_id)
        if not self.operations.begin(key, replace_terminal=True):
            raise ConflictError(f"Stretch already in progress for {audio_id}")

        base_name = parse_filename(source_name)[0]
        stretched_id = generate_stretched_filename(source_name)
        output = project_path / LIBRARY_DIR / stretched_id
        logger.info(
            f"[STRETCH] {project_uuid}/{audio_id}: ratio={ratio} pitch={request.pitch_value} "
            f"start={request.start_time} duration={request.duration}"
        )

        try:
            await self._run_stretch(source, output, ratio, request)
            metadata = await self._stretched_metadata(output, stretched_id, base_name)
            if metadata:
                await self.track_lists.for_project(project_path).add_track(stretched_id, metadata)
        except Exception as e:
            logger.exception(f"[STRETCH] Failed for {project_uuid}/{audio_id}")
            return self.operations.set_status(key, JobStatus.ERROR, error=str(e)).to_dict()

        logger.info(f"[STRETCH] Complete for {project_uuid}/{audio_id}: {stretched_id}")
        return self.operations.set_status(key, JobStatus.COMPLETE, output_id=stretched_id).to_dict()

    async def _run_stretch(self, source: Path, output: Path, ratio: float, request: StretchRequest) -> None:
        stamp = int(time.time() * 1000)
        temp_wav = output.parent / f"temp_{stamp}.wav"
        temp_stretched = output.parent / f"temp_stretched_{stamp}.wav"
        try:
            await self.engine.to_wav(source, temp_wav, request.start_time, request.duration)
            await self.engine.stretch(temp_wav, temp_stretched, ratio, request.pitch_value)
            await self.engine.to_mp3(temp_stretched, output)
        finally:
            for path in (temp_wav, temp_stretched):
                try:
                    path.unlink(missing_ok=True)
                except OSError as e:
                    logger.warning(f"[STRETCH] Failed to delete temp file {path}: {e}")

    async def _stretched_metadata(self, output: Path, stretched_id: str, base_name: str) -> dict[str, Any] | None:
        try:
            probe = await self.engine.probe(output)
        except Exception as e:
            logger.warning(f"[STRETCH] Failed to probe stretched audio {stretched_id}: {e}")
            return None
        return {
            "id": stretched_id,
            "name": f"{base_name} (stretched)",
            "duration": probe.duration * 1000,
            "format": "mp3",
        }

    async def get_stretch_status(self, project_uuid: str, audio_id: str) -> dict[str, Any]:
        operation = self.operations.get_status((project_uuid, audio_id))
        if operation is None:
            return {"status": NOT_FOUND}
        return operation.to_dict()

    # =========================================================================
    # Saved editor state
    # =========================================================================

    async def load_project(self, project_uuid: str) -> dict[str, Any]:
        project_path = await self._project_path(project_uuid)
        data = await asyncio.to_thread(self.store.read_json, project_path / BACKUP_FILE)
        return data or {}

    async def save_project(self, project_uuid: str, data: dict[str, Any]) -> dict[str, Any]:
        project_path = await self._project_path(project_uuid)
        await asyncio.to_thread(self.store.write_json, project_path / BACKUP_FILE, data)
        logger.info(f"[STATE] Saved editor state for {project_uuid}")
        return {"success": True}

    # =========================================================================
    # Export
    # =========================================================================

    async def _timeline_tracks(self, project_path: Path) -> list[TrackEntry]:
        tracks = []
        for track_id, entry in (await self.track_lists.for_project(project_path).get_tracks()).items():
            if not isinstance(entry, dict) or "idTrack" not in entry:
                continue
            try:
                tracks.append(TrackEntry.model_validate(entry))
            except ValueError as e:
                raise ValidationError(f"Invalid timeline entry {track_id}: {e}") from e
        return tracks

    async def export_project(self, project_uuid: str, request: ExportRequest) -> dict[str, Any]:
        project_path = await self._project_path(project_uuid)
        video = project_path / VIDEO_FILE
        if not video.is_file():
            raise MediaNotFoundError("Video file")

        tracks = request.tracks if request.tracks is not None else await self._timeline_tracks(project_path)
        duration = request.duration
        if duration is None:
            duration = (await self.engine.probe(video)).duration

        key = (project_uuid, EXPORT_RESOURCE)
        if not self.operations.begin(key, replace_terminal=True):
            raise ConflictError(f"Export already in progress for {project_uuid}")

        logger.info(f"[EXPORT] Exporting {project_uuid}: {len(tracks)} tracks, {duration}s")
        try:
            await self.exporter.export(
                video,
                project_path / PUBLISHED_VIDEO_FILE,
                tracks,
                project_path / LIBRARY_DIR,
                project_path / ORIGINAL_AUDIO_WAV,
                duration,
            )
        except Exception as e:
            self.operations.set_status(key, JobStatus.ERROR, error=str(e))
            raise
        self.operations.set_status(key, JobStatus.COMPLETE, output_id="out")
        return {"res": f"/api/v1/workspaces/{project_uuid}/exports/out"}

    async def get_export_status(self, project_uuid: str) -> dict[str, Any]:
        operation = self.operations.get_status((project_uuid, EXPORT_RESOURCE))
        if operation is None:
            return {"status": NOT_FOUND}
        return operation.to_dict()

    # =========================================================================
    # Frames and deletion
    # =========================================================================

    async def get_frame(self, project_uuid: str, seconds: float) -> Path:
        """Frame at ``seconds`` as a webp, extracted once and cached."""
        project_path = await self._project_path(project_uuid)
        cache_file = project_path / THUMBS_CACHE_DIR / f"thumb_{seconds:.2f}.webp"
        if cache_file.is_file():
            return cache_file
        video = project_path / VIDEO_FILE
        if not video.is_file():
            raise MediaNotFoundError("Video file")
        return await self.engine.extract_frame(video, cache_file, seconds, self.frame_height)

    async def delete_video(self, project_uuid: str) -> dict[str, Any]:
        """Remove every video-derived asset but keep the project, its library and state."""
        project_path = await self._project_path(project_uuid)

        def remove() -> None:
            for name in (RESOURCES_DIR, THUMBS_DIR, PUBLISHED_DIR):
                self.store.delete_dir(project_path / name)
            for name in (UPLOADED_VIDEO_FILE, VIDEO_FILE, INFO_FILE):
                self.store.delete_file(project_path / name)
            self.store.ensure_dir(project_path / PUBLISHED_DIR)

        await asyncio.to_thread(remove)
        await self.projects.update_video_loaded(project_uuid, False)
        logger.info(f"[PROJECT] Video deleted from {project_uuid}")
        return {"success": True}
