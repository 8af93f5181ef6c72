"""Chunked uploads (video and audio) and the background video conversion job.

Upload flow:
1. Every chunk is stored under its 1-based number.
2. When chunks 1..N all exist, the first request to claim the upload
   identifier assembles it; concurrent completions get ``already_processing``.
3. Video uploads become ``originalWithAudio.mp4`` and wait for a conversion
   request. Audio uploads land in the project library and the track list.

Conversion is a background task; ``info.json`` ``metadata.status``
(``pending`` -> ``ready`` | ``error``) is its externally visible progress.
"""

import asyncio
import logging
import math
from pathlib import Path
from typing import Any, BinaryIO

from studio_api.constants.project_layout import (
    INFO_FILE,
    LIBRARY_DIR,
    ORIGINAL_AUDIO_MP3,
    ORIGINAL_AUDIO_WAV,
    ORIGINAL_RENDITION,
    SMALL_RENDITION,
    THUMBS_DIR,
    UPLOADED_VIDEO_FILE,
    VIDEO_FILE,
)
from studio_api.exceptions import InvalidChunkError, MediaNotFoundError, PayloadTooLargeError
from studio_api.render.media_engine import MediaEngine, has_faststart, is_web_codec
from studio_api.render.thumbnails import ThumbnailTileScheduler
from studio_api.schemas.upload import ChunkParams
from studio_api.services.chunk_store import ChunkStore, sanitize_identifier
from studio_api.services.file_store import LocalFileStore
from studio_api.services.job_tracker import JobStatus, JobTracker
from studio_api.services.project_repository import ProjectRepository
from studio_api.services.track_list import TrackListStore
from studio_api.utils.filename import extension, generate_unique_filename, parse_filename, sanitize_filename
from studio_api.utils.media_info import display_aspect_ratio
from studio_api.utils.time import format_duration

logger = logging.getLogger(__name__)

CONVERSION_RESOURCE = "convert"


def count_chunks(total_size: int, chunk_size: int) -> int:
    return math.ceil(total_size / chunk_size)


class UploadService:
    def __init__(
        self,
        projects: ProjectRepository,
        chunks: ChunkStore,
        store: LocalFileStore,
        track_lists: TrackListStore,
        engine: MediaEngine,
        thumbnails: ThumbnailTileScheduler,
        operations: JobTracker,
        upload_admissions: JobTracker,
        max_chunk_bytes: int,
    ) -> None:
        self.projects = projects
        self.chunks = chunks
        self.store = store
        self.track_lists = track_lists
        self.engine = engine
        self.thumbnails = thumbnails
        self.operations = operations
        self.upload_admissions = upload_admissions
        self.max_chunk_bytes = max_chunk_bytes

    # =========================================================================
    # Chunk protocol
    # =========================================================================

    def _validate(self, params: ChunkParams, size: int) -> int:
        if size <= 0:
            raise InvalidChunkError("Invalid file chunk")
        if size > self.max_chunk_bytes:
            raise PayloadTooLargeError(
                f"Chunk of {size} bytes exceeds the {self.max_chunk_bytes} byte limit"
            )
        if params.chunk_number < 1 or params.chunk_size <= 0 or params.total_size <= 0:
            raise InvalidChunkError(
                "flowChunkNumber, flowChunkSize and flowTotalSize must be positive"
            )
        sanitize_identifier(params.identifier)
        return count_chunks(params.total_size, params.chunk_size)

    async def _receive_chunk(self, params: ChunkParams, data: BinaryIO, size: int) -> tuple[int, bool]:
        """Store a chunk; return the declared chunk count and whether all chunks are present."""
        total = self._validate(params, size)
        await asyncio.to_thread(self.chunks.save_chunk, data, params.chunk_number, params.identifier)
        complete = await asyncio.to_thread(self.chunks.all_chunks_exist, total, params.identifier)
        return total, complete

    async def handle_video_chunk(
        self, project_uuid: str, params: ChunkParams, data: BinaryIO, size: int
    ) -> dict[str, Any]:
        await self.projects.require(project_uuid)
        total, complete = await self._receive_chunk(params, data, size)
        if not complete:
            return {"status": "partly_done", "chunk": params.chunk_number, "total": total}

        if not self.upload_admissions.begin((project_uuid, params.identifier)):
            logger.info(f"[UPLOAD] Video upload {params.identifier} already being assembled")
            return {"status": "already_processing"}

        assembled = await self.assemble_video(project_uuid, params.identifier, total)
        return {"status": "complete", "file": assembled.name}

    async def assemble_video(self, project_uuid: str, identifier: str, total_chunks: int) -> Path:
        project_path = self.projects.get_project_path(project_uuid)
        output = project_path / UPLOADED_VIDEO_FILE
        await asyncio.to_thread(
            self.store.write_json, project_path / INFO_FILE, {"metadata": {"status": "pending"}}
        )
        try:
            await self.chunks.assemble_chunks(identifier, total_chunks, output)
        finally:
            await asyncio.to_thread(self.chunks.clean_chunks, identifier)
        logger.info(f"[UPLOAD] Video assembled for {project_uuid}: {output}")
        return output

    async def handle_audio_chunk(
        self, project_uuid: str, params: ChunkParams, data: BinaryIO, size: int
    ) -> dict[str, Any]:
        await self.projects.require(project_uuid)
        total, complete = await self._receive_chunk(params, data, size)
        if not complete:
            return {"status": "partly_done", "chunk": params.chunk_number, "total": total}

        if not self.upload_admissions.begin((project_uuid, params.identifier)):
            logger.info(f"[UPLOAD] Audio upload {params.identifier} already being assembled")
            return {"status": "already_processing"}

        project_path = self.projects.get_project_path(project_uuid)
        library_dir = project_path / LIBRARY_DIR
        filename = sanitize_filename(params.filename) or "audio"
        new_filename = generate_unique_filename(filename)
        output = library_dir / new_filename

        try:
            await self.chunks.assemble_chunks(params.identifier, total, output)
        except Exception:
            logger.exception(f"[UPLOAD] Audio assembly failed for {params.identifier}")
            raise
        finally:
            await asyncio.to_thread(self.chunks.clean_chunks, params.identifier)

        metadata = await self.describe_audio(output, parse_filename(filename)[0])
        await self.track_lists.for_project(project_path).add_track(new_filename, metadata)
        logger.info(f"[UPLOAD] Audio uploaded to {project_uuid}: {new_filename}")
        return {"status": "complete", "file": new_filename, "metadata": metadata}

    async def describe_audio(self, path: Path, name: str) -> dict[str, Any]:
        """Library metadata for an audio file; probe failures leave the defaults."""
        metadata: dict[str, Any] = {
            "id": path.name,
            "name": name,
            "duration": 0,
            "durationFormatted": format_duration(0),
            "channelLayout": "stereo",
            "sampleRate": 0,
            "bitrate": 0,
            "codec": "",
            "format": extension(path.name),
            "fileSize": path.stat().st_size if path.exists() else 0,
        }
        try:
            probe = await self.engine.probe(path)
        except Exception as e:
            logger.warning(f"[UPLOAD] Failed to probe audio {path.name}: {e}")
            return metadata

        metadata["duration"] = probe.duration * 1000
        metadata["durationFormatted"] = format_duration(probe.duration)
        metadata["bitrate"] = round((probe.bit_rate or 0) / 1000)
        stream = probe.audio_stream or (probe.streams[0] if probe.streams else None)
        if stream:
            metadata["channelLayout"] = stream.get("channel_layout") or "stereo"
            metadata["sampleRate"] = int(stream.get("sample_rate") or 0)
            metadata["codec"] = stream.get("codec_name") or ""
        return metadata

    async def delete_audio(self, project_uuid: str, filename: str) -> dict[str, Any]:
        await self.projects.require(project_uuid)
        project_path = self.projects.get_project_path(project_uuid)
        safe_name = sanitize_filename(filename)
        path = project_path / LIBRARY_DIR / safe_name
        if not safe_name or not path.is_file():
            raise MediaNotFoundError("Audio file", filename)
        await asyncio.to_thread(self.store.delete_file, path)
        await self.track_lists.for_project(project_path).remove_track(safe_name)
        logger.info(f"[UPLOAD] Audio deleted from {project_uuid}: {safe_name}")
        return {"status": "deleted", "file": safe_name}

    # =========================================================================
    # Video conversion
    # =========================================================================

    async def start_conversion(self, project_uuid: str) -> bool:
        """Validate and admit a conversion; the caller schedules ``convert_video``."""
        await self.projects.require(project_uuid)
        source = self.projects.get_project_path(project_uuid) / UPLOADED_VIDEO_FILE
        if not source.is_file():
            raise MediaNotFoundError("Video file")
        return self.operations.begin((project_uuid, CONVERSION_RESOURCE), replace_terminal=True)

    async def convert_video(self, project_uuid: str) -> None:
        """Background task: probe, then build video.mp4, renditions and thumbnails."""
        project_path = self.projects.get_project_path(project_uuid)
        source = project_path / UPLOADED_VIDEO_FILE
        info_path = project_path / INFO_FILE
        key = (project_uuid, CONVERSION_RESOURCE)
        metadata: dict[str, Any] = {"status": "pending"}

        try:
            logger.info(f"[CONVERT] Starting conversion for {project_uuid}")
            probe = await self.engine.probe(source)
            width = probe.width or 1920
            height = probe.height or 1080
            metadata = {
                "status": "pending",
                "id": source.name,
                "name": probe.tags.get("title") or source.name,
                "duration": probe.duration * 1000,
                "durationFormatted": format_duration(probe.duration),
                "displayAspectRatio": display_aspect_ratio(probe),
                "width": width,
                "height": height,
                "isMuteVideo": True,
            }
            await asyncio.to_thread(self.store.write_json, info_path, {"metadata": metadata})

            thumbs_dir = project_path / THUMBS_DIR
            await asyncio.to_thread(self.store.delete_dir, thumbs_dir)
            await asyncio.to_thread(self.store.ensure_dir, thumbs_dir)

            audio_outputs = (
                [project_path / ORIGINAL_AUDIO_WAV, project_path / ORIGINAL_AUDIO_MP3]
                if probe.has_audio
                else []
            )
            await asyncio.gather(
                self._build_stream_video(source, project_path / VIDEO_FILE, probe.video_codec, probe.has_audio),
                self.engine.make_renditions(
                    source,
                    project_path / ORIGINAL_RENDITION,
                    project_path / SMALL_RENDITION,
                    audio_outputs,
                ),
                self.thumbnails.generate(source, thumbs_dir, probe.duration, width, height),
            )

            await asyncio.to_thread(self.store.delete_file, source)
            metadata["status"] = "ready"
            await asyncio.to_thread(self.store.write_json, info_path, {"metadata": metadata})
            await self.projects.update_video_loaded(project_uuid, True)
            self.operations.set_status(key, JobStatus.COMPLETE, output_id=VIDEO_FILE)
            logger.info(f"[CONVERT] Conversion complete for {project_uuid}")
        except Exception as e:
            logger.exception(f"[CONVERT] Conversion failed for {project_uuid}")
            metadata["status"] = "error"
            try:
                await asyncio.to_thread(self.store.write_json, info_path, {"metadata": metadata})
            except OSError as write_error:
                logger.error(f"[CONVERT] Could not record error status for {project_uuid}: {write_error}")
            self.operations.set_status(key, JobStatus.ERROR, error=str(e))

    async def _build_stream_video(self, source: Path, output: Path, codec: str | None, has_audio: bool) -> None:
        web_codec = is_web_codec(codec)
        faststart = web_codec and not has_audio and await asyncio.to_thread(has_faststart, source)
        if faststart:
            await asyncio.to_thread(self.store.copy_file, source, output)
            logger.info(f"[CONVERT] Video copied directly (already optimized): {output}")
        elif web_codec:
            await self.engine.faststart_copy(source, output)
            logger.info(f"[CONVERT] Video stream copied with faststart: {output}")
        else:
            await self.engine.encode_h264(source, output)
            logger.info(f"[CONVERT] Video re-encoded to H.264 ({codec}): {output}")

    async def get_conversion_status(self, project_uuid: str) -> dict[str, Any]:
        await self.projects.require(project_uuid)
        data = await asyncio.to_thread(
            self.store.read_json, self.projects.get_project_path(project_uuid) / INFO_FILE
        )
        if not isinstance(data, dict) or not isinstance(data.get("metadata"), dict):
            return {"status": False, "metadata": {}}
        return {"status": data["metadata"].get("status") or False, "metadata": data["metadata"]}
