"""Lifecycle-scoped service graph.

One ``StudioServices`` instance is built per application (see
``studio_api.main.create_app``) and shared through ``app.state``; nothing in
the service layer is a module-level singleton.
"""

from dataclasses import dataclass

from studio_api.config import Settings
from studio_api.render.export_pipeline import ExportPipeline
from studio_api.render.media_engine import MediaEngine
from studio_api.render.thumbnails import ThumbnailTileScheduler
from studio_api.services.chunk_store import ChunkStore
from studio_api.services.editor_service import EditorService
from studio_api.services.file_store import LocalFileStore
from studio_api.services.job_tracker import JobTracker
from studio_api.services.project_repository import ProjectRepository
from studio_api.services.project_service import ProjectService
from studio_api.services.stream_service import StreamService
from studio_api.services.track_list import TrackListStore
from studio_api.services.upload_service import UploadService


@dataclass
class StudioServices:
    settings: Settings
    engine: MediaEngine
    operations: JobTracker
    upload_admissions: JobTracker
    projects: ProjectRepository
    project_service: ProjectService
    upload_service: UploadService
    editor_service: EditorService
    stream_service: StreamService


def build_services(settings: Settings, engine: MediaEngine | None = None) -> StudioServices:
    """Wire the service graph; ``engine`` can be replaced (tests use a recording fake)."""
    engine = engine or MediaEngine(settings)
    store = LocalFileStore()
    track_lists = TrackListStore(store)
    projects = ProjectRepository(settings.projects_dir, store, track_lists)
    operations = JobTracker(settings.operation_ttl_seconds)
    upload_admissions = JobTracker(settings.upload_admission_ttl_seconds)
    thumbnails = ThumbnailTileScheduler(engine, store, settings)

    return StudioServices(
        settings=settings,
        engine=engine,
        operations=operations,
        upload_admissions=upload_admissions,
        projects=projects,
        project_service=ProjectService(projects),
        upload_service=UploadService(
            projects=projects,
            chunks=ChunkStore(settings.tmp_chunks_dir),
            store=store,
            track_lists=track_lists,
            engine=engine,
            thumbnails=thumbnails,
            operations=operations,
            upload_admissions=upload_admissions,
            max_chunk_bytes=settings.max_upload_size_bytes,
        ),
        editor_service=EditorService(
            projects=projects,
            store=store,
            track_lists=track_lists,
            engine=engine,
            exporter=ExportPipeline(engine),
            operations=operations,
            frame_height=settings.frame_thumb_height,
        ),
        stream_service=StreamService(projects),
    )
