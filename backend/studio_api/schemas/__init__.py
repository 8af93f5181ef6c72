from studio_api.schemas.envelope import ErrorInfo, ErrorResponse
from studio_api.schemas.project import Project, ProjectCreate, ProjectCreatedResponse
from studio_api.schemas.timeline import (
    ExportRequest,
    ExportResponse,
    StretchRequest,
    TrackEntry,
    VolumeCurve,
)
from studio_api.schemas.upload import ChunkParams, ChunkResponse

__all__ = [
    "ErrorInfo",
    "ErrorResponse",
    "Project",
    "ProjectCreate",
    "ProjectCreatedResponse",
    "TrackEntry",
    "VolumeCurve",
    "ExportRequest",
    "ExportResponse",
    "StretchRequest",
    "ChunkParams",
    "ChunkResponse",
]
