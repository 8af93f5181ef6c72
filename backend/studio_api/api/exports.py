import logging

from fastapi import APIRouter

from studio_api.api.deps import Services
from studio_api.api.streaming import served_file_response
from studio_api.schemas.timeline import ExportRequest, ExportResponse

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/{uuid}/exports", response_model=ExportResponse)
async def export_project(uuid: str, services: Services, data: ExportRequest | None = None):
    return await services.editor_service.export_project(uuid, data or ExportRequest())


@router.get("/{uuid}/exports/status")
async def get_export_status(uuid: str, services: Services):
    return await services.editor_service.get_export_status(uuid)


@router.get("/{uuid}/exports/{export_id}")
async def get_published(uuid: str, export_id: str, services: Services):
    """Published export; ``out`` is the only export a project keeps."""
    await services.projects.require(uuid)
    return served_file_response(services.stream_service.published(uuid))
