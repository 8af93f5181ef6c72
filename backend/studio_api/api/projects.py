import logging
from typing import Any

from fastapi import APIRouter, Body, status

from studio_api.api.deps import Services
from studio_api.schemas.project import Project, ProjectCreate, ProjectCreatedResponse

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("", response_model=list[Project], response_model_by_alias=True)
async def list_projects(services: Services):
    return await services.project_service.list_projects()


@router.post("", response_model=ProjectCreatedResponse, status_code=status.HTTP_201_CREATED)
async def create_project(data: ProjectCreate, services: Services):
    return await services.project_service.create_project(data.title)


@router.delete("/{uuid}")
async def delete_project(uuid: str, services: Services):
    return await services.project_service.delete_project(uuid)


@router.get("/{uuid}/state")
async def load_state(uuid: str, services: Services) -> dict[str, Any]:
    """Editor state saved with PUT; an empty object when nothing was saved yet."""
    return await services.editor_service.load_project(uuid)


@router.put("/{uuid}/state")
async def save_state(uuid: str, services: Services, data: dict[str, Any] = Body(...)):
    return await services.editor_service.save_project(uuid, data)
