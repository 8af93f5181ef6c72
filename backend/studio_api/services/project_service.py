import logging
from typing import Any

from studio_api.exceptions import ProjectNotFoundError
from studio_api.services.project_repository import ProjectRepository

logger = logging.getLogger(__name__)

DEFAULT_PROJECT_UUID = "0"
DEFAULT_PROJECT_TITLE = "Default"


class ProjectService:
    def __init__(self, projects: ProjectRepository) -> None:
        self.projects = projects

    async def list_projects(self) -> list[dict[str, Any]]:
        return await self.projects.find_all()

    async def create_project(self, title: str) -> dict[str, Any]:
        project = await self.projects.create(title)
        return {"success": True, "uuid": project["uuid"], "title": project["title"]}

    async def delete_project(self, project_uuid: str) -> dict[str, Any]:
        if not await self.projects.remove(project_uuid):
            raise ProjectNotFoundError(project_uuid)
        return {"success": True}

    async def ensure_default_project(self) -> dict[str, Any] | None:
        """Create the ``"0"`` / ``Default`` project when no project exists yet."""
        if await self.projects.find_all():
            return None
        logger.info("[PROJECT] No projects found, creating default project")
        return await self.projects.create(DEFAULT_PROJECT_TITLE, custom_uuid=DEFAULT_PROJECT_UUID)
