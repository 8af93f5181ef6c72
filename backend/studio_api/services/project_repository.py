"""Project list (``projects.json``) and per-project directory layout."""

import asyncio
import logging
import re
import uuid as uuid_lib
from pathlib import Path
from typing import Any

from studio_api.constants.project_layout import PROJECT_DIRS, PROJECTS_FILE
from studio_api.exceptions import ProjectNotFoundError
from studio_api.services.file_store import LocalFileStore
from studio_api.services.track_list import TrackListStore

logger = logging.getLogger(__name__)

_PROJECT_ID_PATTERN = re.compile(r"^[0-9A-Za-z_-]+$")


class ProjectRepository:
    def __init__(self, projects_dir: Path, store: LocalFileStore, track_lists: TrackListStore) -> None:
        self.projects_dir = Path(projects_dir)
        self.projects_file = self.projects_dir / PROJECTS_FILE
        self._store = store
        self._track_lists = track_lists
        self._lock = asyncio.Lock()
        self.projects_dir.mkdir(parents=True, exist_ok=True)

    def get_project_path(self, project_uuid: str) -> Path:
        # Project ids become directory names; reject anything that could escape projects_dir
        if not _PROJECT_ID_PATTERN.match(project_uuid or ""):
            raise ProjectNotFoundError(project_uuid)
        return self.projects_dir / project_uuid

    def _read(self) -> list[dict[str, Any]]:
        data = self._store.read_json(self.projects_file)
        if not isinstance(data, dict):
            return []
        return list(data.get("projects") or [])

    def _save(self, projects: list[dict[str, Any]]) -> None:
        self._store.write_json(self.projects_file, {"projects": projects})

    async def find_all(self) -> list[dict[str, Any]]:
        return await asyncio.to_thread(self._read)

    async def find_by_uuid(self, project_uuid: str) -> dict[str, Any] | None:
        for project in await self.find_all():
            if project.get("uuid") == project_uuid:
                return project
        return None

    async def require(self, project_uuid: str) -> dict[str, Any]:
        project = await self.find_by_uuid(project_uuid)
        if project is None:
            raise ProjectNotFoundError(project_uuid)
        return project

    async def create(self, title: str, custom_uuid: str | None = None) -> dict[str, Any]:
        project = {
            "uuid": custom_uuid or str(uuid_lib.uuid4()),
            "title": title,
            "isVideoLoaded": False,
        }
        project_path = self.get_project_path(project["uuid"])
        async with self._lock:
            projects = await asyncio.to_thread(self._read)
            projects.append(project)
            await asyncio.to_thread(self._save, projects)
        await asyncio.to_thread(self._create_folders, project_path)
        await self._track_lists.for_project(project_path).reset()
        logger.info(f"[PROJECT] Created project {project['uuid']} ({title})")
        return project

    def _create_folders(self, project_path: Path) -> None:
        for name in PROJECT_DIRS:
            self._store.ensure_dir(project_path / name)

    async def remove(self, project_uuid: str) -> bool:
        async with self._lock:
            projects = await asyncio.to_thread(self._read)
            remaining = [p for p in projects if p.get("uuid") != project_uuid]
            if len(remaining) == len(projects):
                return False
            await asyncio.to_thread(self._save, remaining)
        project_path = self.get_project_path(project_uuid)
        await asyncio.to_thread(self._store.delete_dir, project_path)
        self._track_lists.forget(project_path)
        logger.info(f"[PROJECT] Deleted project {project_uuid}")
        return True

    async def update_video_loaded(self, project_uuid: str, is_loaded: bool) -> dict[str, Any] | None:
        async with self._lock:
            projects = await asyncio.to_thread(self._read)
            for project in projects:
                if project.get("uuid") == project_uuid:
                    project["isVideoLoaded"] = is_loaded
                    await asyncio.to_thread(self._save, projects)
                    return project
        return None
