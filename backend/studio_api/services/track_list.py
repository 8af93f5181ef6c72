"""Per-project track list document (``trackList.json``).

Every mutation is a read-modify-write of the whole document. Calls for the
same project are serialized with an asyncio lock so concurrent add/remove
requests cannot lose each other's updates.
"""

import asyncio
import logging
from pathlib import Path
from typing import Any

from studio_api.constants.project_layout import TRACK_LIST_FILE
from studio_api.services.file_store import LocalFileStore

logger = logging.getLogger(__name__)


def empty_track_list() -> dict[str, Any]:
    return {
        "tracks": {},
        "filter": {"name": "", "sort": {"duration": "desc", "name": "desc"}, "page": 1},
    }


class TrackListManager:
    """Track list of one project."""

    def __init__(self, project_path: Path, store: LocalFileStore, lock: asyncio.Lock) -> None:
        self.path = Path(project_path) / TRACK_LIST_FILE
        self._store = store
        self._lock = lock

    def _load(self) -> dict[str, Any]:
        document = self._store.read_json(self.path)
        if not isinstance(document, dict):
            return empty_track_list()
        if not isinstance(document.get("tracks"), dict):
            document["tracks"] = {}
        return document

    async def get_document(self) -> dict[str, Any]:
        async with self._lock:
            return await asyncio.to_thread(self._load)

    async def get_tracks(self) -> dict[str, Any]:
        return (await self.get_document())["tracks"]

    async def add_track(self, track_id: str, metadata: dict[str, Any]) -> dict[str, Any]:
        """Insert or replace the entry for track_id."""
        async with self._lock:
            document = await asyncio.to_thread(self._load)
            document["tracks"][str(track_id)] = metadata
            await asyncio.to_thread(self._store.write_json, self.path, document)
        logger.debug(f"[TRACKS] Saved track {track_id} in {self.path}")
        return metadata

    async def remove_track(self, track_id: str) -> bool:
        """Remove the entry for track_id; False (and no write) if it was absent."""
        async with self._lock:
            document = await asyncio.to_thread(self._load)
            if str(track_id) not in document["tracks"]:
                return False
            del document["tracks"][str(track_id)]
            await asyncio.to_thread(self._store.write_json, self.path, document)
        logger.debug(f"[TRACKS] Removed track {track_id} from {self.path}")
        return True

    async def reset(self) -> None:
        async with self._lock:
            await asyncio.to_thread(self._store.write_json, self.path, empty_track_list())


class TrackListStore:
    """Hands out TrackListManagers that share one lock per project directory."""

    def __init__(self, store: LocalFileStore) -> None:
        self._store = store
        self._locks: dict[Path, asyncio.Lock] = {}

    def for_project(self, project_path: Path) -> TrackListManager:
        key = Path(project_path).resolve()
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        return TrackListManager(key, self._store, lock)

    def forget(self, project_path: Path) -> None:
        self._locks.pop(Path(project_path).resolve(), None)
