"""Local JSON document store and filesystem helpers.

All methods are blocking; async callers wrap them in ``asyncio.to_thread``.
"""

import json
import logging
import os
import shutil
import tempfile
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)


class LocalFileStore:
    """JSON documents and media files on local disk."""

    def ensure_dir(self, path: Path) -> Path:
        path.mkdir(parents=True, exist_ok=True)
        return path

    def read_json(self, path: Path) -> Any | None:
        """Read a JSON document.

        Returns None when the file is missing or unparsable; corruption is
        logged so a broken document degrades to "absent" instead of a 500.
        """
        try:
            with open(path, encoding="utf-8") as f:
                return json.load(f)
        except FileNotFoundError:
            return None
        except json.JSONDecodeError as e:
            logger.error(f"[STORE] Corrupt JSON document {path}: {e}")
            return None

    def write_json(self, path: Path, data: Any) -> None:
        """Write a JSON document atomically (temp file + rename)."""
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def delete_file(self, path: Path) -> bool:
        """Delete file."""
        if path.is_file():
            path.unlink()
            return True
        return False

    def delete_dir(self, path: Path) -> bool:
        """Delete a directory tree."""
        if path.is_dir():
            shutil.rmtree(path)
            return True
        return False

    def copy_file(self, source: Path, destination: Path) -> Path:
        destination.parent.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(source, destination)
        return destination
