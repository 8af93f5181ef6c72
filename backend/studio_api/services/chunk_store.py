"""Chunk storage and reassembly for the chunked upload protocol.

Chunks live in a flat temp directory as ``flow-<identifier>.<n>`` (1-based).
A chunk is written to a uniquely named ``.part`` sibling and renamed into
place, so a chunk that "exists" was always written completely and a
re-delivered chunk simply overwrites the previous copy, even while an earlier
delivery of it is still being written.
"""

import asyncio
import logging
import os
import re
import shutil
import tempfile
from pathlib import Path
from typing import BinaryIO

from studio_api.exceptions import ChunkMissingError, InvalidChunkError

logger = logging.getLogger(__name__)

_UNSAFE_IDENTIFIER_CHARS = re.compile(r"[^0-9A-Za-z_-]")

COPY_BUFFER_SIZE = 1024 * 1024


def sanitize_identifier(identifier: str) -> str:
    """Strip everything but ``[0-9A-Za-z_-]`` from a client upload identifier."""
    cleaned = _UNSAFE_IDENTIFIER_CHARS.sub("", identifier or "")
    if not cleaned:
        raise InvalidChunkError(f"Invalid upload identifier: {identifier!r}")
    return cleaned


class ChunkStore:
    """Chunk files for in-flight uploads under a single temp directory."""

    def __init__(self, chunks_dir: Path) -> None:
        self.chunks_dir = Path(chunks_dir)
        self.chunks_dir.mkdir(parents=True, exist_ok=True)

    def chunk_path(self, chunk_number: int, identifier: str) -> Path:
        return self.chunks_dir / f"flow-{sanitize_identifier(identifier)}.{chunk_number}"

    def chunk_exists(self, chunk_number: int, identifier: str) -> bool:
        return self.chunk_path(chunk_number, identifier).is_file()

    def save_chunk(self, data: bytes | BinaryIO, chunk_number: int, identifier: str) -> Path:
        """Persist one chunk; re-sending the same chunk number overwrites it."""
        if chunk_number < 1:
            raise InvalidChunkError(f"Chunk numbers start at 1 (got {chunk_number})")
        target = self.chunk_path(chunk_number, identifier)
        fd, partial = tempfile.mkstemp(dir=self.chunks_dir, prefix=target.name + ".", suffix=".part")
        try:
            with os.fdopen(fd, "wb") as out:
                if isinstance(data, (bytes, bytearray, memoryview)):
                    out.write(data)
                else:
                    shutil.copyfileobj(data, out, COPY_BUFFER_SIZE)
            os.replace(partial, target)
        except BaseException:
            Path(partial).unlink(missing_ok=True)
            raise
        return target

    def all_chunks_exist(self, total_chunks: int, identifier: str) -> bool:
        """True iff every chunk 1..total_chunks is present."""
        if total_chunks < 1:
            return False
        return all(self.chunk_exists(n, identifier) for n in range(1, total_chunks + 1))

    async def assemble_chunks(self, identifier: str, total_chunks: int, destination: Path) -> Path:
        """Concatenate chunks 1..total_chunks, in that order, into destination.

        Raises ChunkMissingError on the first absent chunk; whatever was
        already written to destination is removed.
        """
        destination = Path(destination)
        destination.parent.mkdir(parents=True, exist_ok=True)
        logger.info(f"[UPLOAD] Assembling {total_chunks} chunks for {identifier} -> {destination}")
        try:
            with open(destination, "wb") as out:
                for n in range(1, total_chunks + 1):
                    path = self.chunk_path(n, identifier)
                    if not path.is_file():
                        raise ChunkMissingError(identifier, n)
                    await asyncio.to_thread(self._append, path, out)
        except BaseException:
            destination.unlink(missing_ok=True)
            raise
        return destination

    @staticmethod
    def _append(source: Path, out: BinaryIO) -> None:
        with open(source, "rb") as src:
            shutil.copyfileobj(src, out, COPY_BUFFER_SIZE)

    def clean_chunks(self, identifier: str) -> int:
        """Delete chunks 1, 2, ... up to the first missing number."""
        removed = 0
        n = 1
        while True:
            path = self.chunk_path(n, identifier)
            if not path.is_file():
                break
            try:
                path.unlink()
            except OSError as e:
                logger.warning(f"[UPLOAD] Failed to delete chunk {path}: {e}")
            removed += 1
            n += 1
        if removed:
            logger.debug(f"[UPLOAD] Removed {removed} chunks for {identifier}")
        return removed
