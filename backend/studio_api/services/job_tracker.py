"""In-memory job registry with TTL.

Tracks long-running operations (stretch, conversion) and short-lived upload
admissions per ``(project uuid, resource id)`` key. Entries expire a fixed
time after their last write; expiry is lazy on read plus a purge on every
write, so there are no timers to cancel. Per-instance only.
"""

import threading
import time
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Hashable


class JobStatus(str, Enum):
    PROCESSING = "processing"
    COMPLETE = "complete"
    ERROR = "error"


NOT_FOUND = "not_found"


@dataclass
class Operation:
    id: str
    status: JobStatus
    updated_at: float
    output_id: str | None = None
    error: str | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status != JobStatus.PROCESSING

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"operationId": self.id, "status": self.status.value}
        if self.output_id is not None:
            data["outputId"] = self.output_id
        if self.error is not None:
            data["error"] = self.error
        return data


class JobTracker:
    """Thread-safe in-memory store with TTL-based expiration."""

    def __init__(self, ttl_seconds: float = 300, clock: Callable[[], float] = time.monotonic) -> None:
        self._store: dict[Hashable, Operation] = {}
        self._lock = threading.Lock()
        self._ttl = ttl_seconds
        self._clock = clock

    def begin(
        self,
        key: Hashable,
        operation_id: str | None = None,
        *,
        replace_terminal: bool = False,
    ) -> bool:
        """Admit a new operation for key.

        Atomic check-and-set: returns False when a live entry already exists,
        True after recording a ``processing`` entry. With replace_terminal, a
        live entry that already finished (complete/error) does not block a
        new run.
        """
        with self._lock:
            now = self._clock()
            self._cleanup_expired(now)
            existing = self._store.get(key)
            if existing is not None and not (replace_terminal and existing.is_terminal):
                return False
            self._store[key] = Operation(
                id=operation_id or str(uuid.uuid4()),
                status=JobStatus.PROCESSING,
                updated_at=now,
            )
            return True

    def set_status(
        self,
        key: Hashable,
        status: JobStatus,
        *,
        output_id: str | None = None,
        error: str | None = None,
    ) -> Operation:
        """Record a status for key; the TTL restarts from this write."""
        with self._lock:
            now = self._clock()
            self._cleanup_expired(now)
            previous = self._store.get(key)
            operation = Operation(
                id=previous.id if previous else str(uuid.uuid4()),
                status=status,
                updated_at=now,
                output_id=output_id,
                error=error,
            )
            self._store[key] = operation
            return operation

    def get_status(self, key: Hashable) -> Operation | None:
        """Get the operation for key, or None if never seen or expired."""
        with self._lock:
            entry = self._store.get(key)
            if entry is None:
                return None
            if self._clock() - entry.updated_at > self._ttl:
                del self._store[key]
                return None
            return entry

    def __len__(self) -> int:
        with self._lock:
            self._cleanup_expired(self._clock())
            return len(self._store)

    def _cleanup_expired(self, now: float) -> None:
        """Remove expired entries (called under lock)."""
        expired = [k for k, v in self._store.items() if now - v.updated_at > self._ttl]
        for k in expired:
            del self._store[k]
