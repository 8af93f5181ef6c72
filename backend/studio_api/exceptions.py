"""Custom exceptions for the studio backend.

Every error carries a machine-readable code from the error codes table and
the HTTP status it maps to. Services raise these; the FastAPI handlers in
``studio_api.main`` turn them into ``{"error": {...}}`` responses.
"""

from studio_api.constants.error_codes import get_error_spec
from studio_api.schemas.envelope import ErrorInfo


class StudioError(Exception):
    """Base exception for all studio application errors."""

    code: str = "INTERNAL_ERROR"
    status_code: int = 500
    message: str = "An unexpected error occurred"

    def __init__(
        self,
        message: str | None = None,
        *,
        code: str | None = None,
        status_code: int | None = None,
        suggested_fix: str | None = None,
    ):
        self.message = message or self.__class__.message
        if code:
            self.code = code
        if status_code:
            self.status_code = status_code
        self.suggested_fix = suggested_fix
        super().__init__(self.message)

    def to_error_info(self) -> ErrorInfo:
        """Convert exception to ErrorInfo for API response."""
        spec = get_error_spec(self.code)
        return ErrorInfo(
            code=self.code,
            message=self.message,
            retryable=spec.get("retryable", False),
            suggested_action=spec.get("suggested_action"),
            suggested_fix=self.suggested_fix or spec.get("suggested_fix"),
        )


# =============================================================================
# Resource Not Found Errors (404)
# =============================================================================


class NotFoundError(StudioError):
    """Base class for resource not found errors."""

    code = "NOT_FOUND"
    status_code = 404
    message = "Resource not found"


class ProjectNotFoundError(NotFoundError):
    """Project not found."""

    code = "PROJECT_NOT_FOUND"
    message = "Project not found"

    def __init__(self, project_id: str | None = None):
        message = f"Project not found: {project_id}" if project_id else self.message
        super().__init__(message)


class MediaNotFoundError(NotFoundError):
    """A media file (video, audio, thumbnail, export) does not exist."""

    code = "MEDIA_NOT_FOUND"
    message = "Media not found"

    def __init__(self, kind: str = "Media", resource_id: str | None = None):
        message = f"{kind} not found: {resource_id}" if resource_id else f"{kind} not found"
        super().__init__(message)


# =============================================================================
# Validation Errors (400)
# =============================================================================


class ValidationError(StudioError):
    """Base class for validation errors."""

    code = "VALIDATION_ERROR"
    status_code = 400
    message = "Validation error"


class InvalidChunkError(ValidationError):
    """Chunk upload parameters or body are unusable."""

    code = "INVALID_CHUNK"
    message = "Invalid chunk"


class ChunkMissingError(ValidationError):
    """A chunk in the declared range is absent at assembly time."""

    code = "CHUNK_MISSING"

    def __init__(self, identifier: str, chunk_number: int):
        self.identifier = identifier
        self.chunk_number = chunk_number
        super().__init__(f"Chunk {chunk_number} missing for upload {identifier}")


class InvalidStretchRatioError(ValidationError):
    """Stretch ratio outside (0, 10]."""

    code = "INVALID_STRETCH_RATIO"
    message = "Invalid stretch ratio. Must be between 0 and 10."


class PayloadTooLargeError(ValidationError):
    """Uploaded chunk exceeds the configured size limit."""

    code = "FILE_TOO_LARGE"
    status_code = 413
    message = "File too large"


# =============================================================================
# State Errors (409)
# =============================================================================


class ConflictError(StudioError):
    """Request conflicts with an operation already running."""

    code = "OPERATION_IN_PROGRESS"
    status_code = 409
    message = "Operation already in progress"


# =============================================================================
# Server Errors (500)
# =============================================================================


class MediaEngineError(StudioError):
    """ffmpeg, ffprobe or rubberband exited with a non-zero status."""

    code = "MEDIA_ENGINE_ERROR"
    status_code = 500
    message = "Media engine failed"

    def __init__(self, program: str, returncode: int | None, stderr: str = ""):
        self.program = program
        self.returncode = returncode
        self.stderr = stderr
        tail = stderr.strip()[-500:]
        message = f"{program} exited with code {returncode}"
        if tail:
            message = f"{message}: {tail}"
        super().__init__(message)
