"""Error codes dictionary.

This is the single source of truth for all error codes, their retryability,
and suggested recovery actions. Used by exception handlers to generate
machine-readable error responses.
"""

from typing import TypedDict


class ErrorCodeSpec(TypedDict, total=False):
    """Specification for an error code."""

    retryable: bool
    suggested_action: str
    suggested_fix: str


ERROR_CODES: dict[str, ErrorCodeSpec] = {
    # ==========================================================================
    # Resource errors
    # ==========================================================================
    "PROJECT_NOT_FOUND": {
        "retryable": False,
        "suggested_action": "refresh_projects",
        "suggested_fix": "List workspaces again and use an existing uuid",
    },
    "MEDIA_NOT_FOUND": {
        "retryable": False,
        "suggested_fix": "Upload or convert the media before requesting it",
    },
    "NOT_FOUND": {
        "retryable": False,
    },
    # ==========================================================================
    # Validation errors (fix the request, then retry)
    # ==========================================================================
    "VALIDATION_ERROR": {
        "retryable": False,
    },
    "INVALID_CHUNK": {
        "retryable": False,
        "suggested_fix": "Send 1-based chunk numbers with a non-empty file part",
    },
    "CHUNK_MISSING": {
        "retryable": True,
        "suggested_action": "reupload_chunks",
        "suggested_fix": "Re-send the missing chunk; assembly restarts once all chunks exist",
    },
    "INVALID_STRETCH_RATIO": {
        "retryable": False,
        "suggested_fix": "Use a ratio greater than 0 and at most 10",
    },
    "FILE_TOO_LARGE": {
        "retryable": False,
        "suggested_fix": "Lower flowChunkSize below the server limit",
    },
    "BAD_REQUEST": {
        "retryable": False,
    },
    # ==========================================================================
    # State errors
    # ==========================================================================
    "OPERATION_IN_PROGRESS": {
        "retryable": True,
        "suggested_action": "poll_status",
    },
    # ==========================================================================
    # Server errors
    # ==========================================================================
    "MEDIA_ENGINE_ERROR": {
        "retryable": False,
        "suggested_fix": "Check that the uploaded media is a valid file",
    },
    "INTERNAL_ERROR": {
        "retryable": True,
        "suggested_action": "retry_later",
    },
}


def get_error_spec(code: str) -> ErrorCodeSpec:
    """Get error specification by code.

    Args:
        code: Error code string (e.g., "PROJECT_NOT_FOUND")

    Returns:
        ErrorCodeSpec with retryable flag and suggested recovery, or an empty
        spec for unknown codes.
    """
    return ERROR_CODES.get(code, {})
