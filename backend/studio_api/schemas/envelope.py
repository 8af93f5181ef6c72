from pydantic import BaseModel


class ErrorInfo(BaseModel):
    code: str
    message: str
    retryable: bool = False
    suggested_action: str | None = None
    suggested_fix: str | None = None  # Human-readable fix suggestion


class ErrorResponse(BaseModel):
    error: ErrorInfo
