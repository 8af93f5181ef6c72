from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class ChunkParams(BaseModel):
    """Multipart form fields of the chunked upload protocol."""

    model_config = ConfigDict(populate_by_name=True)

    chunk_number: int = Field(..., alias="flowChunkNumber")
    chunk_size: int = Field(..., alias="flowChunkSize")
    total_size: int = Field(..., alias="flowTotalSize")
    identifier: str = Field(..., alias="flowIdentifier")
    filename: str = Field(..., alias="flowFilename")


class ChunkResponse(BaseModel):
    status: Literal["partly_done", "complete", "already_processing"]
    chunk: int | None = None
    total: int | None = None
    file: str | None = None
    metadata: dict[str, Any] | None = None
