"""Response helpers shared by the media routers."""

from pathlib import Path

from fastapi import Response
from fastapi.responses import FileResponse, StreamingResponse

from studio_api.services.stream_service import ServedFile, iter_file_range, select_byte_range


def ranged_file_response(path: Path, range_header: str | None, media_type: str) -> Response:
    """Serve ``path`` honouring a single ``bytes=start-end`` Range header."""
    file_size = path.stat().st_size
    selection = select_byte_range(range_header, file_size)
    if selection.status_code == 416:
        return Response(status_code=416, headers=selection.headers)
    return StreamingResponse(
        iter_file_range(path, selection.start, selection.end),
        status_code=selection.status_code,
        media_type=media_type,
        headers=selection.headers,
    )


def served_file_response(served: ServedFile) -> FileResponse:
    return FileResponse(path=str(served.path), media_type=served.media_type, headers=served.headers)
