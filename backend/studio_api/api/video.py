"""Video upload, conversion, streaming and thumbnail endpoints."""

import asyncio
import json
import logging
import math
from typing import AsyncIterator

from fastapi import APIRouter, BackgroundTasks, Header, Request, Response
from fastapi.responses import FileResponse, StreamingResponse

from studio_api.api.deps import ChunkFile, ChunkForm, Services
from studio_api.api.streaming import ranged_file_response, served_file_response
from studio_api.constants.project_layout import MANIFEST_FILE
from studio_api.exceptions import ValidationError
from studio_api.schemas.upload import ChunkResponse
from studio_api.services.stream_service import CACHE_FRAME, cache_headers

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/{uuid}/video")
async def get_video_metadata(uuid: str, services: Services):
    return await services.editor_service.get_video_metadata(uuid)


@router.delete("/{uuid}/video")
async def delete_video(uuid: str, services: Services):
    return await services.editor_service.delete_video(uuid)


@router.get("/{uuid}/video/file")
async def get_video_file(uuid: str, services: Services, range: str | None = Header(default=None)):
    await services.projects.require(uuid)
    path = services.stream_service.video_file(uuid)
    return ranged_file_response(path, range, "video/mp4")


@router.post("/{uuid}/video/file", response_model=ChunkResponse, response_model_exclude_none=True)
async def upload_video_chunk(uuid: str, params: ChunkForm, file: ChunkFile, services: Services):
    size = file.size if file.size is not None else len(await file.read())
    await file.seek(0)
    return await services.upload_service.handle_video_chunk(uuid, params, file.file, size)


@router.options("/{uuid}/video/file")
async def upload_video_options(uuid: str):
    return Response(status_code=200)


# =============================================================================
# Conversion
# =============================================================================


@router.post("/{uuid}/video/convert")
async def convert_video(uuid: str, services: Services, background_tasks: BackgroundTasks):
    if await services.upload_service.start_conversion(uuid):
        background_tasks.add_task(services.upload_service.convert_video, uuid)
        return {"status": "started"}
    return {"status": "already_processing"}


@router.get("/{uuid}/video/convert")
async def get_conversion_status(uuid: str, services: Services):
    return await services.upload_service.get_conversion_status(uuid)


@router.get("/{uuid}/video/convert/stream")
async def stream_conversion_status(uuid: str, request: Request, services: Services):
    """Server-sent events: one ``data:`` message once conversion is ready or failed."""
    await services.projects.require(uuid)
    interval = services.settings.conversion_poll_interval_seconds

    async def events() -> AsyncIterator[str]:
        while True:
            if await request.is_disconnected():
                return
            try:
                result = await services.upload_service.get_conversion_status(uuid)
            except Exception as e:
                logger.warning(f"[CONVERT] Status stream for {uuid} failed: {e}")
                yield f"data: {json.dumps({'error': str(e)})}\n\n"
                return
            if result["status"] in ("ready", "error"):
                yield f"data: {json.dumps(result)}\n\n"
                return
            await asyncio.sleep(interval)

    return StreamingResponse(
        events(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "Connection": "keep-alive"},
    )


@router.get("/{uuid}/video/audio")
async def get_original_audio(uuid: str, services: Services):
    await services.projects.require(uuid)
    return served_file_response(services.stream_service.original_audio(uuid))


# =============================================================================
# Thumbnails
# =============================================================================


@router.get("/{uuid}/video/thumbnails")
async def get_thumbnail_manifest(uuid: str, services: Services):
    await services.projects.require(uuid)
    return served_file_response(services.stream_service.thumb(uuid, MANIFEST_FILE, uuid, "manifest"))


@router.get("/{uuid}/video/thumbnails/{scale}/{file}")
async def get_thumbnail_tile(uuid: str, scale: str, file: str, services: Services):
    await services.projects.require(uuid)
    served = services.stream_service.thumb(uuid, f"{scale}/{file}", uuid, scale, file)
    return served_file_response(served)


@router.get("/{uuid}/video/thumbnails/{thumb_id}")
async def get_thumbnail(uuid: str, thumb_id: str, services: Services):
    """Master manifest, a legacy strip (``<scale>.webp``) or the frame at ``thumb_id`` seconds."""
    await services.projects.require(uuid)
    if thumb_id.endswith(".json") or thumb_id.endswith(".webp"):
        return served_file_response(services.stream_service.thumb(uuid, thumb_id, uuid, thumb_id))

    try:
        seconds = float(thumb_id)
    except ValueError:
        raise ValidationError(f"Invalid thumbnail time: {thumb_id}")
    if not math.isfinite(seconds) or seconds < 0:
        raise ValidationError(f"Invalid thumbnail time: {thumb_id}")

    path = await services.editor_service.get_frame(uuid, seconds)
    return FileResponse(
        path=str(path),
        media_type="image/webp",
        headers=cache_headers(CACHE_FRAME, uuid, "frame", thumb_id),
    )
