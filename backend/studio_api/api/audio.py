"""Audio library endpoints: upload, download, delete and time-stretch."""

import logging

from fastapi import APIRouter

from studio_api.api.deps import ChunkFile, ChunkForm, Services
from studio_api.api.streaming import served_file_response
from studio_api.schemas.timeline import StretchRequest
from studio_api.schemas.upload import ChunkResponse

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/{uuid}/audio")
async def get_audio_list(uuid: str, services: Services):
    return await services.editor_service.get_audio_list(uuid)


@router.post("/{uuid}/audio", response_model=ChunkResponse, response_model_exclude_none=True)
async def upload_audio_chunk(uuid: str, params: ChunkForm, file: ChunkFile, services: Services):
    size = file.size if file.size is not None else len(await file.read())
    await file.seek(0)
    return await services.upload_service.handle_audio_chunk(uuid, params, file.file, size)


@router.get("/{uuid}/audio/{audio_id}")
async def get_library_audio(uuid: str, audio_id: str, services: Services):
    await services.projects.require(uuid)
    return served_file_response(services.stream_service.library_audio(uuid, audio_id))


@router.delete("/{uuid}/audio/{audio_id}")
async def delete_audio(uuid: str, audio_id: str, services: Services):
    return await services.upload_service.delete_audio(uuid, audio_id)


@router.get("/{uuid}/audio/{audio_id}/file")
async def get_audio_file(uuid: str, audio_id: str, services: Services):
    await services.editor_service.get_audio_file(uuid, audio_id)
    return served_file_response(services.stream_service.library_audio(uuid, audio_id))


@router.post("/{uuid}/audio/{audio_id}/stretch")
async def stretch_audio(uuid: str, audio_id: str, data: StretchRequest, services: Services):
    return await services.editor_service.stretch_audio(uuid, audio_id, data)


@router.get("/{uuid}/audio/{audio_id}/stretch")
async def get_stretch_status(uuid: str, audio_id: str, services: Services):
    return await services.editor_service.get_stretch_status(uuid, audio_id)
