from typing import Any

from fastapi import APIRouter, Body

from studio_api.api.deps import Services

router = APIRouter()


@router.get("/{uuid}/timeline")
async def get_timeline(uuid: str, services: Services):
    return await services.editor_service.get_audio_list(uuid)


@router.post("/{uuid}/timeline/{audio_id}")
async def add_timeline_audio(
    uuid: str, audio_id: str, services: Services, meta_info: dict[str, Any] | None = Body(default=None)
):
    return await services.editor_service.add_audio_to_timeline(uuid, audio_id, meta_info or {})


@router.delete("/{uuid}/timeline/{audio_id}")
async def remove_timeline_audio(uuid: str, audio_id: str, services: Services):
    return await services.editor_service.remove_audio_from_timeline(uuid, audio_id)
