from typing import Annotated

from fastapi import Depends, File, Form, Request, UploadFile

from studio_api.schemas.upload import ChunkParams
from studio_api.services.container import StudioServices


def get_services(request: Request) -> StudioServices:
    return request.app.state.services


Services = Annotated[StudioServices, Depends(get_services)]


def chunk_params(
    flow_chunk_number: Annotated[int, Form(alias="flowChunkNumber")],
    flow_chunk_size: Annotated[int, Form(alias="flowChunkSize")],
    flow_total_size: Annotated[int, Form(alias="flowTotalSize")],
    flow_identifier: Annotated[str, Form(alias="flowIdentifier")],
    flow_filename: Annotated[str, Form(alias="flowFilename")],
) -> ChunkParams:
    return ChunkParams(
        chunk_number=flow_chunk_number,
        chunk_size=flow_chunk_size,
        total_size=flow_total_size,
        identifier=flow_identifier,
        filename=flow_filename,
    )


ChunkForm = Annotated[ChunkParams, Depends(chunk_params)]
ChunkFile = Annotated[UploadFile, File()]
