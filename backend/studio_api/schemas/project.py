from pydantic import BaseModel, ConfigDict, Field


class ProjectCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)


class Project(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    uuid: str
    title: str
    is_video_loaded: bool = Field(default=False, alias="isVideoLoaded")


class ProjectCreatedResponse(BaseModel):
    success: bool = True
    uuid: str
    title: str
