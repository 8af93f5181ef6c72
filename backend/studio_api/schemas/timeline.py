from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class VolumeCurveData(BaseModel):
    times: list[float]
    values: list[float]

    @model_validator(mode="after")
    def check_lengths(self) -> "VolumeCurveData":
        if len(self.times) != len(self.values):
            raise ValueError(
                f"times and values must have the same length "
                f"(got {len(self.times)} and {len(self.values)})"
            )
        if not self.times:
            raise ValueError("volume curve needs at least one point")
        return self


class VolumeCurve(BaseModel):
    """One volume automation curve; points are (time in seconds, gain)."""

    data: VolumeCurveData


class TrackEntry(BaseModel):
    """Timeline entry for one audio track, as sent by the editor (camelCase on the wire)."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id_track: str = Field(..., alias="idTrack")
    name: str | None = None
    duration: float | None = None
    start_time: float = Field(default=0.0, alias="startTime")
    stretch_factor: float = Field(default=1.0, gt=0, alias="stretchFactor")
    pitch: float = 0.0
    pan_value: float = Field(default=0.0, ge=-1.0, le=1.0, alias="panValue")
    is_cut: bool = Field(default=False, alias="isCut")
    start_time_buffer: float = Field(default=0.0, alias="startTimeBuffer")
    duration_time_buffer: float = Field(default=0.0, alias="durationTimeBuffer")
    duration_time_cut: float = Field(default=0.0, alias="durationTimeCut")
    volume_values: list[VolumeCurve] = Field(default_factory=list, alias="volumeValues")

    @field_validator("id_track", mode="before")
    @classmethod
    def coerce_id(cls, v: Any) -> str:
        # The editor sends -1 (number) for the original audio and strings for library files
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            return str(int(v))
        return v

    @field_validator(
        "start_time", "pitch", "start_time_buffer", "duration_time_buffer", "duration_time_cut",
        mode="before",
    )
    @classmethod
    def null_as_zero(cls, v: Any) -> Any:
        return 0.0 if v is None else v


class ExportRequest(BaseModel):
    tracks: list[TrackEntry] | None = None
    duration: float | None = Field(default=None, gt=0)


class ExportResponse(BaseModel):
    res: str


class StretchRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    audio_id: str | None = Field(default=None, alias="audioId")
    ratio: float | None = None
    pitch_value: float = Field(default=0.0, alias="pitchValue")
    start_time: float = Field(default=0.0, ge=0, alias="startTime")
    duration: float = Field(default=0.0, ge=0)

    @field_validator("audio_id", mode="before")
    @classmethod
    def coerce_id(cls, v: Any) -> Any:
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            return str(int(v))
        return v
