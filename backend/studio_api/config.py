import json
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ThumbScale(BaseModel):
    """One thumbnail resolution: sampling rate plus the directory label it is stored under."""

    fps: float
    scale: str


DEFAULT_THUMB_SCALES: list[ThumbScale] = [
    ThumbScale(fps=2, scale="0.01"),
    ThumbScale(fps=1, scale="0.02"),
    ThumbScale(fps=0.4, scale="0.05"),
    ThumbScale(fps=0.2, scale="0.1"),
]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Application
    app_name: str = "Studio API"
    app_version: str = "0.1.0"
    environment: Literal["development", "staging", "production"] = "development"
    debug: bool = True
    log_level: str = "INFO"

    # Storage
    projects_dir: Path = Path("/tmp/studio-storage/projects")
    tmp_chunks_dir: Path = Path("/tmp/studio-storage/chunks")

    # CORS - stored as string, parsed via computed property
    cors_origins_raw: str = "http://localhost:5173,http://localhost:3000"

    @computed_field
    @property
    def cors_origins(self) -> list[str]:
        """Parse CORS origins from pipe/comma-separated string or JSON array."""
        v = self.cors_origins_raw
        # Try JSON first
        if v.startswith("["):
            try:
                return json.loads(v)
            except json.JSONDecodeError:
                pass
        if "|" in v:
            return [origin.strip() for origin in v.split("|") if origin.strip()]
        return [origin.strip() for origin in v.split(",") if origin.strip()]

    # File Upload (per chunk)
    max_upload_size_mb: int = 500

    # Media engine binaries
    ffmpeg_path: str = "ffmpeg"
    ffprobe_path: str = "ffprobe"
    rubberband_path: str = "rubberband"

    # Thumbnails
    thumb_height: int = 80
    thumb_tiles_enabled: bool = True
    thumb_tile_cols: int = 10
    thumb_tile_rows: int = 10
    thumb_scales: list[ThumbScale] = DEFAULT_THUMB_SCALES
    webp_quality: int = 80
    frame_thumb_height: int = 180

    # Renditions
    small_video_height: int = 155

    # Job tracking
    operation_ttl_seconds: float = 300.0
    upload_admission_ttl_seconds: float = 60.0
    conversion_poll_interval_seconds: float = 1.0

    @property
    def max_upload_size_bytes(self) -> int:
        return self.max_upload_size_mb * 1024 * 1024


@lru_cache
def get_settings() -> Settings:
    return Settings()
