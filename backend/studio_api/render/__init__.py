from studio_api.render.export_pipeline import ExportPipeline
from studio_api.render.media_engine import MediaEngine
from studio_api.render.thumbnails import ThumbnailTileScheduler

__all__ = [
    "ExportPipeline",
    "MediaEngine",
    "ThumbnailTileScheduler",
]
