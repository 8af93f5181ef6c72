"""Scrub thumbnail generation.

Tiles mode (default): for each configured scale, the video is sampled at
the scale's fps and packed into ``cols x rows`` grid images
(``<scale>/tile_<i>.webp``). Tiles of one scale are generated concurrently;
a failed tile is logged and skipped. Each scale gets a ``manifest.json`` once
all of its tiles have settled; a scale whose directory or manifest cannot be
written is logged and left out. The master ``manifest.json`` describing the
remaining scales is written last.

Legacy mode: one horizontal strip per scale (``<scale>.webp``).
"""

import asyncio
import logging
import math
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Sequence

from studio_api.config import Settings, ThumbScale
from studio_api.constants.project_layout import MANIFEST_FILE
from studio_api.render.media_engine import MediaEngine
from studio_api.services.file_store import LocalFileStore

logger = logging.getLogger(__name__)

THUMB_EXT = ".webp"


@dataclass(frozen=True)
class TileSpec:
    index: int
    start: float
    duration: float

    @property
    def filename(self) -> str:
        return f"tile_{self.index}{THUMB_EXT}"


@dataclass
class TilePlan:
    fps: float
    duration: float
    total_thumbs: int
    cols: int
    rows: int
    tiles: list[TileSpec] = field(default_factory=list)

    @property
    def thumbs_per_tile(self) -> int:
        return self.cols * self.rows

    @property
    def interval(self) -> float:
        return 1 / self.fps


def count_thumbs(duration: float, fps: float) -> int:
    # Rounding first keeps 95 * 0.2 (18.999999...) from becoming 20 thumbs
    return math.ceil(round(duration * fps, 6))


def plan_tiles(duration: float, fps: float, cols: int, rows: int) -> TilePlan:
    """Split ``duration`` seconds into tiles of ``cols * rows`` thumbs at ``fps``."""
    total_thumbs = count_thumbs(duration, fps)
    thumbs_per_tile = cols * rows
    tile_count = math.ceil(total_thumbs / thumbs_per_tile)
    tile_duration = thumbs_per_tile / fps

    tiles = []
    for i in range(tile_count):
        start = i * tile_duration
        tiles.append(TileSpec(index=i, start=start, duration=min(tile_duration, duration - start)))
    return TilePlan(fps=fps, duration=duration, total_thumbs=total_thumbs, cols=cols, rows=rows, tiles=tiles)


def thumb_width_for(thumb_height: int, width: int, height: int) -> int:
    return round(thumb_height * width / height)


@dataclass
class ThumbnailResult:
    manifest: dict[str, Any] | None = None
    files: list[Path] = field(default_factory=list)
    failures: list[str] = field(default_factory=list)


class ThumbnailTileScheduler:
    """Generates thumbnail tiles (or legacy strips) plus their manifests."""

    def __init__(self, engine: MediaEngine, store: LocalFileStore, settings: Settings) -> None:
        self.engine = engine
        self.store = store
        self.cols = settings.thumb_tile_cols
        self.rows = settings.thumb_tile_rows
        self.thumb_height = settings.thumb_height
        self.tiles_enabled = settings.thumb_tiles_enabled
        self.scales: Sequence[ThumbScale] = settings.thumb_scales

    async def generate(
        self,
        video: Path,
        output_dir: Path,
        duration: float,
        width: int = 1920,
        height: int = 1080,
    ) -> ThumbnailResult:
        if not duration or duration <= 0:
            logger.warning(f"[THUMBS] Invalid duration for thumbnail generation: {duration}")
            return ThumbnailResult()

        await asyncio.to_thread(self.store.ensure_dir, output_dir)
        if self.tiles_enabled:
            logger.info(f"[THUMBS] Generating tiles ({width}x{height}, {duration}s)")
            return await self.generate_tiles(video, output_dir, duration, width, height)

        logger.info(f"[THUMBS] Generating legacy strips ({duration}s)")
        return await self.generate_strips(video, output_dir, duration)

    async def generate_tiles(
        self, video: Path, output_dir: Path, duration: float, width: int, height: int
    ) -> ThumbnailResult:
        result = ThumbnailResult()
        scales: dict[str, Any] = {}
        thumb_width = thumb_width_for(self.thumb_height, width, height)

        # Scales one after another so a long video does not start every tile at once
        for scale in self.scales:
            try:
                manifest = await self._generate_scale(
                    video, output_dir / scale.scale, scale, duration, thumb_width, result
                )
            except OSError as e:
                logger.error(f"[THUMBS] Scale {scale.scale} failed: {e}")
                result.failures.append(scale.scale)
                continue
            scales[scale.scale] = manifest

        master = {
            "mode": "tiles",
            "thumbWidth": thumb_width,
            "thumbHeight": self.thumb_height,
            "scales": scales,
        }
        await asyncio.to_thread(self.store.write_json, output_dir / MANIFEST_FILE, master)
        result.manifest = master
        if result.failures:
            logger.warning(f"[THUMBS] {len(result.failures)} tiles failed")
        return result

    async def _generate_scale(
        self,
        video: Path,
        scale_dir: Path,
        scale: ThumbScale,
        duration: float,
        thumb_width: int,
        result: ThumbnailResult,
    ) -> dict[str, Any]:
        plan = plan_tiles(duration, scale.fps, self.cols, self.rows)
        await asyncio.to_thread(self.store.ensure_dir, scale_dir)

        outcomes = await asyncio.gather(
            *(
                self.engine.generate_tile(
                    video,
                    scale_dir / tile.filename,
                    fps=scale.fps,
                    start=tile.start,
                    duration=tile.duration,
                    cols=self.cols,
                    rows=self.rows,
                    thumb_height=self.thumb_height,
                )
                for tile in plan.tiles
            ),
            return_exceptions=True,
        )
        for tile, outcome in zip(plan.tiles, outcomes):
            if isinstance(outcome, BaseException):
                logger.warning(f"[THUMBS] Tile {scale.scale}/{tile.filename} failed: {outcome}")
                result.failures.append(f"{scale.scale}/{tile.filename}")
            else:
                result.files.append(outcome)

        manifest = {
            "scale": scale.scale,
            "fps": scale.fps,
            "interval": plan.interval,
            "duration": duration,
            "totalThumbs": plan.total_thumbs,
            "thumbWidth": thumb_width,
            "thumbHeight": self.thumb_height,
            "cols": self.cols,
            "rows": self.rows,
            "thumbsPerTile": plan.thumbs_per_tile,
            "tiles": [tile.filename for tile in plan.tiles],
        }
        await asyncio.to_thread(self.store.write_json, scale_dir / MANIFEST_FILE, manifest)
        logger.info(f"[THUMBS] Scale {scale.scale}: {len(plan.tiles)} tiles, {thumb_width}x{self.thumb_height}")
        return manifest

    async def generate_strips(self, video: Path, output_dir: Path, duration: float) -> ThumbnailResult:
        result = ThumbnailResult()
        outputs = [output_dir / f"{scale.scale}{THUMB_EXT}" for scale in self.scales]
        outcomes = await asyncio.gather(
            *(
                self.engine.generate_strip(
                    video,
                    output,
                    fps=scale.fps,
                    count=count_thumbs(duration, scale.fps),
                    thumb_height=self.thumb_height,
                )
                for scale, output in zip(self.scales, outputs)
            ),
            return_exceptions=True,
        )
        for output, outcome in zip(outputs, outcomes):
            if isinstance(outcome, BaseException):
                logger.warning(f"[THUMBS] Strip {output.name} failed: {outcome}")
                result.failures.append(output.name)
            else:
                result.files.append(outcome)
        return result
