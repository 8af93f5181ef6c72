"""Tests for thumbnail tile planning and generation."""

import json

import pytest

from studio_api.config import ThumbScale
from studio_api.render.thumbnails import (
    ThumbnailTileScheduler,
    count_thumbs,
    plan_tiles,
    thumb_width_for,
)
from studio_api.services.file_store import LocalFileStore


class TestTilePlanning:
    """Tile counts and time windows."""

    def test_ninety_five_seconds_at_lowest_fps(self):
        plan = plan_tiles(95, 0.2, 10, 10)

        assert plan.total_thumbs == 19
        assert len(plan.tiles) == 1
        assert plan.tiles[0].start == 0
        assert plan.tiles[0].duration == 95
        assert plan.interval == 5

    def test_partial_last_tile(self):
        plan = plan_tiles(150, 1, 10, 10)

        assert plan.total_thumbs == 150
        assert [(t.index, t.start, t.duration) for t in plan.tiles] == [(0, 0, 100), (1, 100, 50)]
        assert plan.tiles[1].filename == "tile_1.webp"

    def test_count_thumbs_rounds_up(self):
        assert count_thumbs(10.1, 1) == 11
        assert count_thumbs(95, 0.2) == 19

    def test_thumb_width(self):
        assert thumb_width_for(80, 1920, 1080) == 142
        assert thumb_width_for(80, 1080, 1920) == 45


@pytest.fixture
def scheduler(engine, settings):
    return ThumbnailTileScheduler(engine, LocalFileStore(), settings)


class TestThumbnailTileScheduler:
    """Tile generation against the recording engine."""

    @pytest.mark.asyncio
    async def test_generates_tiles_and_manifests(self, scheduler, engine, temp_output_dir):
        video = temp_output_dir / "video.mp4"
        output_dir = temp_output_dir / "thumbs"

        result = await scheduler.generate(video, output_dir, 95, 1920, 1080)

        # 2 + 1 + 1 + 1 tiles across the four default scales
        assert len(engine.commands) == 5
        assert result.failures == []
        master = json.loads((output_dir / "manifest.json").read_text())
        assert master["mode"] == "tiles"
        assert master["thumbWidth"] == 142
        assert master["thumbHeight"] == 80
        assert set(master["scales"]) == {"0.01", "0.02", "0.05", "0.1"}

        coarse = json.loads((output_dir / "0.1" / "manifest.json").read_text())
        assert coarse["totalThumbs"] == 19
        assert coarse["tiles"] == ["tile_0.webp"]
        assert coarse["interval"] == 5
        assert (output_dir / "0.1" / "tile_0.webp").exists()

    @pytest.mark.asyncio
    async def test_failed_tile_is_skipped_but_listed(self, scheduler, engine, temp_output_dir):
        engine.fail_when = lambda cmd: cmd[-1].endswith("0.01/tile_1.webp")
        output_dir = temp_output_dir / "thumbs"

        result = await scheduler.generate(temp_output_dir / "video.mp4", output_dir, 95, 1920, 1080)

        assert result.failures == ["0.01/tile_1.webp"]
        fine = json.loads((output_dir / "0.01" / "manifest.json").read_text())
        assert fine["tiles"] == ["tile_0.webp", "tile_1.webp"]
        assert (output_dir / "manifest.json").exists()

    @pytest.mark.asyncio
    async def test_non_positive_duration_generates_nothing(self, scheduler, engine, temp_output_dir):
        result = await scheduler.generate(temp_output_dir / "video.mp4", temp_output_dir / "thumbs", 0)

        assert result.manifest is None
        assert engine.commands == []

    @pytest.mark.asyncio
    async def test_legacy_strips(self, engine, settings, temp_output_dir):
        settings.thumb_tiles_enabled = False
        settings.thumb_scales = [ThumbScale(fps=1, scale="0.02")]
        scheduler = ThumbnailTileScheduler(engine, LocalFileStore(), settings)

        result = await scheduler.generate(temp_output_dir / "video.mp4", temp_output_dir / "thumbs", 12)

        assert [p.name for p in result.files] == ["0.02.webp"]
        assert "tile=12x1" in engine.commands[0][engine.commands[0].index("-vf") + 1]

    @pytest.mark.asyncio
    async def test_failed_scale_manifest_is_left_out(self, engine, settings, temp_output_dir):
        class FailingScaleStore(LocalFileStore):
            def write_json(self, path, data):
                if path.parent.name == "0.05":
                    raise OSError("disk full")
                super().write_json(path, data)

        scheduler = ThumbnailTileScheduler(engine, FailingScaleStore(), settings)
        output_dir = temp_output_dir / "thumbs"

        result = await scheduler.generate(temp_output_dir / "video.mp4", output_dir, 95, 1920, 1080)

        assert "0.05" in result.failures
        master = json.loads((output_dir / "manifest.json").read_text())
        assert set(master["scales"]) == {"0.01", "0.02", "0.1"}
