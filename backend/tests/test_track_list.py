"""Tests for the per-project track list document."""

import asyncio

import pytest

from studio_api.services.file_store import LocalFileStore
from studio_api.services.track_list import TrackListStore, empty_track_list


@pytest.fixture
def track_lists():
    return TrackListStore(LocalFileStore())


class TestTrackList:
    """CRUD on trackList.json."""

    @pytest.mark.asyncio
    async def test_missing_document_reads_as_empty(self, temp_output_dir, track_lists):
        manager = track_lists.for_project(temp_output_dir)
        assert await manager.get_document() == empty_track_list()

    @pytest.mark.asyncio
    async def test_add_is_an_upsert(self, temp_output_dir, track_lists):
        manager = track_lists.for_project(temp_output_dir)
        await manager.add_track("a.mp3", {"id": "a.mp3", "duration": 1000})
        await manager.add_track("a.mp3", {"id": "a.mp3", "duration": 2000})

        tracks = await manager.get_tracks()
        assert tracks == {"a.mp3": {"id": "a.mp3", "duration": 2000}}

    @pytest.mark.asyncio
    async def test_remove_absent_track_returns_false(self, temp_output_dir, track_lists):
        manager = track_lists.for_project(temp_output_dir)
        await manager.add_track("a.mp3", {"id": "a.mp3"})

        assert await manager.remove_track("missing.mp3") is False
        assert await manager.remove_track("a.mp3") is True
        assert await manager.get_tracks() == {}

    @pytest.mark.asyncio
    async def test_concurrent_adds_are_not_lost(self, temp_output_dir, track_lists):
        await asyncio.gather(
            *(
                track_lists.for_project(temp_output_dir).add_track(f"track-{i}.mp3", {"id": i})
                for i in range(20)
            )
        )

        tracks = await track_lists.for_project(temp_output_dir).get_tracks()
        assert len(tracks) == 20

    @pytest.mark.asyncio
    async def test_reset_keeps_filter_block(self, temp_output_dir, track_lists):
        manager = track_lists.for_project(temp_output_dir)
        await manager.add_track("a.mp3", {"id": "a.mp3"})
        await manager.reset()

        document = await manager.get_document()
        assert document["tracks"] == {}
        assert document["filter"]["sort"] == {"duration": "desc", "name": "desc"}
