"""Tests for chunk storage and reassembly."""

import io

import pytest

from studio_api.exceptions import ChunkMissingError, InvalidChunkError
from studio_api.services.chunk_store import ChunkStore, sanitize_identifier


class TestSanitizeIdentifier:
    """Upload identifiers become file names."""

    def test_keeps_safe_characters(self):
        assert sanitize_identifier("1234-my_video-mp4") == "1234-my_video-mp4"

    def test_strips_path_characters(self):
        assert sanitize_identifier("../../etc/passwd") == "etcpasswd"

    def test_rejects_empty_result(self):
        with pytest.raises(InvalidChunkError):
            sanitize_identifier("../..")


class TestChunkStore:
    """Chunk persistence and ordered assembly."""

    def test_chunk_path_layout(self, temp_output_dir):
        store = ChunkStore(temp_output_dir / "chunks")
        assert store.chunk_path(3, "abc").name == "flow-abc.3"

    def test_save_chunk_overwrites_redelivery(self, temp_output_dir):
        store = ChunkStore(temp_output_dir / "chunks")
        store.save_chunk(b"first", 1, "abc")
        store.save_chunk(b"second", 1, "abc")

        assert store.chunk_path(1, "abc").read_bytes() == b"second"
        assert not list((temp_output_dir / "chunks").glob("*.part"))

    def test_overlapping_redelivery_of_same_chunk(self, temp_output_dir):
        store = ChunkStore(temp_output_dir / "chunks")

        class RetryDuringWrite(io.BytesIO):
            """File body whose first read lands a second delivery of the same chunk."""

            retried = False

            def read(self, *args):
                if not self.retried:
                    self.retried = True
                    store.save_chunk(b"retry", 1, "abc")
                return super().read(*args)

        store.save_chunk(RetryDuringWrite(b"first"), 1, "abc")

        assert store.chunk_path(1, "abc").read_bytes() == b"first"
        assert not list((temp_output_dir / "chunks").glob("*.part"))

    def test_save_chunk_rejects_chunk_zero(self, temp_output_dir):
        store = ChunkStore(temp_output_dir / "chunks")
        with pytest.raises(InvalidChunkError):
            store.save_chunk(b"data", 0, "abc")

    def test_all_chunks_exist(self, temp_output_dir):
        store = ChunkStore(temp_output_dir / "chunks")
        store.save_chunk(b"a", 1, "abc")
        store.save_chunk(b"c", 3, "abc")
        assert store.all_chunks_exist(3, "abc") is False

        store.save_chunk(b"b", 2, "abc")
        assert store.all_chunks_exist(3, "abc") is True
        assert store.all_chunks_exist(0, "abc") is False

    def test_extra_chunk_does_not_affect_completeness(self, temp_output_dir):
        store = ChunkStore(temp_output_dir / "chunks")
        for n in (1, 2, 4):
            store.save_chunk(b"x", n, "abc")
        assert store.all_chunks_exist(2, "abc") is True

    @pytest.mark.asyncio
    async def test_assembles_in_chunk_order_regardless_of_arrival(self, temp_output_dir):
        store = ChunkStore(temp_output_dir / "chunks")
        store.save_chunk(b"CCC", 3, "abc")
        store.save_chunk(b"AAA", 1, "abc")
        store.save_chunk(b"BBB", 2, "abc")

        output = await store.assemble_chunks("abc", 3, temp_output_dir / "out" / "video.mp4")

        assert output.read_bytes() == b"AAABBBCCC"

    @pytest.mark.asyncio
    async def test_missing_chunk_raises_and_removes_partial_output(self, temp_output_dir):
        store = ChunkStore(temp_output_dir / "chunks")
        store.save_chunk(b"AAA", 1, "abc")
        store.save_chunk(b"CCC", 3, "abc")
        destination = temp_output_dir / "video.mp4"

        with pytest.raises(ChunkMissingError):
            await store.assemble_chunks("abc", 3, destination)

        assert not destination.exists()

    def test_clean_chunks_stops_at_first_gap(self, temp_output_dir):
        store = ChunkStore(temp_output_dir / "chunks")
        for n in (1, 2, 4):
            store.save_chunk(b"x", n, "abc")

        removed = store.clean_chunks("abc")

        assert removed == 2
        assert not store.chunk_exists(1, "abc")
        assert store.chunk_exists(4, "abc")
