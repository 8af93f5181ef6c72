"""Tests for byte-range selection and file streaming."""

import pytest

from studio_api.services.stream_service import (
    RangeNotSatisfiable,
    cache_headers,
    iter_file_range,
    parse_byte_range,
    select_byte_range,
)


class TestByteRanges:
    """200 / 206 / 416 selection on a 1000-byte file."""

    def test_no_header_is_full_response(self):
        selected = select_byte_range(None, 1000)

        assert selected.status_code == 200
        assert selected.headers["Accept-Ranges"] == "bytes"
        assert selected.headers["Content-Length"] == "1000"
        assert selected.length == 1000

    def test_open_ended_range(self):
        selected = select_byte_range("bytes=0-", 1000)

        assert selected.status_code == 206
        assert selected.headers["Content-Range"] == "bytes 0-999/1000"
        assert selected.headers["Content-Length"] == "1000"

    def test_bounded_range(self):
        selected = select_byte_range("bytes=100-199", 1000)

        assert (selected.start, selected.end) == (100, 199)
        assert selected.headers["Content-Range"] == "bytes 100-199/1000"
        assert selected.headers["Content-Length"] == "100"

    def test_range_past_end_is_unsatisfiable(self):
        selected = select_byte_range("bytes=1000-1001", 1000)

        assert selected.status_code == 416
        assert selected.headers == {"Content-Range": "bytes */1000"}

    @pytest.mark.parametrize("header", ["bytes=0-1000", "bytes=500-100", "items=0-1", "bytes=-500", "bytes=a-b", "bytes=0-1,5-6"])
    def test_rejected_ranges(self, header):
        with pytest.raises(RangeNotSatisfiable):
            parse_byte_range(header, 1000)

    def test_iter_file_range(self, temp_output_dir):
        path = temp_output_dir / "data.bin"
        path.write_bytes(bytes(range(256)) * 4)

        body = b"".join(iter_file_range(path, 10, 609, chunk_size=64))

        assert body == path.read_bytes()[10:610]

    def test_cache_headers(self):
        assert cache_headers("public, max-age=3600") == {"Cache-Control": "public, max-age=3600"}
        assert cache_headers("no-cache", "p1", "a.mp3")["ETag"] == '"p1-a.mp3"'
