"""
Pytest fixtures for studio backend tests.

The media engine is replaced by ``RecordingMediaEngine``: it records every
command line and creates the output files instead of running ffmpeg, so the
suite runs without ffmpeg/ffprobe/rubberband installed.
"""

import tempfile
from pathlib import Path
from typing import Callable, Sequence

import pytest

from studio_api.config import Settings
from studio_api.exceptions import MediaEngineError
from studio_api.render.media_engine import MediaEngine
from studio_api.utils.media_info import MediaProbe


def pytest_configure(config):
    """Register custom markers for CI/CD test filtering."""
    config.addinivalue_line(
        "markers",
        "requires_ffmpeg: mark test as requiring ffmpeg on PATH"
    )


def make_probe(
    filename: str = "input.mp4",
    duration: float = 10.0,
    width: int | None = 1920,
    height: int | None = 1080,
    video_codec: str | None = "h264",
    has_audio: bool = True,
    title: str | None = None,
) -> MediaProbe:
    streams = []
    if video_codec is not None:
        streams.append({
            "codec_type": "video",
            "codec_name": video_codec,
            "width": width,
            "height": height,
            "r_frame_rate": "30/1",
        })
    if has_audio:
        streams.append({
            "codec_type": "audio",
            "codec_name": "aac",
            "sample_rate": "48000",
            "channel_layout": "stereo",
        })
    format_info = {"filename": filename, "duration": str(duration), "bit_rate": "192000", "size": "1000"}
    if title:
        format_info["tags"] = {"title": title}
    return MediaProbe.from_ffprobe({"format": format_info, "streams": streams}, filename)


class RecordingMediaEngine(MediaEngine):
    """MediaEngine that records commands and fakes their output files."""

    def __init__(self, settings: Settings, probe_result: MediaProbe | None = None) -> None:
        super().__init__(settings)
        self.commands: list[list[str]] = []
        self.probe_result = probe_result or make_probe()
        self.fail_when: Callable[[Sequence[str]], bool] = lambda cmd: False

    @staticmethod
    def _outputs(cmd: Sequence[str]) -> list[Path]:
        if Path(cmd[0]).name == "rubberband":
            return [Path(cmd[-1])]
        outputs = []
        for i, arg in enumerate(cmd[1:], start=1):
            if arg.startswith("/") and cmd[i - 1] != "-i":
                outputs.append(Path(arg))
        return outputs

    async def run(self, cmd: Sequence[str]) -> bytes:
        self.commands.append(list(cmd))
        if self.fail_when(cmd):
            raise MediaEngineError(Path(cmd[0]).name, 1, "simulated failure")
        for output in self._outputs(cmd):
            output.parent.mkdir(parents=True, exist_ok=True)
            output.write_bytes(b"fake media")
        return b""

    async def probe(self, path: Path) -> MediaProbe:
        self.commands.append(["ffprobe", str(path)])
        if self.fail_when(["ffprobe", str(path)]):
            raise MediaEngineError("ffprobe", 1, "simulated probe failure")
        return self.probe_result

    def commands_for(self, program: str) -> list[list[str]]:
        return [cmd for cmd in self.commands if Path(cmd[0]).name == program]


@pytest.fixture
def temp_output_dir():
    """Temporary directory for test outputs."""
    with tempfile.TemporaryDirectory(prefix="studio_test_") as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def settings(temp_output_dir: Path) -> Settings:
    return Settings(
        projects_dir=temp_output_dir / "projects",
        tmp_chunks_dir=temp_output_dir / "chunks",
        environment="development",
        max_upload_size_mb=1,
        conversion_poll_interval_seconds=0.01,
    )


@pytest.fixture
def engine(settings: Settings) -> RecordingMediaEngine:
    return RecordingMediaEngine(settings)


@pytest.fixture
def client(settings: Settings, engine: RecordingMediaEngine):
    """TestClient over an app wired to the recording engine (lifespan included)."""
    from fastapi.testclient import TestClient

    from studio_api.main import create_app

    with TestClient(create_app(settings, engine)) as test_client:
        yield test_client
