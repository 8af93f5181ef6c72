"""Tests for media engine command builders and filter serialization."""

import sys
from pathlib import Path

import pytest

from studio_api.config import Settings
from studio_api.exceptions import MediaEngineError
from studio_api.render.filters import Delay, Pan, VolumeEnvelope, VolumeSegment
from studio_api.render.media_engine import (
    MediaEngine,
    build_copy_video_command,
    build_frame_command,
    build_mix_command,
    build_mux_command,
    build_render_track_command,
    build_stretch_command,
    build_tile_command,
    build_wav_command,
    fmt_number,
    has_faststart,
    is_web_codec,
    serialize_filter_chain,
    serialize_pan,
    serialize_volume,
)


class TestFilterSerialization:
    """Typed filter stages to ffmpeg syntax."""

    def test_fmt_number(self):
        assert fmt_number(95) == "95"
        assert fmt_number(95.0) == "95"
        assert fmt_number(0.2) == "0.2"
        assert fmt_number(1 / 3) == "0.333333"

    def test_constant_volume(self):
        assert serialize_volume(VolumeEnvelope()) == "volume=0.5"

    def test_volume_segments(self):
        envelope = VolumeEnvelope(segments=(VolumeSegment(0, 1, 0.2), VolumeSegment(1, 2.5, 0.8)))
        assert serialize_volume(envelope) == (
            "volume=0.20000:eval=frame:enable='between(t,0.00000,1.00000)',"
            "volume=0.80000:eval=frame:enable='between(t,1.00000,2.50000)'"
        )

    def test_pan_attenuates_opposite_channel(self):
        assert serialize_pan(Pan(0.25)) == "pan=stereo|FL<0.75*c0|FR<c1"
        assert serialize_pan(Pan(-0.5)) == "pan=stereo|FL<c0|FR<0.5*c1"

    def test_chain_keeps_stage_order(self):
        chain = serialize_filter_chain([VolumeEnvelope(), Delay(1500), Pan(0.5)])
        assert chain == "volume=0.5,adelay=1500|1500,pan=stereo|FL<0.5*c0|FR<c1"

    def test_unknown_stage_is_rejected(self):
        with pytest.raises(TypeError):
            serialize_filter_chain(["volume=1"])


class TestCommandBuilders:
    """Argument lists handed to the subprocess layer."""

    def test_render_track_with_trim(self):
        cmd = build_render_track_command(
            "ffmpeg", Path("/p/a.mp3"), Path("/p/out0.wav"), [VolumeEnvelope()], trim=(2.5, 4)
        )
        assert cmd == [
            "ffmpeg", "-y", "-ss", "2.5", "-t", "4",
            "-i", "/p/a.mp3", "-filter:a", "volume=0.5", "/p/out0.wav",
        ]

    def test_render_track_without_trim(self):
        cmd = build_render_track_command("ffmpeg", Path("/p/a.mp3"), Path("/p/out0.wav"), [VolumeEnvelope()])
        assert "-ss" not in cmd

    def test_stretch(self):
        cmd = build_stretch_command("rubberband", Path("/p/in.wav"), Path("/p/out.wav"), 1.5, -2)
        assert cmd == ["rubberband", "--ignore-clipping", "-t", "1.5", "-p", "-2", "/p/in.wav", "/p/out.wav"]

    def test_mix_compensates_for_amix_attenuation(self):
        inputs = [Path("/p/outZ0.wav"), Path("/p/outZ1.wav"), Path("/p/outZ2.wav")]
        cmd = build_mix_command("ffmpeg", inputs, Path("/p/out.mp3"), 30)

        assert cmd.count("-i") == 3
        assert "amix=inputs=3:dropout_transition=30,volume=3[out]" in cmd
        assert cmd[cmd.index("-t") + 1] == "30"
        assert cmd[-1] == "/p/out.mp3"

    def test_mux_copies_both_streams(self):
        cmd = build_mux_command("ffmpeg", Path("/p/v.mp4"), Path("/p/out.mp3"), Path("/p/out.mp4"), 12.5)
        assert cmd[cmd.index("-vcodec") + 1] == "copy"
        assert cmd[cmd.index("-acodec") + 1] == "copy"
        assert cmd[-5:] == ["-map", "0:v", "-map", "1:a", "/p/out.mp4"]

    def test_copy_video_drops_audio(self):
        cmd = build_copy_video_command("ffmpeg", Path("/p/v.mp4"), Path("/p/out.mp4"))
        assert cmd == ["ffmpeg", "-y", "-i", "/p/v.mp4", "-c:v", "copy", "-an", "/p/out.mp4"]

    def test_tile(self):
        cmd = build_tile_command(
            "ffmpeg", Path("/p/v.mp4"), Path("/p/1x/tile_0.webp"),
            fps=0.2, start=0, duration=95, cols=10, rows=10, thumb_height=80, quality=80,
        )
        assert cmd[cmd.index("-vf") + 1] == "fps=0.2,scale=-1:80,tile=10x10"
        assert cmd[cmd.index("-ss") + 1] == "0"
        assert cmd[cmd.index("-t") + 1] == "95"

    def test_frame(self):
        cmd = build_frame_command("ffmpeg", Path("/p/v.mp4"), Path("/p/f.webp"), 12.5, 180)
        assert cmd[cmd.index("-ss") + 1] == "12.5"
        assert cmd[cmd.index("-vf") + 1] == "scale=-1:180"

    def test_wav_window(self):
        assert "-ss" not in build_wav_command("ffmpeg", Path("/a"), Path("/b"))
        cmd = build_wav_command("ffmpeg", Path("/a"), Path("/b"), start=1, duration=2)
        assert cmd[-5:] == ["-ss", "1", "-t", "2", "/b"]


class TestProbeHelpers:
    """Container checks used to choose the conversion path."""

    def test_web_codecs(self):
        assert is_web_codec("h264") is True
        assert is_web_codec("VP9") is True
        assert is_web_codec("hevc") is False
        assert is_web_codec(None) is False

    def test_faststart_detection(self, temp_output_dir):
        optimized = temp_output_dir / "fast.mp4"
        optimized.write_bytes(b"\x00\x00\x00\x20ftypisom" + b"moov" + b"\x00" * 64 + b"mdat")
        regular = temp_output_dir / "slow.mp4"
        regular.write_bytes(b"\x00\x00\x00\x20ftypisom" + b"mdat" + b"\x00" * 64 + b"moov")

        assert has_faststart(optimized) is True
        assert has_faststart(regular) is False


class TestMediaEngineRun:
    """Subprocess execution errors."""

    @pytest.mark.asyncio
    async def test_non_zero_exit_raises(self, temp_output_dir):
        engine = MediaEngine(Settings(projects_dir=temp_output_dir))
        with pytest.raises(MediaEngineError) as exc_info:
            await engine.run([sys.executable, "-c", "import sys; sys.stderr.write('bad input'); sys.exit(3)"])

        assert exc_info.value.returncode == 3
        assert "bad input" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_missing_binary_raises(self, temp_output_dir):
        engine = MediaEngine(Settings(projects_dir=temp_output_dir))
        with pytest.raises(MediaEngineError):
            await engine.run([str(temp_output_dir / "no-such-binary")])

    @pytest.mark.asyncio
    async def test_returns_stdout(self, temp_output_dir):
        engine = MediaEngine(Settings(projects_dir=temp_output_dir))
        stdout = await engine.run([sys.executable, "-c", "print('ok')"])
        assert stdout.strip() == b"ok"
