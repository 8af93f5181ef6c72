"""Typed audio filter stages for per-track export rendering.

The export pipeline builds an ordered list of these stages; only the media
engine gateway turns them into ffmpeg filter syntax.
"""

from dataclasses import dataclass, field
from typing import Union

DEFAULT_VOLUME = 0.5


@dataclass(frozen=True)
class VolumeSegment:
    """Constant gain over ``[start, end)`` seconds of the rendered track."""

    start: float
    end: float
    value: float


@dataclass(frozen=True)
class VolumeEnvelope:
    segments: tuple[VolumeSegment, ...] = field(default_factory=tuple)
    default: float = DEFAULT_VOLUME

    @property
    def is_constant(self) -> bool:
        return not self.segments


@dataclass(frozen=True)
class Delay:
    """Shift both channels by ``milliseconds``."""

    milliseconds: int


@dataclass(frozen=True)
class Pan:
    """Stereo balance in [-1, 1]; the opposite channel is scaled by ``1 - |value|``."""

    value: float

    @property
    def gain(self) -> float:
        return 1 - abs(self.value)


FilterStage = Union[VolumeEnvelope, Delay, Pan]
