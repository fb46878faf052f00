"""SDK-neutral pipeline interface and the data it exchanges with the bridge.

:class:`StreamConfig` mirrors the requests made to the SDK configuration
object so the bridge can inspect, snapshot and restore it; the SDK's own
config cannot be read back.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Sequence, Union

from .catalog import StreamId


@dataclass(frozen=True)
class StreamRequest:
    """One ``enable_stream`` call; ``None`` fields are left to the SDK."""

    stream: StreamId
    width: int | None = None
    height: int | None = None
    format: str | None = None
    fps: int | None = None


class StreamConfig:
    """Ordered set of stream requests, keyed by stream identity."""

    def __init__(self) -> None:
        self._requests: dict[StreamId, StreamRequest] = {}

    def enable_stream(
        self,
        stream: StreamId,
        width: int | None = None,
        height: int | None = None,
        format: str | None = None,
        fps: int | None = None,
    ) -> None:
        """Request ``stream``, replacing any earlier request for it."""
        self._requests[stream] = StreamRequest(stream, width, height, format, fps)

    def disable_stream(self, stream: StreamId) -> None:
        self._requests.pop(stream, None)

    def has(self, stream: StreamId) -> bool:
        return stream in self._requests

    def get(self, stream: StreamId) -> StreamRequest | None:
        return self._requests.get(stream)

    def requests(self) -> list[StreamRequest]:
        return list(self._requests.values())

    def snapshot(self) -> dict[StreamId, StreamRequest]:
        return dict(self._requests)

    def restore(self, snapshot: dict[StreamId, StreamRequest]) -> None:
        self._requests = dict(snapshot)

    def __len__(self) -> int:
        return len(self._requests)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, StreamConfig):
            return NotImplemented
        return self._requests == other._requests

    def __repr__(self) -> str:
        return f"StreamConfig({self.requests()!r})"


@dataclass(frozen=True)
class Intrinsics:
    """Pinhole intrinsics of a video profile."""

    width: int
    height: int
    fx: float
    fy: float
    ppx: float
    ppy: float
    coeffs: tuple[float, ...] = (0.0, 0.0, 0.0, 0.0, 0.0)
    model: str = ""


@dataclass(frozen=True)
class MotionIntrinsics:
    """IMU intrinsics: 3x4 scale/bias matrix and variances."""

    data: tuple[tuple[float, ...], ...]
    noise_variances: tuple[float, float, float]
    bias_variances: tuple[float, float, float]


@dataclass(frozen=True)
class StreamProfile:
    """A resolvable ``(kind, index, width, height, format, fps)`` tuple."""

    stream: StreamId
    format: str
    fps: int
    width: int = 0
    height: int = 0
    name: str = ""
    unique_id: int = 0
    intrinsics: Intrinsics | None = None
    motion_intrinsics: MotionIntrinsics | None = None

    @property
    def is_video(self) -> bool:
        return self.width > 0 and self.height > 0


@dataclass(frozen=True)
class DeviceInfo:
    name: str
    serial_number: str
    firmware_version: str
    product_id: str
    product_line: str = ""


@dataclass
class VideoFrame:
    """Pixels of one video frame; ``data`` is the SDK buffer, not a copy."""

    stream: StreamId
    width: int
    height: int
    data: object
    stride: int = 0
    timestamp: float = 0.0


@dataclass
class MotionFrame:
    stream: StreamId
    data: tuple[float, float, float]
    timestamp: float = 0.0


@dataclass
class PoseFrame:
    stream: StreamId
    translation: tuple[float, float, float]
    rotation: tuple[float, float, float, float]  # x, y, z, w
    velocity: tuple[float, float, float] = (0.0, 0.0, 0.0)
    angular_velocity: tuple[float, float, float] = (0.0, 0.0, 0.0)
    tracker_confidence: int = 0
    timestamp: float = 0.0


Frame = Union[VideoFrame, MotionFrame, PoseFrame]
FramesetCallback = Callable[[Sequence[Frame]], None]


class PipelineBackend(ABC):
    """One device and its streaming pipeline."""

    @abstractmethod
    def device_info(self) -> DeviceInfo:
        """Return identification strings of the opened device."""

    @abstractmethod
    def supported_profiles(self) -> dict[str, list[StreamProfile]]:
        """Return stream profiles offered by each sensor, keyed by sensor name."""

    @abstractmethod
    def can_resolve(self, config: StreamConfig) -> bool:
        """Return whether ``config`` matches a mode the device supports."""

    @abstractmethod
    def resolve(self, config: StreamConfig) -> list[StreamProfile]:
        """Return the profiles ``config`` would activate, with intrinsics."""

    @abstractmethod
    def start(self, config: StreamConfig, callback: FramesetCallback) -> list[StreamProfile]:
        """Start streaming; ``callback`` runs on the SDK thread per frameset."""

    @abstractmethod
    def stop(self) -> None:
        """Stop streaming; in-flight callbacks complete before returning."""

    @abstractmethod
    def active_profiles(self) -> list[StreamProfile]:
        """Return the profiles of the running pipeline."""


@dataclass
class VideoStreamInfo:
    width: int
    height: int
    fps: int

    @property
    def resolution(self) -> tuple[int, int]:
        return self.width, self.height


__all__ = [
    "DeviceInfo",
    "Frame",
    "FramesetCallback",
    "Intrinsics",
    "MotionFrame",
    "MotionIntrinsics",
    "PipelineBackend",
    "PoseFrame",
    "StreamConfig",
    "StreamProfile",
    "StreamRequest",
    "VideoFrame",
    "VideoStreamInfo",
]
