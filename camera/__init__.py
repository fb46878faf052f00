"""Camera side of the bridge.

Static stream tables (:mod:`camera.catalog`), the SDK-neutral pipeline
interface (:mod:`camera.backend`), calibration records
(:mod:`camera.calibration`) and the pyrealsense2 backend
(:mod:`camera.realsense`, imported on demand because it needs the SDK).
"""

from .backend import (
    DeviceInfo,
    Intrinsics,
    MotionFrame,
    MotionIntrinsics,
    PipelineBackend,
    PoseFrame,
    StreamConfig,
    StreamProfile,
    VideoFrame,
    VideoStreamInfo,
)
from .calibration import CalibrationCache
from .catalog import StreamId, StreamKind

__all__ = [
    "CalibrationCache",
    "DeviceInfo",
    "Intrinsics",
    "MotionFrame",
    "MotionIntrinsics",
    "PipelineBackend",
    "PoseFrame",
    "StreamConfig",
    "StreamId",
    "StreamKind",
    "StreamProfile",
    "VideoFrame",
    "VideoStreamInfo",
]
