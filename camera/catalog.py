"""Static stream tables: names, topics, formats and optical frames.

Every stream is keyed by a :class:`StreamId` ``(kind, index)``. Lookups go
through :func:`lookup` so a missing entry fails loudly with
:class:`~utils.error_tracker.CatalogError` instead of a bare ``KeyError``.
"""

from __future__ import annotations

from enum import Enum
from types import MappingProxyType
from typing import Mapping, NamedTuple, TypeVar

import numpy as np

from utils.error_tracker import CatalogError


class StreamKind(Enum):
    COLOR = "color"
    DEPTH = "depth"
    INFRARED = "infrared"
    FISHEYE = "fisheye"
    ACCEL = "accel"
    GYRO = "gyro"
    POSE = "pose"


class StreamId(NamedTuple):
    """Immutable stream identity."""

    kind: StreamKind
    index: int

    def __str__(self) -> str:
        return parameter_prefix(self)


class CvFormat(NamedTuple):
    """Element type and channel count of a wrapped image buffer."""

    dtype: type
    channels: int


COLOR = StreamId(StreamKind.COLOR, 0)
DEPTH = StreamId(StreamKind.DEPTH, 0)
INFRA1 = StreamId(StreamKind.INFRARED, 1)
INFRA2 = StreamId(StreamKind.INFRARED, 2)
FISHEYE1 = StreamId(StreamKind.FISHEYE, 1)
FISHEYE2 = StreamId(StreamKind.FISHEYE, 2)
ACCEL = StreamId(StreamKind.ACCEL, 0)
GYRO = StreamId(StreamKind.GYRO, 0)
POSE = StreamId(StreamKind.POSE, 0)

VIDEO_KINDS = frozenset(
    {StreamKind.COLOR, StreamKind.DEPTH, StreamKind.INFRARED, StreamKind.FISHEYE}
)
IMU_KINDS = frozenset({StreamKind.ACCEL, StreamKind.GYRO})

DEFAULT_IMAGE_RESOLUTION = (640, 480)
DEFAULT_IMAGE_FPS = 30
FISHEYE_RESOLUTION = (848, 800)

STREAM_NAME: Mapping[StreamKind, str] = MappingProxyType(
    {
        StreamKind.COLOR: "Color",
        StreamKind.DEPTH: "Depth",
        StreamKind.INFRARED: "Infra",
        StreamKind.FISHEYE: "Fisheye",
        StreamKind.ACCEL: "Accel",
        StreamKind.GYRO: "Gyro",
        StreamKind.POSE: "Pose",
    }
)

SAMPLE_TOPIC: Mapping[StreamId, str] = MappingProxyType(
    {
        COLOR: "/camera/color/image_raw",
        DEPTH: "/camera/depth/image_rect_raw",
        INFRA1: "/camera/infra1/image_rect_raw",
        INFRA2: "/camera/infra2/image_rect_raw",
        FISHEYE1: "/camera/fisheye1/image_raw",
        FISHEYE2: "/camera/fisheye2/image_raw",
        ACCEL: "/camera/accel/sample",
        GYRO: "/camera/gyro/sample",
        POSE: "/camera/odom/sample",
    }
)

INFO_TOPIC: Mapping[StreamId, str] = MappingProxyType(
    {
        COLOR: "/camera/color/camera_info",
        DEPTH: "/camera/depth/camera_info",
        INFRA1: "/camera/infra1/camera_info",
        INFRA2: "/camera/infra2/camera_info",
        FISHEYE1: "/camera/fisheye1/camera_info",
        FISHEYE2: "/camera/fisheye2/camera_info",
        ACCEL: "/camera/accel/imu_info",
        GYRO: "/camera/gyro/imu_info",
    }
)

OPTICAL_FRAME_ID: Mapping[StreamId, str] = MappingProxyType(
    {
        COLOR: "camera_color_optical_frame",
        DEPTH: "camera_depth_optical_frame",
        INFRA1: "camera_infra1_optical_frame",
        INFRA2: "camera_infra2_optical_frame",
        FISHEYE1: "camera_fisheye1_optical_frame",
        FISHEYE2: "camera_fisheye2_optical_frame",
        ACCEL: "camera_accel_optical_frame",
        GYRO: "camera_gyro_optical_frame",
        POSE: "camera_pose_optical_frame",
    }
)

# child frame of the odometry message
POSE_CHILD_FRAME_ID = "camera_pose_frame"

# names of pyrealsense2 ``rs.format`` members
STREAM_FORMAT: Mapping[StreamKind, str] = MappingProxyType(
    {
        StreamKind.COLOR: "rgb8",
        StreamKind.DEPTH: "z16",
        StreamKind.INFRARED: "y8",
        StreamKind.FISHEYE: "y8",
        StreamKind.ACCEL: "motion_xyz32f",
        StreamKind.GYRO: "motion_xyz32f",
        StreamKind.POSE: "six_dof",
    }
)

MSG_ENCODING: Mapping[StreamKind, str] = MappingProxyType(
    {
        StreamKind.COLOR: "rgb8",
        StreamKind.DEPTH: "16UC1",
        StreamKind.INFRARED: "mono8",
        StreamKind.FISHEYE: "mono8",
    }
)

CV_FORMAT: Mapping[StreamKind, CvFormat] = MappingProxyType(
    {
        StreamKind.COLOR: CvFormat(np.uint8, 3),
        StreamKind.DEPTH: CvFormat(np.uint16, 1),
        StreamKind.INFRARED: CvFormat(np.uint8, 1),
        StreamKind.FISHEYE: CvFormat(np.uint8, 1),
    }
)

K = TypeVar("K")
V = TypeVar("V")


def lookup(table: Mapping[K, V], key: K, table_name: str) -> V:
    """Return ``table[key]`` or raise :class:`CatalogError`."""
    try:
        return table[key]
    except KeyError:
        raise CatalogError(f"{table_name} has no entry for {key!r}") from None


def is_video(stream: StreamId) -> bool:
    return stream.kind in VIDEO_KINDS


def is_imu(stream: StreamId) -> bool:
    return stream.kind in IMU_KINDS


def parameter_prefix(stream: StreamId) -> str:
    """Parameter namespace of a stream, e.g. ``Color0``."""
    return f"{lookup(STREAM_NAME, stream.kind, 'STREAM_NAME')}{stream.index}"


def parse_parameter_name(name: str) -> tuple[StreamId, str] | None:
    """Split ``Infra1.fps`` into ``(INFRA1, "fps")``.

    Returns ``None`` for names outside the stream namespace.
    """
    prefix, sep, field = name.partition(".")
    if not sep or not field:
        return None
    for kind, token in STREAM_NAME.items():
        if prefix.startswith(token) and prefix[len(token):].isdigit():
            return StreamId(kind, int(prefix[len(token):])), field
    return None
