"""Middleware-neutral message shapes published by the bridge.

The layouts follow the ROS 2 ``sensor_msgs``/``nav_msgs`` definitions so the
ROS 2 adapter can copy them field by field.
"""

from __future__ import annotations

from dataclasses import dataclass, field

import numpy as np

# encoding -> (numpy element type, channels)
ENCODINGS: dict[str, tuple[type, int]] = {
    "rgb8": (np.uint8, 3),
    "bgr8": (np.uint8, 3),
    "mono8": (np.uint8, 1),
    "mono16": (np.uint16, 1),
    "16UC1": (np.uint16, 1),
}

_NS_PER_SEC = 1_000_000_000


@dataclass(frozen=True, order=True)
class Time:
    """Timestamp split into whole seconds and nanoseconds."""

    sec: int = 0
    nanosec: int = 0

    @classmethod
    def from_nanoseconds(cls, ns: int) -> "Time":
        return cls(sec=ns // _NS_PER_SEC, nanosec=ns % _NS_PER_SEC)

    @property
    def nanoseconds(self) -> int:
        return self.sec * _NS_PER_SEC + self.nanosec

    def seconds(self) -> float:
        return self.nanoseconds / _NS_PER_SEC


@dataclass
class Header:
    stamp: Time = field(default_factory=Time)
    frame_id: str = ""


@dataclass
class Vector3:
    x: float = 0.0
    y: float = 0.0
    z: float = 0.0


@dataclass
class Quaternion:
    x: float = 0.0
    y: float = 0.0
    z: float = 0.0
    w: float = 1.0


@dataclass
class Image:
    """Raw image; ``data`` holds ``height * step`` bytes."""

    header: Header = field(default_factory=Header)
    height: int = 0
    width: int = 0
    encoding: str = ""
    is_bigendian: bool = False
    step: int = 0
    data: bytes = b""

    @classmethod
    def from_array(
        cls, array: np.ndarray, encoding: str, header: Header | None = None
    ) -> "Image":
        """Convert an ``HxW`` or ``HxWxC`` array to an image message.

        This is the only copy on the image path: the pixels are serialized
        into the message buffer.
        """
        dtype, channels = ENCODINGS[encoding]
        if array.dtype != dtype:
            raise ValueError(
                f"Encoding {encoding} expects {np.dtype(dtype)}, got {array.dtype}"
            )
        actual_channels = 1 if array.ndim == 2 else array.shape[2]
        if actual_channels != channels:
            raise ValueError(
                f"Encoding {encoding} expects {channels} channels, got {actual_channels}"
            )
        height, width = array.shape[:2]
        return cls(
            header=header or Header(),
            height=height,
            width=width,
            encoding=encoding,
            is_bigendian=array.dtype.byteorder == ">",
            step=width * channels * array.dtype.itemsize,
            data=array.tobytes(),
        )

    def to_array(self) -> np.ndarray:
        """Return a read-only view of ``data`` shaped by the encoding."""
        dtype, channels = ENCODINGS[self.encoding]
        arr = np.frombuffer(self.data, dtype=dtype)
        if channels == 1:
            return arr.reshape(self.height, self.width)
        return arr.reshape(self.height, self.width, channels)


@dataclass
class CameraInfo:
    header: Header = field(default_factory=Header)
    height: int = 0
    width: int = 0
    distortion_model: str = ""
    d: list[float] = field(default_factory=list)
    k: list[float] = field(default_factory=lambda: [0.0] * 9)
    r: list[float] = field(default_factory=lambda: [0.0] * 9)
    p: list[float] = field(default_factory=lambda: [0.0] * 12)


@dataclass
class Imu:
    header: Header = field(default_factory=Header)
    orientation: Quaternion = field(default_factory=Quaternion)
    # -1 in the first element marks the orientation as unknown
    orientation_covariance: list[float] = field(
        default_factory=lambda: [-1.0] + [0.0] * 8
    )
    angular_velocity: Vector3 = field(default_factory=Vector3)
    angular_velocity_covariance: list[float] = field(default_factory=lambda: [0.0] * 9)
    linear_acceleration: Vector3 = field(default_factory=Vector3)
    linear_acceleration_covariance: list[float] = field(
        default_factory=lambda: [0.0] * 9
    )


@dataclass
class ImuInfo:
    """Motion intrinsics: 3x4 scale/bias matrix and variances."""

    header: Header = field(default_factory=Header)
    data: list[float] = field(
        default_factory=lambda: [1.0, 0.0, 0.0, 0.0, 0.0, 1.0, 0.0, 0.0, 0.0, 0.0, 1.0, 0.0]
    )
    noise_variances: list[float] = field(default_factory=lambda: [0.0] * 3)
    bias_variances: list[float] = field(default_factory=lambda: [0.0] * 3)


@dataclass
class Pose:
    position: Vector3 = field(default_factory=Vector3)
    orientation: Quaternion = field(default_factory=Quaternion)


@dataclass
class Twist:
    linear: Vector3 = field(default_factory=Vector3)
    angular: Vector3 = field(default_factory=Vector3)


@dataclass
class PoseWithCovariance:
    pose: Pose = field(default_factory=Pose)
    covariance: list[float] = field(default_factory=lambda: [0.0] * 36)


@dataclass
class TwistWithCovariance:
    twist: Twist = field(default_factory=Twist)
    covariance: list[float] = field(default_factory=lambda: [0.0] * 36)


@dataclass
class Odometry:
    header: Header = field(default_factory=Header)
    child_frame_id: str = ""
    pose: PoseWithCovariance = field(default_factory=PoseWithCovariance)
    twist: TwistWithCovariance = field(default_factory=TwistWithCovariance)
