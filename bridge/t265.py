"""T265 tracking camera: fisheye pair, IMU and 6-DoF pose."""

from __future__ import annotations

from typing import Sequence

from camera.backend import Frame, MotionFrame, PoseFrame
from camera.catalog import (
    ACCEL,
    FISHEYE1,
    FISHEYE2,
    GYRO,
    POSE,
    StreamKind,
    parse_parameter_name,
)
from middleware.base import Parameter, Result
from middleware.messages import Time

from .base import RealSenseBase


class RealSenseT265(RealSenseBase):
    STREAMS = (FISHEYE1, FISHEYE2, GYRO, ACCEL, POSE)
    FAMILY = "t265"

    def publish_frame(self, frame: Frame, t: Time) -> None:
        if isinstance(frame, MotionFrame):
            self.publish_imu_topic(frame, t)
        elif isinstance(frame, PoseFrame):
            self.publish_pose_topic(frame, t)
        else:
            super().publish_frame(frame, t)

    def param_change_callback(self, params: Sequence[Parameter]) -> Result:
        """Refuse fisheye mode changes; the middleware normally blocks them
        already since those parameters are declared read-only."""
        for param in params:
            parsed = parse_parameter_name(param.name)
            if parsed is None:
                continue
            stream, field = parsed
            if stream.kind is StreamKind.FISHEYE and field in ("resolution", "fps"):
                return Result(False, "Fisheye modes are fixed.")
        return super().param_change_callback(params)
