"""D400 depth cameras: color, depth and the stereo infrared pair."""

from __future__ import annotations

from camera.backend import Frame, MotionFrame
from camera.catalog import ACCEL, COLOR, DEPTH, GYRO, INFRA1, INFRA2
from middleware.messages import Time

from .base import RealSenseBase


class RealSenseD400(RealSenseBase):
    """D415/D435 style device without an IMU."""

    STREAMS = (COLOR, DEPTH, INFRA1, INFRA2)
    FAMILY = "d400"


class RealSenseD400Imu(RealSenseD400):
    """D435i/D455 style device: adds accelerometer and gyroscope."""

    STREAMS = RealSenseD400.STREAMS + (ACCEL, GYRO)
    FAMILY = "d400_imu"

    def publish_frame(self, frame: Frame, t: Time) -> None:
        if isinstance(frame, MotionFrame):
            self.publish_imu_topic(frame, t)
        else:
            super().publish_frame(frame, t)
