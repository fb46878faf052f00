"""Camera-info and IMU-info records derived from SDK intrinsics."""

from __future__ import annotations

import numpy as np

from middleware.messages import CameraInfo, Header, ImuInfo

from .backend import StreamProfile
from .catalog import OPTICAL_FRAME_ID, StreamId, StreamKind, lookup

DISTORTION_MODEL = "plumb_bob"


class CalibrationCache:
    """Per-stream calibration, refreshed whenever the pipeline resolves."""

    def __init__(self) -> None:
        self._camera_info: dict[StreamId, CameraInfo] = {}
        self._imu_info: dict[StreamId, ImuInfo] = {}

    def update(
        self, profiles: list[StreamProfile], align_depth_to_color: bool = False
    ) -> None:
        """Refresh the records of every resolved profile."""
        for profile in profiles:
            if profile.intrinsics is not None:
                self.update_video_stream_calib_data(profile, align_depth_to_color)
            elif profile.stream.kind in (StreamKind.ACCEL, StreamKind.GYRO):
                self.update_motion_calib_data(profile)

    def update_video_stream_calib_data(
        self, profile: StreamProfile, align_depth_to_color: bool = False
    ) -> CameraInfo:
        """Build the camera info of a video profile.

        ``align_depth_to_color`` is set when depth and color are both
        enabled: depth is then expressed in the color frame and the depth
        projection carries no baseline, so Tx and Ty are zeroed.
        """
        stream = profile.stream
        intr = profile.intrinsics
        if intr is None:
            raise ValueError(f"{stream} profile has no intrinsics")

        K = np.array(
            [[intr.fx, 0.0, intr.ppx], [0.0, intr.fy, intr.ppy], [0.0, 0.0, 1.0]],
            dtype=np.float64,
        )
        P = np.hstack([K, np.zeros((3, 1))])
        if stream.kind is StreamKind.DEPTH and align_depth_to_color:
            P[0, 3] = 0.0  # Tx
            P[1, 3] = 0.0  # Ty
        d = np.zeros(5)
        coeffs = np.asarray(intr.coeffs[:5], dtype=np.float64)
        d[: coeffs.size] = coeffs

        info = CameraInfo(
            header=Header(frame_id=lookup(OPTICAL_FRAME_ID, stream, "OPTICAL_FRAME_ID")),
            height=intr.height,
            width=intr.width,
            distortion_model=DISTORTION_MODEL,
            d=d.tolist(),
            k=K.ravel().tolist(),
            r=np.eye(3).ravel().tolist(),
            p=P.ravel().tolist(),
        )
        self._camera_info[stream] = info
        return info

    def update_motion_calib_data(self, profile: StreamProfile) -> ImuInfo:
        """Build the IMU info of a motion profile.

        Devices that report no motion intrinsics get identity scale and
        zero bias.
        """
        stream = profile.stream
        info = ImuInfo(
            header=Header(frame_id=lookup(OPTICAL_FRAME_ID, stream, "OPTICAL_FRAME_ID"))
        )
        mi = profile.motion_intrinsics
        if mi is not None:
            info.data = np.asarray(mi.data, dtype=np.float64).reshape(12).tolist()
            info.noise_variances = [float(v) for v in mi.noise_variances]
            info.bias_variances = [float(v) for v in mi.bias_variances]
        self._imu_info[stream] = info
        return info

    def camera_info(self, stream: StreamId) -> CameraInfo | None:
        return self._camera_info.get(stream)

    def imu_info(self, stream: StreamId) -> ImuInfo | None:
        return self._imu_info.get(stream)

    def clear(self) -> None:
        self._camera_info.clear()
        self._imu_info.clear()
