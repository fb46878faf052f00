import sys, os
sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))
import numpy as np
import pytest

from camera.backend import Intrinsics, MotionIntrinsics, StreamProfile
from camera.calibration import CalibrationCache
from camera.catalog import ACCEL, COLOR, DEPTH, GYRO


def _profile(stream, width=640, height=480):
    intr = Intrinsics(
        width=width,
        height=height,
        fx=615.0,
        fy=616.0,
        ppx=320.5,
        ppy=240.5,
        coeffs=(0.1, -0.2, 0.001, 0.002, 0.03),
    )
    return StreamProfile(stream, "z16", 30, width, height, intrinsics=intr)


def test_video_calibration_record():
    cache = CalibrationCache()
    info = cache.update_video_stream_calib_data(_profile(COLOR))
    assert info.width == 640 and info.height == 480
    assert info.k == [615.0, 0.0, 320.5, 0.0, 616.0, 240.5, 0.0, 0.0, 1.0]
    assert info.p == [
        615.0, 0.0, 320.5, 0.0,
        0.0, 616.0, 240.5, 0.0,
        0.0, 0.0, 1.0, 0.0,
    ]
    assert np.allclose(np.reshape(info.r, (3, 3)), np.eye(3))
    assert info.distortion_model == "plumb_bob"
    assert info.d == pytest.approx([0.1, -0.2, 0.001, 0.002, 0.03])
    assert info.header.frame_id == "camera_color_optical_frame"
    assert cache.camera_info(COLOR) is info


def test_depth_aligned_to_color_has_no_baseline():
    cache = CalibrationCache()
    cache.update([_profile(DEPTH), _profile(COLOR)], align_depth_to_color=True)
    depth = cache.camera_info(DEPTH)
    assert depth.p[3] == 0.0 and depth.p[7] == 0.0


def test_depth_alone_keeps_raw_projection():
    cache = CalibrationCache()
    cache.update([_profile(DEPTH)], align_depth_to_color=False)
    depth = cache.camera_info(DEPTH)
    assert depth.p[:3] == [615.0, 0.0, 320.5]
    assert depth.p[4:7] == [0.0, 616.0, 240.5]


def test_short_distortion_is_padded():
    intr = Intrinsics(640, 480, 600.0, 600.0, 320.0, 240.0, coeffs=(0.5,))
    cache = CalibrationCache()
    info = cache.update_video_stream_calib_data(
        StreamProfile(COLOR, "rgb8", 30, 640, 480, intrinsics=intr)
    )
    assert info.d == [0.5, 0.0, 0.0, 0.0, 0.0]


def test_profile_without_intrinsics_is_rejected():
    cache = CalibrationCache()
    with pytest.raises(ValueError):
        cache.update_video_stream_calib_data(StreamProfile(COLOR, "rgb8", 30, 640, 480))


def test_motion_calibration_from_intrinsics():
    mi = MotionIntrinsics(
        data=((1.01, 0.0, 0.0, 0.1), (0.0, 0.99, 0.0, 0.2), (0.0, 0.0, 1.0, 0.3)),
        noise_variances=(0.001, 0.002, 0.003),
        bias_variances=(0.01, 0.02, 0.03),
    )
    cache = CalibrationCache()
    cache.update([StreamProfile(ACCEL, "motion_xyz32f", 200, motion_intrinsics=mi)])
    info = cache.imu_info(ACCEL)
    assert info.data[0] == 1.01 and info.data[3] == 0.1 and info.data[11] == 0.3
    assert info.noise_variances == [0.001, 0.002, 0.003]
    assert info.bias_variances == [0.01, 0.02, 0.03]
    assert info.header.frame_id == "camera_accel_optical_frame"


def test_motion_calibration_defaults_to_identity():
    cache = CalibrationCache()
    info = cache.update_motion_calib_data(StreamProfile(GYRO, "motion_xyz32f", 200))
    assert np.allclose(np.reshape(info.data, (3, 4)), np.hstack([np.eye(3), np.zeros((3, 1))]))
    assert info.noise_variances == [0.0, 0.0, 0.0]


def test_clear():
    cache = CalibrationCache()
    cache.update([_profile(COLOR)])
    cache.clear()
    assert cache.camera_info(COLOR) is None
