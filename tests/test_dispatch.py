import sys, os
sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))
import numpy as np
import pytest

from bridge.base import wrap_frame
from bridge.d400 import RealSenseD400, RealSenseD400Imu
from bridge.t265 import RealSenseT265
from camera.backend import MotionFrame
from camera.catalog import ACCEL, COLOR, CV_FORMAT, DEPTH, GYRO, INFRA1, StreamKind
from fakes import (
    D400_IMU_MODES,
    D400_MODES,
    T265_MODES,
    make_bridge,
    pose_frame,
    video_frame,
)
from middleware.base import Parameter
from middleware.messages import CameraInfo, Image, Imu, ImuInfo, Odometry


def _subscribe(node, msg_type, topic):
    return node.create_subscription(msg_type, topic, depth=10)


def test_wrap_frame_is_a_view():
    frame = video_frame(DEPTH, 4, 3, fill=513)
    view = wrap_frame(frame, CV_FORMAT[StreamKind.DEPTH])
    assert view.shape == (3, 4) and view.dtype == np.uint16
    assert not view.flags.owndata
    assert np.all(view == 513)
    color = wrap_frame(video_frame(COLOR, 4, 3), CV_FORMAT[StreamKind.COLOR])
    assert color.shape == (3, 4, 3)


def test_frameset_shares_one_stamp():
    bridge, node, backend, clock = make_bridge(
        RealSenseD400, D400_MODES, {"Color0.enabled": True, "Depth0.enabled": True}
    )
    color = _subscribe(node, Image, "/camera/color/image_raw")
    color_info = _subscribe(node, CameraInfo, "/camera/color/camera_info")
    depth = _subscribe(node, Image, "/camera/depth/image_rect_raw")
    depth_info = _subscribe(node, CameraInfo, "/camera/depth/camera_info")
    backend.emit_active()

    msgs = [color.take(), color_info.take(), depth.take(), depth_info.take()]
    stamps = {m.header.stamp for m in msgs}
    assert stamps == {node.now()}
    assert msgs[0].header.frame_id == "camera_color_optical_frame"
    assert msgs[1].header.frame_id == "camera_color_optical_frame"
    assert msgs[2].header.frame_id == "camera_depth_optical_frame"
    assert msgs[2].encoding == "16UC1" and msgs[0].encoding == "rgb8"
    assert np.all(msgs[2].to_array() == 7)


def test_stamps_never_go_backwards():
    bridge, node, backend, clock = make_bridge(
        RealSenseD400, D400_MODES, {"Color0.enabled": True}
    )
    sub = _subscribe(node, Image, "/camera/color/image_raw")
    backend.emit_active()
    clock.advance(-0.5)
    backend.emit_active()
    clock.advance(1.0)
    backend.emit_active()
    stamps = [sub.take().header.stamp for _ in range(3)]
    assert stamps[0] == stamps[1] < stamps[2]


def test_disabled_stream_frames_are_dropped():
    bridge, node, backend, _ = make_bridge(
        RealSenseD400, D400_MODES, {"Color0.enabled": True}
    )
    infra = _subscribe(node, Image, "/camera/infra1/image_rect_raw")
    backend.emit([video_frame(INFRA1, 640, 480)])
    assert infra.take() is None


def test_missing_calibration_skips_camera_info():
    bridge, node, backend, _ = make_bridge(
        RealSenseD400, D400_MODES, {"Color0.enabled": True}
    )
    img = _subscribe(node, Image, "/camera/color/image_raw")
    info = _subscribe(node, CameraInfo, "/camera/color/camera_info")
    bridge.calibration.clear()
    backend.emit_active()
    assert img.take() is not None
    assert info.take() is None


def test_intra_process_delivers_image():
    bridge, node, backend, _ = make_bridge(
        RealSenseD400, D400_MODES, {"Color0.enabled": True}, intra_process=True
    )
    sub = _subscribe(node, Image, "/camera/color/image_raw")
    backend.emit_active(fill=42)
    msg = sub.take()
    assert (msg.width, msg.height, msg.step) == (640, 480, 1920)
    assert msg.to_array()[0, 0].tolist() == [42, 42, 42]


def test_imu_samples_and_info():
    bridge, node, backend, clock = make_bridge(
        RealSenseD400Imu, D400_IMU_MODES, {"Accel0.enabled": True}
    )
    imu = _subscribe(node, Imu, "/camera/accel/sample")
    info = _subscribe(node, ImuInfo, "/camera/accel/imu_info")
    gyro = _subscribe(node, Imu, "/camera/gyro/sample")
    backend.emit([MotionFrame(ACCEL, (0.1, 9.8, 0.2)), MotionFrame(GYRO, (1.0, 2.0, 3.0))])

    sample = imu.take()
    assert sample.header.frame_id == "camera_accel_optical_frame"
    assert sample.linear_acceleration.y == pytest.approx(9.8)
    assert sample.angular_velocity.x == 0.0
    assert sample.orientation_covariance[0] == -1.0
    imu_info = info.take()
    assert imu_info.header.stamp == sample.header.stamp
    assert imu_info.data[0] == pytest.approx(1.01)
    # gyro is not enabled
    assert gyro.take() is None


def test_gyro_sample_sets_angular_velocity():
    bridge, node, backend, _ = make_bridge(
        RealSenseD400Imu, D400_IMU_MODES, {"Gyro0.enabled": True}
    )
    gyro = _subscribe(node, Imu, "/camera/gyro/sample")
    backend.emit([MotionFrame(GYRO, (1.0, 2.0, 3.0))])
    sample = gyro.take()
    assert (sample.angular_velocity.x, sample.angular_velocity.z) == (1.0, 3.0)
    assert sample.linear_acceleration.z == 0.0


def test_pose_odometry():
    bridge, node, backend, _ = make_bridge(
        RealSenseT265, T265_MODES, {"Pose0.enabled": True}
    )
    odom = _subscribe(node, Odometry, "/camera/odom/sample")
    backend.emit([pose_frame(confidence=3)])
    msg = odom.take()
    assert msg.header.frame_id == "camera_pose_optical_frame"
    assert msg.child_frame_id == "camera_pose_frame"
    assert msg.pose.pose.position.z == 3.0
    assert msg.pose.pose.orientation.w == 1.0
    assert msg.twist.twist.linear.x == 0.1
    assert msg.pose.covariance[0] == pytest.approx(0.01)
    assert msg.pose.covariance[7] == pytest.approx(0.01)
    assert msg.pose.covariance[1] == 0.0
    assert msg.twist.covariance[35] == pytest.approx(0.0001)


def test_low_confidence_inflates_covariance():
    bridge, node, backend, _ = make_bridge(
        RealSenseT265, T265_MODES, {"Pose0.enabled": True}
    )
    odom = _subscribe(node, Odometry, "/camera/odom/sample")
    backend.emit([pose_frame(confidence=1)])
    assert odom.take().pose.covariance[0] == pytest.approx(1.0)


def test_d400_without_imu_ignores_motion_frames():
    bridge, node, backend, _ = make_bridge(
        RealSenseD400, D400_MODES, {"Color0.enabled": True}
    )
    backend.emit([MotionFrame(ACCEL, (0.0, 9.8, 0.0))])
    assert "/camera/accel/sample" not in node.topic_names()


def test_shutdown_stops_pipeline():
    bridge, node, backend, _ = make_bridge(
        RealSenseD400, D400_MODES, {"Color0.enabled": True}
    )
    bridge.shutdown()
    assert not backend.running and not bridge.pipeline.running
    bridge.shutdown()
    assert backend.stops == 1


def test_nothing_enabled_keeps_pipeline_down():
    bridge, node, backend, _ = make_bridge(RealSenseD400, D400_MODES)
    assert backend.starts == []
    assert node.set_parameters([Parameter("Color0.enabled", True)])[0].successful
    assert backend.running
