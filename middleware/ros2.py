"""ROS 2 implementation of the middleware node, on top of rclpy.

Needs a sourced ROS 2 installation providing ``rclpy``, ``sensor_msgs``,
``nav_msgs`` and ``realsense2_camera_msgs``.
"""

from __future__ import annotations

from typing import Any, Callable, Sequence

import rclpy
from nav_msgs.msg import Odometry as RosOdometry
from rcl_interfaces.msg import ParameterDescriptor, SetParametersResult
from rclpy.node import Node as RclpyNode
from rclpy.parameter import Parameter as RclpyParameter
from realsense2_camera_msgs.msg import IMUInfo as RosImuInfo
from sensor_msgs.msg import CameraInfo as RosCameraInfo
from sensor_msgs.msg import Image as RosImage
from sensor_msgs.msg import Imu as RosImu
from std_msgs.msg import Header as RosHeader

from .base import Node, Parameter, ParameterCallback, Publisher, Result
from .messages import (
    CameraInfo,
    Header,
    Image,
    Imu,
    ImuInfo,
    Odometry,
    Time,
)


def _header(h: Header) -> RosHeader:
    out = RosHeader()
    out.stamp.sec = h.stamp.sec
    out.stamp.nanosec = h.stamp.nanosec
    out.frame_id = h.frame_id
    return out


def _image(msg: Image) -> RosImage:
    out = RosImage()
    out.header = _header(msg.header)
    out.height = msg.height
    out.width = msg.width
    out.encoding = msg.encoding
    out.is_bigendian = int(msg.is_bigendian)
    out.step = msg.step
    out.data.frombytes(msg.data)
    return out


def _camera_info(msg: CameraInfo) -> RosCameraInfo:
    out = RosCameraInfo()
    out.header = _header(msg.header)
    out.height = msg.height
    out.width = msg.width
    out.distortion_model = msg.distortion_model
    out.d = list(msg.d)
    out.k = list(msg.k)
    out.r = list(msg.r)
    out.p = list(msg.p)
    return out


def _copy_xyz(dst: Any, src: Any) -> None:
    dst.x, dst.y, dst.z = float(src.x), float(src.y), float(src.z)


def _imu(msg: Imu) -> RosImu:
    out = RosImu()
    out.header = _header(msg.header)
    _copy_xyz(out.orientation, msg.orientation)
    out.orientation.w = float(msg.orientation.w)
    out.orientation_covariance = list(msg.orientation_covariance)
    _copy_xyz(out.angular_velocity, msg.angular_velocity)
    out.angular_velocity_covariance = list(msg.angular_velocity_covariance)
    _copy_xyz(out.linear_acceleration, msg.linear_acceleration)
    out.linear_acceleration_covariance = list(msg.linear_acceleration_covariance)
    return out


def _imu_info(msg: ImuInfo) -> RosImuInfo:
    out = RosImuInfo()
    out.header = _header(msg.header)
    out.data = list(msg.data)
    out.noise_variances = list(msg.noise_variances)
    out.bias_variances = list(msg.bias_variances)
    return out


def _odometry(msg: Odometry) -> RosOdometry:
    out = RosOdometry()
    out.header = _header(msg.header)
    out.child_frame_id = msg.child_frame_id
    _copy_xyz(out.pose.pose.position, msg.pose.pose.position)
    _copy_xyz(out.pose.pose.orientation, msg.pose.pose.orientation)
    out.pose.pose.orientation.w = float(msg.pose.pose.orientation.w)
    out.pose.covariance = list(msg.pose.covariance)
    _copy_xyz(out.twist.twist.linear, msg.twist.twist.linear)
    _copy_xyz(out.twist.twist.angular, msg.twist.twist.angular)
    out.twist.covariance = list(msg.twist.covariance)
    return out


CONVERTERS: dict[type, tuple[type, Callable[[Any], Any]]] = {
    Image: (RosImage, _image),
    CameraInfo: (RosCameraInfo, _camera_info),
    Imu: (RosImu, _imu),
    ImuInfo: (RosImuInfo, _imu_info),
    Odometry: (RosOdometry, _odometry),
}


def _plain(value: Any) -> Any:
    # rclpy hands arrays over as array.array
    if hasattr(value, "tolist") and not isinstance(value, (str, bytes)):
        return value.tolist()
    return value


class Ros2Publisher(Publisher):
    def __init__(self, node: RclpyNode, msg_type: type, topic: str, depth: int) -> None:
        super().__init__(msg_type, topic, depth)
        ros_type, self._convert = CONVERTERS[msg_type]
        self._pub = node.create_publisher(ros_type, topic, depth)

    def publish(self, msg: Any, owned: bool = False) -> None:
        # rclpy has no zero-copy hand-over; ``owned`` only marks intent
        self._pub.publish(self._convert(msg))


class Ros2Node(Node):
    """Wraps an :class:`rclpy.node.Node`; initializes rclpy when needed."""

    def __init__(
        self,
        name: str,
        parameter_overrides: dict[str, Any] | None = None,
        args: list[str] | None = None,
    ) -> None:
        if not rclpy.ok():
            rclpy.init(args=args)
        overrides = [
            RclpyParameter(k, value=v)
            for k, v in (parameter_overrides or {}).items()
        ]
        self._node = RclpyNode(name, parameter_overrides=overrides)
        self._callbacks: list[ParameterCallback] = []
        self._node.add_on_set_parameters_callback(self._on_set_parameters)

    @property
    def name(self) -> str:
        return self._node.get_name()

    @property
    def use_intra_process_comms(self) -> bool:
        return False

    def declare_parameter(
        self, name: str, default: Any, read_only: bool = False, description: str = ""
    ) -> Any:
        descriptor = ParameterDescriptor(read_only=read_only, description=description)
        param = self._node.declare_parameter(name, default, descriptor)
        return _plain(param.value)

    def get_parameter(self, name: str) -> Any:
        return _plain(self._node.get_parameter(name).value)

    def set_parameters(self, params: Sequence[Parameter]) -> list[Result]:
        results = self._node.set_parameters(
            [RclpyParameter(p.name, value=p.value) for p in params]
        )
        return [Result(r.successful, r.reason) for r in results]

    def _on_set_parameters(self, params: list) -> SetParametersResult:
        converted = [Parameter(p.name, _plain(p.value)) for p in params]
        for callback in self._callbacks:
            result = callback(converted)
            if not result.successful:
                return SetParametersResult(successful=False, reason=result.reason)
        return SetParametersResult(successful=True)

    def add_on_set_parameters_callback(self, callback: ParameterCallback) -> None:
        self._callbacks.append(callback)

    def create_publisher(self, msg_type: type, topic: str, depth: int) -> Ros2Publisher:
        return Ros2Publisher(self._node, msg_type, topic, depth)

    def now(self) -> Time:
        return Time.from_nanoseconds(self._node.get_clock().now().nanoseconds)

    def get_logger(self) -> Any:
        return self._node.get_logger()

    def spin_once(self, timeout_sec: float = 0.0) -> None:
        rclpy.spin_once(self._node, timeout_sec=timeout_sec)

    def destroy(self) -> None:
        self._node.destroy_node()
        if rclpy.ok():
            rclpy.shutdown()
