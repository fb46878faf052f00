"""Stream plumbing shared by every RealSense device family.

:class:`RealSenseBase` declares the per-stream parameters, creates the
publishers, keeps the SDK configuration in step with the enable map and the
video stream info, dispatches framesets to the publishers and services
runtime reconfiguration (enable, resolution, fps).

Families subclass it, list their streams in ``STREAMS`` and extend
:meth:`publish_frame` for the non-video frames they produce.
"""

from __future__ import annotations

import threading
from typing import Sequence

import numpy as np

from camera.backend import (
    Frame,
    MotionFrame,
    PipelineBackend,
    PoseFrame,
    StreamConfig,
    StreamProfile,
    VideoFrame,
    VideoStreamInfo,
)
from camera.calibration import CalibrationCache
from camera.catalog import (
    COLOR,
    CV_FORMAT,
    DEFAULT_IMAGE_FPS,
    DEFAULT_IMAGE_RESOLUTION,
    DEPTH,
    FISHEYE_RESOLUTION,
    INFO_TOPIC,
    MSG_ENCODING,
    OPTICAL_FRAME_ID,
    POSE_CHILD_FRAME_ID,
    SAMPLE_TOPIC,
    STREAM_FORMAT,
    CvFormat,
    StreamId,
    StreamKind,
    is_imu,
    is_video,
    lookup,
    parameter_prefix,
    parse_parameter_name,
)
from middleware.base import Node, Parameter, ParameterType, Publisher, Result
from middleware.messages import (
    CameraInfo,
    Header,
    Image,
    Imu,
    ImuInfo,
    Odometry,
    Quaternion,
    Time,
    Vector3,
)
from utils.error_tracker import PipelineError
from utils.logger import Logger, Throttle

from .pipeline import PipelineController

QUEUE_DEPTH = 1

EQUAL_TO_PREVIOUS = "Parameter is equal to the previous value. Do nothing."

# base variances of the odometry covariance, scaled by tracker confidence
LINEAR_ACCEL_COV = 0.01
ANGULAR_VELOCITY_COV = 0.01


def wrap_frame(frame: VideoFrame, fmt: CvFormat) -> np.ndarray:
    """View the SDK pixel buffer as an ``HxW`` or ``HxWxC`` array, no copy."""
    count = frame.width * frame.height * fmt.channels
    pixels = np.frombuffer(frame.data, dtype=fmt.dtype, count=count)
    if fmt.channels == 1:
        return pixels.reshape(frame.height, frame.width)
    return pixels.reshape(frame.height, frame.width, fmt.channels)


class RealSenseBase:
    """Parameters, publishers, pipeline and dispatch for one device."""

    STREAMS: tuple[StreamId, ...] = ()
    FAMILY = "realsense"

    def __init__(
        self,
        backend: PipelineBackend,
        node: Node,
        restart_delay: float = 0.2,
    ) -> None:
        self.backend = backend
        self.node = node
        self.logger = Logger.get_logger(f"bridge.{self.FAMILY}")
        self.cfg = StreamConfig()
        self.enable: dict[StreamId, bool] = {}
        self.stream_info: dict[StreamId, VideoStreamInfo] = {}
        self.calibration = CalibrationCache()
        self.image_pub: dict[StreamId, Publisher] = {}
        self.camera_info_pub: dict[StreamId, Publisher] = {}
        self.imu_pub: dict[StreamId, Publisher] = {}
        self.imu_info_pub: dict[StreamId, Publisher] = {}
        self.odom_pub: dict[StreamId, Publisher] = {}
        self.pipeline = PipelineController(
            backend,
            self.publish_topics_callback,
            on_resolved=self.update_calibration,
            restart_delay=restart_delay,
            logger=self.logger,
        )
        self._stamp_lock = threading.Lock()
        self._last_stamp = Time()
        self._warn_once = Throttle(period=5.0)

    # ------------------------------------------------------------------
    # lifecycle
    # ------------------------------------------------------------------
    def initialize(self) -> None:
        """Log the device, set up every stream and start streaming.

        A pipeline that fails to start is logged; the node stays up so the
        parameters can be corrected and a stream toggled again.
        """
        self.print_device_info()
        self.print_supported_stream_profiles()
        for stream in self.STREAMS:
            self.setup_stream(stream)
        self.node.add_on_set_parameters_callback(self.param_change_callback)
        try:
            if self.start_pipeline():
                self.print_active_stream_profiles()
        except PipelineError as e:
            self.logger.error(f"Streaming not started: {e}")

    def shutdown(self) -> None:
        """Stop the pipeline; in-flight frame callbacks finish first."""
        self.stop_pipeline()

    def start_pipeline(self) -> bool:
        return self.pipeline.start(self.cfg)

    def stop_pipeline(self) -> None:
        self.pipeline.stop()

    def restart_pipeline(self) -> bool:
        return self.pipeline.restart(self.cfg)

    # ------------------------------------------------------------------
    # configuration
    # ------------------------------------------------------------------
    def setup_stream(self, stream: StreamId) -> None:
        """Declare the parameters and publishers of ``stream``."""
        prefix = parameter_prefix(stream)
        lookup(OPTICAL_FRAME_ID, stream, "OPTICAL_FRAME_ID")
        lookup(STREAM_FORMAT, stream.kind, "STREAM_FORMAT")
        enabled = self.node.declare_parameter(f"{prefix}.enabled", False)

        if is_imu(stream):
            self.imu_pub[stream] = self.node.create_publisher(
                Imu, lookup(SAMPLE_TOPIC, stream, "SAMPLE_TOPIC"), QUEUE_DEPTH
            )
            self.imu_info_pub[stream] = self.node.create_publisher(
                ImuInfo, lookup(INFO_TOPIC, stream, "INFO_TOPIC"), QUEUE_DEPTH
            )
        elif stream.kind is StreamKind.POSE:
            self.odom_pub[stream] = self.node.create_publisher(
                Odometry, lookup(SAMPLE_TOPIC, stream, "SAMPLE_TOPIC"), QUEUE_DEPTH
            )
        else:
            lookup(MSG_ENCODING, stream.kind, "MSG_ENCODING")
            lookup(CV_FORMAT, stream.kind, "CV_FORMAT")
            # fisheye modes are fixed by the device
            read_only = stream.kind is StreamKind.FISHEYE
            default_res = FISHEYE_RESOLUTION if read_only else DEFAULT_IMAGE_RESOLUTION
            res = self.node.declare_parameter(
                f"{prefix}.resolution", list(default_res), read_only=read_only
            )
            fps = self.node.declare_parameter(
                f"{prefix}.fps", DEFAULT_IMAGE_FPS, read_only=read_only
            )
            self.stream_info[stream] = VideoStreamInfo(int(res[0]), int(res[1]), int(fps))
            self.image_pub[stream] = self.node.create_publisher(
                Image, lookup(SAMPLE_TOPIC, stream, "SAMPLE_TOPIC"), QUEUE_DEPTH
            )
            self.camera_info_pub[stream] = self.node.create_publisher(
                CameraInfo, lookup(INFO_TOPIC, stream, "INFO_TOPIC"), QUEUE_DEPTH
            )

        self.enable[stream] = False
        if enabled is True:
            self.enable[stream] = True
            self._request_stream(stream)

    def _request_stream(
        self, stream: StreamId, info: VideoStreamInfo | None = None
    ) -> None:
        """Put ``stream`` into the SDK config, with its mode for video."""
        if is_video(stream):
            info = info or self.stream_info[stream]
            self.cfg.enable_stream(
                stream, info.width, info.height, STREAM_FORMAT[stream.kind], info.fps
            )
        else:
            self.cfg.enable_stream(stream)

    def update_calibration(self, profiles: list[StreamProfile]) -> None:
        align = self.cfg.has(DEPTH) and self.cfg.has(COLOR)
        self.calibration.update(profiles, align_depth_to_color=align)

    # ------------------------------------------------------------------
    # frame dispatch (SDK callback thread)
    # ------------------------------------------------------------------
    def _frameset_stamp(self) -> Time:
        """Middleware time at callback entry, never behind the previous one."""
        now = self.node.now()
        with self._stamp_lock:
            if now < self._last_stamp:
                now = self._last_stamp
            self._last_stamp = now
        return now

    def publish_topics_callback(self, frameset: Sequence[Frame]) -> None:
        """Publish every frame of ``frameset`` with one shared timestamp."""
        t = self._frameset_stamp()
        for frame in frameset:
            if not self.enable.get(frame.stream, False):
                continue
            self.publish_frame(frame, t)

    def publish_frame(self, frame: Frame, t: Time) -> None:
        """Route one frame; families extend this for IMU and pose frames."""
        if isinstance(frame, VideoFrame):
            self.publish_image_topic(frame, t)
        else:
            self.logger.debug(f"No handler for {frame.stream} frames, dropped")

    def publish_image_topic(self, frame: VideoFrame, t: Time) -> None:
        stream = frame.stream
        cv_image = wrap_frame(frame, CV_FORMAT[stream.kind])
        header = Header(stamp=t, frame_id=OPTICAL_FRAME_ID[stream])
        img = Image.from_array(cv_image, MSG_ENCODING[stream.kind], header)
        if not self.node.use_intra_process_comms:
            self.image_pub[stream].publish(img)
        else:
            self.image_pub[stream].publish(img, owned=True)

        # TODO: recompute intrinsics when sensor options change them at runtime
        info = self.calibration.camera_info(stream)
        if info is None:
            if self._warn_once(("camera_info", stream)):
                self.logger.warning(f"No calibration for {stream}, camera info skipped")
            return
        info.header.stamp = t
        self.camera_info_pub[stream].publish(info)

    def publish_imu_topic(self, frame: MotionFrame, t: Time) -> None:
        stream = frame.stream
        msg = Imu(header=Header(stamp=t, frame_id=OPTICAL_FRAME_ID[stream]))
        if stream.kind is StreamKind.ACCEL:
            msg.linear_acceleration = Vector3(*frame.data)
        else:
            msg.angular_velocity = Vector3(*frame.data)
        self.imu_pub[stream].publish(msg)

        info = self.calibration.imu_info(stream)
        if info is None:
            if self._warn_once(("imu_info", stream)):
                self.logger.warning(f"No IMU info for {stream}, imu info skipped")
            return
        info.header.stamp = t
        self.imu_info_pub[stream].publish(info)

    def publish_pose_topic(self, frame: PoseFrame, t: Time) -> None:
        stream = frame.stream
        msg = Odometry(
            header=Header(stamp=t, frame_id=OPTICAL_FRAME_ID[stream]),
            child_frame_id=POSE_CHILD_FRAME_ID,
        )
        msg.pose.pose.position = Vector3(*frame.translation)
        msg.pose.pose.orientation = Quaternion(*frame.rotation)
        msg.twist.twist.linear = Vector3(*frame.velocity)
        msg.twist.twist.angular = Vector3(*frame.angular_velocity)
        # confidence 0 (failed) .. 3 (high)
        cov_pose = LINEAR_ACCEL_COV * 10 ** (3 - frame.tracker_confidence)
        cov_twist = ANGULAR_VELOCITY_COV * 10 ** (1 - frame.tracker_confidence)
        msg.pose.covariance = np.diag([cov_pose] * 6).ravel().tolist()
        msg.twist.covariance = np.diag([cov_twist] * 6).ravel().tolist()
        self.odom_pub[stream].publish(msg)

    # ------------------------------------------------------------------
    # reconfiguration (middleware parameter thread)
    # ------------------------------------------------------------------
    def param_change_callback(self, params: Sequence[Parameter]) -> Result:
        """Apply stream parameter changes; stop at the first failure."""
        result = Result()
        for param in params:
            parsed = parse_parameter_name(param.name)
            if parsed is None or parsed[0] not in self.enable:
                continue
            stream, field = parsed
            if field == "enabled":
                result = self.toggle_stream(stream, param)
            elif field == "resolution" and is_video(stream):
                result = self.change_resolution(stream, param)
            elif field == "fps" and is_video(stream):
                result = self.change_fps(stream, param)
            if not result.successful:
                return result
        return result

    def toggle_stream(self, stream: StreamId, param: Parameter) -> Result:
        if param.type is not ParameterType.BOOL:
            return Result(False, "Type should be boolean.")
        enabled = self.enable.get(stream, False)
        if param.value and not enabled:
            snapshot = self.cfg.snapshot()
            self._request_stream(stream)
            self.enable[stream] = True
            try:
                self.restart_pipeline()
            except PipelineError as e:
                self.enable[stream] = False
                self.cfg.restore(snapshot)
                self._recover_pipeline()
                return Result(False, f"Failed to restart pipeline: {e}")
            self.logger.info(f"{stream} stream is enabled.")
            return Result()
        if not param.value and enabled:
            # frames of a disabled stream are dropped, no restart needed
            self.cfg.disable_stream(stream)
            self.enable[stream] = False
            self.logger.info(f"{stream} stream is disabled.")
            return Result()
        return Result(False, EQUAL_TO_PREVIOUS)

    def change_resolution(self, stream: StreamId, param: Parameter) -> Result:
        if param.type is not ParameterType.INTEGER_ARRAY:
            return Result(False, "Type should be integer array.")
        res = list(param.value)
        if len(res) != 2 or min(res) <= 0:
            return Result(False, "Type should be integer array.")
        current = self.stream_info[stream]
        if tuple(res) == current.resolution:
            return Result(False, EQUAL_TO_PREVIOUS)
        proposal = VideoStreamInfo(res[0], res[1], current.fps)
        return self._apply_video_mode(stream, proposal, "Unsupported resolution.")

    def change_fps(self, stream: StreamId, param: Parameter) -> Result:
        if param.type is not ParameterType.INTEGER:
            return Result(False, "Type should be integer.")
        if param.value <= 0:
            return Result(False, "Unsupported configuration.")
        current = self.stream_info[stream]
        if param.value == current.fps:
            return Result(False, EQUAL_TO_PREVIOUS)
        proposal = VideoStreamInfo(current.width, current.height, param.value)
        return self._apply_video_mode(stream, proposal, "Unsupported configuration.")

    def _apply_video_mode(
        self, stream: StreamId, proposal: VideoStreamInfo, unsupported: str
    ) -> Result:
        """Validate ``proposal`` against the device, then commit it.

        The SDK config is restored on every path that does not leave the
        stream enabled with the new mode.
        """
        snapshot = self.cfg.snapshot()
        self._request_stream(stream, proposal)
        if not self.pipeline.can_resolve(self.cfg):
            self.cfg.restore(snapshot)
            return Result(False, unsupported)

        previous = self.stream_info[stream]
        self.stream_info[stream] = proposal
        if not self.enable.get(stream, False):
            # applies on the next enable
            self.cfg.restore(snapshot)
            return Result()
        try:
            self.restart_pipeline()
        except PipelineError as e:
            self.stream_info[stream] = previous
            self.cfg.restore(snapshot)
            self._recover_pipeline()
            return Result(False, f"Failed to restart pipeline: {e}")
        self.logger.info(
            f"{stream} set to {proposal.width}x{proposal.height} @ {proposal.fps} fps"
        )
        return Result()

    def _recover_pipeline(self) -> None:
        """Bring the last committed configuration back up after a failure."""
        try:
            self.start_pipeline()
        except PipelineError as e:
            self.logger.error(f"Pipeline stays stopped: {e}")

    # ------------------------------------------------------------------
    # device info
    # ------------------------------------------------------------------
    def print_device_info(self) -> None:
        info = self.backend.device_info()
        self.logger.info("+++++++++++++++++++++")
        self.logger.info(f"Device Name: {info.name}")
        self.logger.info(f"Device Serial No: {info.serial_number}")
        self.logger.info(f"Device FW Version: {info.firmware_version}")
        self.logger.info(f"Device Product ID: 0x{info.product_id}")
        self.logger.info("+++++++++++++++++++++")

    def print_supported_stream_profiles(self) -> None:
        for sensor, profiles in self.backend.supported_profiles().items():
            self.logger.info(f"Sensor Name: {sensor}")
            self.print_stream_profiles(profiles)

    def print_active_stream_profiles(self) -> None:
        self.print_stream_profiles(self.backend.active_profiles())

    def print_stream_profiles(self, profiles: Sequence[StreamProfile]) -> None:
        for p in profiles:
            self.logger.debug(
                f"Stream {p.name or p.stream} ({p.stream.kind.value} #{p.stream.index}) "
                f"uid={p.unique_id} {p.format} {p.width}x{p.height} @ {p.fps} fps"
            )
