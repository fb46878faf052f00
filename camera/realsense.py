# camera/realsense.py

"""pyrealsense2 implementation of :class:`PipelineBackend`.

Translates :class:`StreamConfig` into ``rs.config`` calls and SDK frames into
the bridge's frame views. Video pixels are passed on as the SDK buffer; no
copy is made here.
"""

from __future__ import annotations

import threading
from typing import Sequence

import pyrealsense2 as rs

from utils.error_tracker import CameraConnectionError, PipelineError
from utils.logger import Logger, LoggerType

from .backend import (
    DeviceInfo,
    Frame,
    FramesetCallback,
    Intrinsics,
    MotionFrame,
    MotionIntrinsics,
    PipelineBackend,
    PoseFrame,
    StreamConfig,
    StreamProfile,
    VideoFrame,
)
from .catalog import StreamId, StreamKind

RS_STREAM = {
    StreamKind.COLOR: rs.stream.color,
    StreamKind.DEPTH: rs.stream.depth,
    StreamKind.INFRARED: rs.stream.infrared,
    StreamKind.FISHEYE: rs.stream.fisheye,
    StreamKind.ACCEL: rs.stream.accel,
    StreamKind.GYRO: rs.stream.gyro,
    StreamKind.POSE: rs.stream.pose,
}
KIND_BY_RS_STREAM = {v: k for k, v in RS_STREAM.items()}


def _format_name(fmt: rs.format) -> str:
    return str(fmt).split(".")[-1]


def _stream_id(profile: rs.stream_profile) -> StreamId | None:
    kind = KIND_BY_RS_STREAM.get(profile.stream_type())
    if kind is None:
        return None
    return StreamId(kind, profile.stream_index())


def _convert_profile(
    profile: rs.stream_profile, with_intrinsics: bool = True
) -> StreamProfile | None:
    stream = _stream_id(profile)
    if stream is None:
        return None
    width = height = 0
    intrinsics = None
    motion_intrinsics = None
    if profile.is_video_stream_profile():
        vp = profile.as_video_stream_profile()
        width, height = vp.width(), vp.height()
        if with_intrinsics:
            intr = vp.get_intrinsics()
            intrinsics = Intrinsics(
                width=intr.width,
                height=intr.height,
                fx=intr.fx,
                fy=intr.fy,
                ppx=intr.ppx,
                ppy=intr.ppy,
                coeffs=tuple(intr.coeffs),
                model=str(intr.model),
            )
    elif profile.is_motion_stream_profile() and with_intrinsics:
        try:
            mi = profile.as_motion_stream_profile().get_motion_intrinsics()
        except RuntimeError:
            # not every IMU ships a calibration table
            mi = None
        if mi is not None:
            motion_intrinsics = MotionIntrinsics(
                data=tuple(tuple(row) for row in mi.data),
                noise_variances=tuple(mi.noise_variances),
                bias_variances=tuple(mi.bias_variances),
            )
    return StreamProfile(
        stream=stream,
        format=_format_name(profile.format()),
        fps=profile.fps(),
        width=width,
        height=height,
        name=profile.stream_name(),
        unique_id=profile.unique_id(),
        intrinsics=intrinsics,
        motion_intrinsics=motion_intrinsics,
    )


def _convert_frame(frame: rs.frame) -> Frame | None:
    stream = _stream_id(frame.get_profile())
    if stream is None:
        return None
    timestamp = frame.get_timestamp()
    if frame.is_video_frame():
        vf = frame.as_video_frame()
        return VideoFrame(
            stream=stream,
            width=vf.get_width(),
            height=vf.get_height(),
            data=vf.get_data(),
            stride=vf.get_stride_in_bytes(),
            timestamp=timestamp,
        )
    if frame.is_motion_frame():
        d = frame.as_motion_frame().get_motion_data()
        return MotionFrame(stream=stream, data=(d.x, d.y, d.z), timestamp=timestamp)
    if frame.is_pose_frame():
        p = frame.as_pose_frame().get_pose_data()
        return PoseFrame(
            stream=stream,
            translation=(p.translation.x, p.translation.y, p.translation.z),
            rotation=(p.rotation.x, p.rotation.y, p.rotation.z, p.rotation.w),
            velocity=(p.velocity.x, p.velocity.y, p.velocity.z),
            angular_velocity=(
                p.angular_velocity.x,
                p.angular_velocity.y,
                p.angular_velocity.z,
            ),
            tracker_confidence=int(p.tracker_confidence),
            timestamp=timestamp,
        )
    return None


def _device_info(dev: rs.device) -> DeviceInfo:
    def info(key: rs.camera_info) -> str:
        return dev.get_info(key) if dev.supports(key) else ""

    return DeviceInfo(
        name=info(rs.camera_info.name),
        serial_number=info(rs.camera_info.serial_number),
        firmware_version=info(rs.camera_info.firmware_version),
        product_id=info(rs.camera_info.product_id),
        product_line=info(rs.camera_info.product_line),
    )


class RealSenseBackend(PipelineBackend):
    """Pipeline of one RealSense device, selected by serial number."""

    def __init__(
        self,
        serial: str = "",
        ctx: rs.context | None = None,
        logger: LoggerType | None = None,
    ) -> None:
        self.logger = logger or Logger.get_logger("camera.realsense")
        self.ctx = ctx or rs.context()
        devices = list(self.ctx.query_devices())
        if not devices:
            raise CameraConnectionError("No RealSense device connected")
        if serial:
            matches = [
                d for d in devices
                if d.get_info(rs.camera_info.serial_number) == serial
            ]
            if not matches:
                raise CameraConnectionError(f"No RealSense device with serial {serial}")
            self.device = matches[0]
        else:
            self.device = devices[0]
        self.serial = self.device.get_info(rs.camera_info.serial_number)
        self.pipeline = rs.pipeline(self.ctx)
        self.profile: rs.pipeline_profile | None = None
        self._callback: FramesetCallback | None = None
        self._lock = threading.Lock()

    @staticmethod
    def list_devices(ctx: rs.context | None = None) -> list[DeviceInfo]:
        ctx = ctx or rs.context()
        return [_device_info(d) for d in ctx.query_devices()]

    def device_info(self) -> DeviceInfo:
        return _device_info(self.device)

    def supported_profiles(self) -> dict[str, list[StreamProfile]]:
        result: dict[str, list[StreamProfile]] = {}
        for sensor in self.device.query_sensors():
            name = sensor.get_info(rs.camera_info.name)
            profiles = []
            for p in sensor.get_stream_profiles():
                converted = _convert_profile(p, with_intrinsics=False)
                if converted is not None:
                    profiles.append(converted)
            result[name] = profiles
        return result

    def _to_rs_config(self, config: StreamConfig) -> rs.config:
        cfg = rs.config()
        cfg.enable_device(self.serial)
        for req in config.requests():
            stream_type = RS_STREAM[req.stream.kind]
            if req.width is None or req.height is None:
                cfg.enable_stream(stream_type, req.stream.index)
            else:
                cfg.enable_stream(
                    stream_type,
                    req.stream.index,
                    req.width,
                    req.height,
                    getattr(rs.format, req.format) if req.format else rs.format.any,
                    req.fps or 0,
                )
        return cfg

    def can_resolve(self, config: StreamConfig) -> bool:
        cfg = self._to_rs_config(config)
        return bool(cfg.can_resolve(rs.pipeline_wrapper(self.pipeline)))

    def resolve(self, config: StreamConfig) -> list[StreamProfile]:
        cfg = self._to_rs_config(config)
        try:
            profile = cfg.resolve(rs.pipeline_wrapper(self.pipeline))
        except RuntimeError as e:
            raise PipelineError(f"Cannot resolve {config!r}: {e}") from e
        return self._convert_streams(profile)

    def _convert_streams(self, profile: rs.pipeline_profile) -> list[StreamProfile]:
        result = []
        for p in profile.get_streams():
            converted = _convert_profile(p)
            if converted is not None:
                result.append(converted)
        return result

    def _on_frame(self, frame: rs.frame) -> None:
        callback = self._callback
        if callback is None:
            return
        frames: Sequence[rs.frame] = (
            frame.as_frameset() if frame.is_frameset() else [frame]
        )
        views = []
        for f in frames:
            view = _convert_frame(f)
            if view is not None:
                views.append(view)
        try:
            callback(views)
        except Exception as e:
            # exceptions must not reach the SDK thread
            self.logger.error(f"Frame callback failed: {e}")

    def start(self, config: StreamConfig, callback: FramesetCallback) -> list[StreamProfile]:
        with self._lock:
            self._callback = callback
            try:
                self.profile = self.pipeline.start(self._to_rs_config(config), self._on_frame)
            except RuntimeError as e:
                self._callback = None
                raise PipelineError(f"Failed to start pipeline: {e}") from e
            return self._convert_streams(self.profile)

    def stop(self) -> None:
        with self._lock:
            if self.profile is None:
                return
            try:
                self.pipeline.stop()
            except RuntimeError as e:
                raise PipelineError(f"Failed to stop pipeline: {e}") from e
            finally:
                self.profile = None
                self._callback = None

    def active_profiles(self) -> list[StreamProfile]:
        if self.profile is None:
            return []
        return self._convert_streams(self.profile)
