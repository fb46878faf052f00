"""In-memory stand-ins for the SDK pipeline and a controllable clock."""

from __future__ import annotations

import numpy as np

from camera.backend import (
    DeviceInfo,
    Intrinsics,
    MotionFrame,
    MotionIntrinsics,
    PipelineBackend,
    PoseFrame,
    StreamConfig,
    StreamProfile,
    VideoFrame,
)
from camera.catalog import (
    ACCEL,
    COLOR,
    CV_FORMAT,
    DEPTH,
    FISHEYE1,
    FISHEYE2,
    GYRO,
    INFRA1,
    INFRA2,
    POSE,
    STREAM_FORMAT,
    StreamId,
    is_video,
)
from utils.error_tracker import PipelineError

STEREO_MODES = {(640, 480, 30), (640, 480, 15), (1280, 720, 30), (1280, 720, 15)}
FISHEYE_MODES = {(848, 800, 30)}

D400_MODES: dict[StreamId, set] = {
    COLOR: STEREO_MODES,
    DEPTH: STEREO_MODES,
    INFRA1: STEREO_MODES,
    INFRA2: STEREO_MODES,
}
D400_IMU_MODES: dict[StreamId, set] = {**D400_MODES, ACCEL: set(), GYRO: set()}
T265_MODES: dict[StreamId, set] = {
    FISHEYE1: FISHEYE_MODES,
    FISHEYE2: FISHEYE_MODES,
    ACCEL: set(),
    GYRO: set(),
    POSE: set(),
}


class FakeClock:
    """Nanosecond clock the test moves by hand."""

    def __init__(self, ns: int = 1_000_000_000) -> None:
        self.ns = ns

    def __call__(self) -> int:
        return self.ns

    def advance(self, seconds: float) -> None:
        self.ns += int(seconds * 1e9)


def fake_intrinsics(width: int, height: int) -> Intrinsics:
    return Intrinsics(
        width=width,
        height=height,
        fx=width * 0.9,
        fy=width * 0.9,
        ppx=width / 2 - 0.5,
        ppy=height / 2 + 0.5,
        coeffs=(0.1, -0.2, 0.001, 0.002, 0.03),
        model="distortion.brown_conrady",
    )


class FakeBackend(PipelineBackend):
    """Device that supports the video modes listed in ``modes``.

    Non-video streams present in ``modes`` are always resolvable. Every
    ``start`` records a snapshot of the config it was started with.
    """

    def __init__(self, modes: dict[StreamId, set], name: str = "Fake D435") -> None:
        self.modes = modes
        self.name = name
        self.callback = None
        self.config: StreamConfig | None = None
        self.starts: list[dict] = []
        self.stops = 0
        self.fail_starts = 0
        self.motion_intrinsics = MotionIntrinsics(
            data=((1.01, 0.0, 0.0, 0.1), (0.0, 0.99, 0.0, 0.2), (0.0, 0.0, 1.0, 0.3)),
            noise_variances=(0.001, 0.002, 0.003),
            bias_variances=(0.01, 0.02, 0.03),
        )

    @property
    def running(self) -> bool:
        return self.callback is not None

    def device_info(self) -> DeviceInfo:
        return DeviceInfo(
            name=self.name,
            serial_number="000000000001",
            firmware_version="5.13.0.50",
            product_id="0B07",
        )

    def supported_profiles(self) -> dict[str, list[StreamProfile]]:
        profiles = []
        for stream, modes in self.modes.items():
            fmt = STREAM_FORMAT[stream.kind]
            if not modes:
                profiles.append(StreamProfile(stream, fmt, 200))
            for w, h, fps in sorted(modes):
                profiles.append(StreamProfile(stream, fmt, fps, w, h))
        return {"Fake Sensor": profiles}

    def can_resolve(self, config: StreamConfig) -> bool:
        for req in config.requests():
            if req.stream not in self.modes:
                return False
            if req.width is not None and (
                (req.width, req.height, req.fps) not in self.modes[req.stream]
            ):
                return False
        return True

    def resolve(self, config: StreamConfig) -> list[StreamProfile]:
        if not self.can_resolve(config):
            raise PipelineError(f"Cannot resolve {config!r}")
        profiles = []
        for req in config.requests():
            fmt = STREAM_FORMAT[req.stream.kind]
            if is_video(req.stream):
                profiles.append(
                    StreamProfile(
                        req.stream,
                        fmt,
                        req.fps,
                        req.width,
                        req.height,
                        intrinsics=fake_intrinsics(req.width, req.height),
                    )
                )
            elif req.stream in (ACCEL, GYRO):
                profiles.append(
                    StreamProfile(
                        req.stream, fmt, 200, motion_intrinsics=self.motion_intrinsics
                    )
                )
            else:
                profiles.append(StreamProfile(req.stream, fmt, 200))
        return profiles

    def start(self, config, callback):
        if self.fail_starts:
            self.fail_starts -= 1
            raise PipelineError("Failed to start pipeline: device busy")
        profiles = self.resolve(config)
        self.config = config
        self.callback = callback
        self.starts.append(config.snapshot())
        return profiles

    def stop(self) -> None:
        self.stops += 1
        self.callback = None

    def active_profiles(self) -> list[StreamProfile]:
        if self.config is None or not self.running:
            return []
        return self.resolve(self.config)

    def emit(self, frames) -> None:
        """Deliver one frameset as the SDK callback thread would."""
        assert self.callback is not None, "pipeline not started"
        self.callback(list(frames))

    def emit_active(self, fill: int = 7) -> None:
        """Deliver one frameset with a frame for every configured stream."""
        frames = []
        for req in self.config.requests():
            if is_video(req.stream):
                frames.append(video_frame(req.stream, req.width, req.height, fill))
            elif req.stream == POSE:
                frames.append(pose_frame())
            else:
                frames.append(MotionFrame(req.stream, (0.1, 9.8, 0.2)))
        self.emit(frames)


def video_frame(stream: StreamId, width: int, height: int, fill: int = 7) -> VideoFrame:
    fmt = CV_FORMAT[stream.kind]
    shape = (height, width) if fmt.channels == 1 else (height, width, fmt.channels)
    data = np.full(shape, fill, dtype=fmt.dtype).tobytes()
    itemsize = np.dtype(fmt.dtype).itemsize
    return VideoFrame(stream, width, height, data, stride=width * fmt.channels * itemsize)


def pose_frame(confidence: int = 3) -> PoseFrame:
    return PoseFrame(
        POSE,
        translation=(1.0, 2.0, 3.0),
        rotation=(0.0, 0.0, 0.0, 1.0),
        velocity=(0.1, 0.2, 0.3),
        angular_velocity=(0.01, 0.02, 0.03),
        tracker_confidence=confidence,
    )


def make_bridge(cls, modes, overrides=None, intra_process=False):
    """Initialize a bridge of family ``cls`` over a fake device."""
    from middleware.local import LocalNode

    backend = FakeBackend(modes)
    clock = FakeClock()
    node = LocalNode(
        "realsense",
        parameter_overrides=overrides,
        use_intra_process_comms=intra_process,
        clock=clock,
    )
    bridge = cls(backend, node, restart_delay=0)
    bridge.initialize()
    return bridge, node, backend, clock
