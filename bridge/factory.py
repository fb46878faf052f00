"""Pick the device family that matches the connected camera."""

from __future__ import annotations

from camera.backend import PipelineBackend
from camera.catalog import StreamKind
from middleware.base import Node
from utils.logger import Logger

from .base import RealSenseBase
from .d400 import RealSenseD400, RealSenseD400Imu
from .t265 import RealSenseT265

logger = Logger.get_logger("bridge.factory")


def family_for(backend: PipelineBackend) -> type[RealSenseBase]:
    """Choose by the stream kinds the device offers."""
    kinds = {
        p.stream.kind
        for profiles in backend.supported_profiles().values()
        for p in profiles
    }
    if StreamKind.POSE in kinds:
        return RealSenseT265
    if kinds & {StreamKind.ACCEL, StreamKind.GYRO}:
        return RealSenseD400Imu
    return RealSenseD400


def create_bridge(
    backend: PipelineBackend, node: Node, restart_delay: float = 0.2
) -> RealSenseBase:
    cls = family_for(backend)
    logger.info(f"{backend.device_info().name}: using {cls.__name__}")
    return cls(backend, node, restart_delay=restart_delay)
