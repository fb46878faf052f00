"""RealSense to middleware bridge.

:class:`RealSenseBase` holds the stream plumbing; the device families add
the frames their hardware produces and :func:`create_bridge` picks one for the
connected camera.
"""

from .base import RealSenseBase
from .d400 import RealSenseD400, RealSenseD400Imu
from .factory import create_bridge, family_for
from .pipeline import PipelineController
from .t265 import RealSenseT265

__all__ = [
    "PipelineController",
    "RealSenseBase",
    "RealSenseD400",
    "RealSenseD400Imu",
    "RealSenseT265",
    "create_bridge",
    "family_for",
]
