"""Publish/subscribe middleware port.

:class:`Node` is the API the bridge is written against. :class:`LocalNode`
runs everything in one process; :mod:`middleware.ros2` adapts the same API to
rclpy and is imported only when selected.
"""

from .base import Node, Parameter, ParameterType, Publisher, Result
from .local import LocalNode, LocalSubscription

__all__ = [
    "LocalNode",
    "LocalSubscription",
    "Node",
    "Parameter",
    "ParameterType",
    "Publisher",
    "Result",
]
