"""Shared helper modules used across the project.

The :mod:`utils` package contains lightweight helpers for logging, YAML
configuration, error types and CLI dispatching. These utilities are used by
the camera, middleware and bridge packages alike.
"""

from .logger import CaptureStderrToLogger, Logger, LoggerType, Throttle
from .settings import BridgeCfg, LoggingCfg, bridge, logging, paths
from .error_tracker import (
    CameraConnectionError,
    CameraError,
    CatalogError,
    ErrorTracker,
    PipelineError,
)

__all__ = [
    "BridgeCfg",
    "CameraConnectionError",
    "CameraError",
    "CaptureStderrToLogger",
    "CatalogError",
    "ErrorTracker",
    "Logger",
    "LoggerType",
    "LoggingCfg",
    "PipelineError",
    "Throttle",
    "bridge",
    "logging",
    "paths",
]
