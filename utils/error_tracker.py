"""Camera error types and process-wide crash/signal handling."""

from __future__ import annotations

import signal
import sys
import threading
import traceback
from typing import Callable, List, Optional

from utils.logger import Logger


class CameraError(Exception):
    """Base class for camera related errors."""


class CameraConnectionError(CameraError):
    """No device, or the requested device cannot be opened."""


class PipelineError(CameraError):
    """The SDK failed to resolve, start or stop the pipeline."""


class CatalogError(CameraError, KeyError):
    """A stream has no entry in one of the static stream tables."""

    def __str__(self) -> str:
        # KeyError would repr() the message
        return str(self.args[0]) if self.args else ""


class ErrorTracker:
    """Runs registered cleanups when the process dies or is signalled.

    Cleanups run once, newest first, so a bridge registered after its node
    is shut down before the node goes away.
    """

    logger = Logger.get_logger("utils.error_tracker")
    _installed = False
    _orig_hook: Optional[Callable[..., None]] = None
    _cleanup_funcs: List[Callable[[], None]] = []
    _lock = threading.Lock()

    @classmethod
    def register_cleanup(cls, func: Callable[[], None]) -> None:
        with cls._lock:
            cls._cleanup_funcs.append(func)

    @classmethod
    def unregister_cleanup(cls, func: Callable[[], None]) -> None:
        with cls._lock:
            if func in cls._cleanup_funcs:
                cls._cleanup_funcs.remove(func)

    @classmethod
    def _run_cleanup(cls) -> None:
        with cls._lock:
            funcs = cls._cleanup_funcs[::-1]
            cls._cleanup_funcs.clear()
        for func in funcs:
            try:
                func()
            except Exception as e:
                cls.logger.error(f"Cleanup {getattr(func, '__qualname__', func)} failed: {e}")

    @classmethod
    def install_excepthook(cls) -> None:
        """Log unhandled exceptions, then run the cleanups."""
        if cls._installed:
            return
        cls._orig_hook = sys.excepthook

        def _hook(exc_type, exc, tb) -> None:
            message = "".join(traceback.format_exception(exc_type, exc, tb))
            cls.logger.error(f"Unhandled exception:\n{message}")
            cls._run_cleanup()
            if cls._orig_hook:
                cls._orig_hook(exc_type, exc, tb)

        sys.excepthook = _hook
        cls._installed = True
        cls.logger.debug("Global exception hook installed")

    @classmethod
    def install_signal_handlers(cls) -> None:
        """Run the cleanups on SIGINT/SIGTERM and exit with 128 + signum."""

        def _handler(signum, frame) -> None:
            cls.logger.info(f"Received {signal.Signals(signum).name}, shutting down")
            cls._run_cleanup()
            raise SystemExit(128 + signum)

        signal.signal(signal.SIGINT, _handler)
        signal.signal(signal.SIGTERM, _handler)
