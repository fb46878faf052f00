"""Ownership of the SDK pipeline: start, stop and restart."""

from __future__ import annotations

import threading
import time
from typing import Callable

from camera.backend import FramesetCallback, PipelineBackend, StreamConfig, StreamProfile
from utils.error_tracker import PipelineError
from utils.logger import Logger, LoggerType

ProfilesHook = Callable[[list[StreamProfile]], None]


class PipelineController:
    """Starts the pipeline with the frame callback installed.

    ``on_resolved`` receives the resolved profiles before streaming begins,
    so calibration is in place before the first frame arrives.
    """

    def __init__(
        self,
        backend: PipelineBackend,
        callback: FramesetCallback,
        on_resolved: ProfilesHook | None = None,
        restart_delay: float = 0.2,
        logger: LoggerType | None = None,
    ) -> None:
        self.backend = backend
        self.callback = callback
        self.on_resolved = on_resolved
        self.restart_delay = restart_delay
        self.logger = logger or Logger.get_logger("bridge.pipeline")
        self.running = False
        self._lock = threading.RLock()

    def start(self, config: StreamConfig) -> bool:
        """Resolve ``config`` and start streaming.

        Returns ``False`` without touching the device when no stream is
        requested, since the SDK would then pick its own default streams.
        Raises :class:`PipelineError` when the SDK fails.
        """
        with self._lock:
            if self.running:
                self.stop()
            if not len(config):
                self.logger.warning("No stream enabled, pipeline not started")
                return False
            try:
                profiles = self.backend.resolve(config)
                if self.on_resolved is not None:
                    self.on_resolved(profiles)
                self.backend.start(config, self.callback)
            except PipelineError as e:
                self.logger.error(f"Pipeline start failed: {e}")
                raise
            self.running = True
            self.logger.info(f"Pipeline started with {len(config)} stream(s)")
            return True

    def stop(self) -> None:
        """Stop streaming; a no-op when not running."""
        with self._lock:
            if not self.running:
                return
            self.running = False
            try:
                self.backend.stop()
            except PipelineError as e:
                self.logger.error(f"Pipeline stop failed: {e}")
                raise
            self.logger.info("Pipeline stopped")

    def restart(self, config: StreamConfig) -> bool:
        """Stop, let the USB device settle, start with ``config``."""
        with self._lock:
            self.stop()
            # the device is not reacquired reliably without this pause
            time.sleep(self.restart_delay)
            return self.start(config)

    def can_resolve(self, config: StreamConfig) -> bool:
        return self.backend.can_resolve(config)
