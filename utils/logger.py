"""Logging helpers built on top of loguru."""

from __future__ import annotations

import os
import sys
import threading
import time
from datetime import datetime
from pathlib import Path
from typing import Callable, Hashable

from loguru import logger as _logger
from loguru._logger import Logger as LoguruLogger

from utils.settings import logging as LOGCFG

LoggerType = LoguruLogger

_lock = threading.Lock()
_is_configured = False
_log_dir = LOGCFG.log_dir
_log_file: Path | None = None


class Logger:
    """Project-wide logger wrapper using loguru and global config.

    Sinks are queued (``enqueue=True``): records emitted on the SDK frame
    thread are written by loguru's worker, never inline.
    """

    @staticmethod
    def _configure(level: str, json_format: bool) -> None:
        global _is_configured, _log_file
        _logger.remove()
        os.makedirs(_log_dir, exist_ok=True)
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        suffix = ".log.json" if json_format else ".log"
        _log_file = Path(_log_dir) / f"{timestamp}{suffix}"
        _logger.add(
            sys.stdout,
            level=level,
            format=LOGCFG.log_format,
            enqueue=True,
        )
        _logger.add(
            _log_file,
            level=level,
            serialize=json_format,
            format=LOGCFG.log_file_format,
            rotation=LOGCFG.rotation,
            retention=LOGCFG.retention,
            enqueue=True,
        )
        _is_configured = True

    @staticmethod
    def get_logger(
        name: str, level: str = None, json_format: bool = None
    ) -> LoguruLogger:
        """
        Return a loguru logger bound to ``name``.
        Sinks are set up from the global config on first call.
        """
        with _lock:
            if not _is_configured:
                Logger._configure(
                    level or LOGCFG.level,
                    json_format if json_format is not None else LOGCFG.json,
                )
        return _logger.bind(module=name)

    @staticmethod
    def configure(
        level: str = None, log_dir: str | Path = None, json_format: bool = None
    ) -> None:
        """Replace the sinks, e.g. after the YAML config is loaded."""
        global _log_dir
        with _lock:
            _log_dir = Path(log_dir) if log_dir is not None else LOGCFG.log_dir
            Logger._configure(
                level or LOGCFG.level,
                json_format if json_format is not None else LOGCFG.json,
            )

    @staticmethod
    def log_file() -> Path | None:
        """Path of the current file sink."""
        return _log_file


class Throttle:
    """Let a message through at most once per ``period`` seconds per key.

    Used for warnings raised from per-frame code paths.
    """

    def __init__(
        self, period: float = 5.0, clock: Callable[[], float] = time.monotonic
    ) -> None:
        self.period = period
        self._clock = clock
        self._last: dict[Hashable, float] = {}
        self._lock = threading.Lock()

    def __call__(self, key: Hashable) -> bool:
        now = self._clock()
        with self._lock:
            last = self._last.get(key)
            if last is not None and now - last < self.period:
                return False
            self._last[key] = now
            return True


class CaptureStderrToLogger:
    """
    Context manager: redirects C/C++ stderr (fd=2) to the provided logger.

    librealsense reports USB and firmware problems straight to stderr; inside
    this block they end up in the project log instead.
    """

    def __init__(self, logger, level: str = "WARNING", prefix: str = "[librealsense]"):
        self.logger = logger
        self.level = level
        self.prefix = prefix
        self._saved_fd: int | None = None
        self._write_fd: int | None = None
        self._reader: threading.Thread | None = None

    def _pump(self, read_fd: int) -> None:
        with os.fdopen(read_fd, "r", errors="replace") as stream:
            for line in stream:
                line = line.rstrip()
                if line:
                    self.logger.log(self.level, f"{self.prefix} {line}")

    def __enter__(self):
        sys.stderr.flush()
        self._saved_fd = os.dup(2)
        read_fd, self._write_fd = os.pipe()
        os.dup2(self._write_fd, 2)
        self._reader = threading.Thread(target=self._pump, args=(read_fd,), daemon=True)
        self._reader.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        sys.stderr.flush()
        os.dup2(self._saved_fd, 2)
        # closing both write ends lets the reader see EOF
        os.close(self._write_fd)
        os.close(self._saved_fd)
        self._reader.join(timeout=0.2)
