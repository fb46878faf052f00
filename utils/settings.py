"""Project wide configuration dataclasses and default values."""

from dataclasses import dataclass, field
from pathlib import Path

# Root dir
BASE_DIR = Path(__file__).resolve().parent.parent


@dataclass(frozen=True)
class Paths:
    """
    Dataclass aggregating the filesystem paths used in the project.
    """

    CONF_DIR: Path = BASE_DIR / "conf"
    LOG_DIR: Path = BASE_DIR / ".logs"


paths = Paths()


@dataclass(frozen=True)
class LoggingCfg:
    """
    Logging configuration for the project.

    - level: Log level ("INFO", "DEBUG", etc.)
    - json: Enable/disable structured JSON logging.
    - log_dir: Directory where log files are stored.
    - log_format: Console log output format.
    - log_file_format: File log output format.
    - rotation: Size or age at which the log file is rotated.
    - retention: Number of rotated files kept.
    """

    level: str = "INFO"
    json: bool = True
    log_dir: Path = paths.LOG_DIR
    log_format: str = (
        "<green>{time:MM-DD HH:mm:ss}</green>"
        "[<level>{level:.3}</level>]"
        "[<cyan>{extra[module]:.16}</cyan>:<cyan>{line:<3}</cyan>]"
        "<level>{message}</level>"
    )
    log_file_format: str = "{time:YYYY-MM-DD HH:mm:ss}[{level}][{file}:{line}]{message}"
    rotation: str = "50 MB"
    retention: int = 5


logging = LoggingCfg()


@dataclass(frozen=True)
class BridgeCfg:
    """
    Camera bridge node parameters.

    - node_name: Middleware node name.
    - middleware: "local" (in-process) or "ros2".
    - serial: Serial number of the device to open, empty for the first one.
    - intra_process: Hand uniquely owned image messages to in-process
      subscribers instead of shared copies.
    - restart_delay: Pause between pipeline stop and start so the USB
      device is released (seconds).
    - spin_period: Sleep between middleware spins in the CLI loop (seconds).
    """

    node_name: str = "realsense"
    middleware: str = "local"
    serial: str = ""
    intra_process: bool = False
    restart_delay: float = 0.2  # sec
    spin_period: float = 0.01  # sec
    parameters: dict[str, object] = field(default_factory=dict)


bridge = BridgeCfg()

__all__ = [
    "Paths",
    "LoggingCfg",
    "BridgeCfg",
    "paths",
    "logging",
    "bridge",
]
