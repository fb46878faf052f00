# cli/bridge.py
"""Command line interface for the RealSense bridge."""

from __future__ import annotations

import argparse
from typing import Any

import yaml

from bridge.factory import create_bridge
from middleware.base import Node
from middleware.local import LocalNode
from utils.cli import Command, CommandDispatcher
from utils.config import DEFAULT_CONFIG_PATH, Config
from utils.error_tracker import ErrorTracker
from utils.logger import CaptureStderrToLogger, Logger
from utils.settings import BridgeCfg

logger = Logger.get_logger("cli.bridge")


def parse_overrides(items: list[str] | None) -> dict[str, Any]:
    """Turn ``NAME=VALUE`` strings into parameter overrides.

    Values are parsed as YAML, so ``true``, ``15`` and ``[1280, 720]`` keep
    their types.
    """
    overrides: dict[str, Any] = {}
    for item in items or []:
        name, sep, raw = item.partition("=")
        if not sep or not name:
            raise ValueError(f"Expected NAME=VALUE, got '{item}'")
        overrides[name.strip()] = yaml.safe_load(raw)
    return overrides


def make_node(cfg: BridgeCfg) -> Node:
    """Create the middleware node selected by ``cfg.middleware``."""
    if cfg.middleware == "local":
        return LocalNode(
            cfg.node_name,
            parameter_overrides=cfg.parameters,
            use_intra_process_comms=cfg.intra_process,
        )
    if cfg.middleware == "ros2":
        # needs a sourced ROS 2 environment
        from middleware.ros2 import Ros2Node

        return Ros2Node(cfg.node_name, parameter_overrides=cfg.parameters)
    raise ValueError(f"Unknown middleware '{cfg.middleware}'")


def spin(node: Node, period: float, cycles: int | None = None) -> None:
    """Spin ``node`` until interrupted, or for ``cycles`` iterations.

    ``spin_once`` blocks for ``period`` when nothing is pending.
    """
    done = 0
    while cycles is None or done < cycles:
        node.spin_once(timeout_sec=period)
        done += 1


def _add_run_args(parser: argparse.ArgumentParser) -> None:
    """Arguments for the ``run`` subcommand."""
    parser.add_argument(
        "--config", default=str(DEFAULT_CONFIG_PATH), help="YAML config file"
    )
    parser.add_argument(
        "--middleware", choices=("local", "ros2"), help="Override bridge.middleware"
    )
    parser.add_argument("--serial", help="Device serial number")
    parser.add_argument(
        "--set",
        dest="overrides",
        action="append",
        metavar="NAME=VALUE",
        help="Stream parameter override, e.g. Color0.enabled=true",
    )


def _run_bridge(args: argparse.Namespace) -> None:
    """Start the bridge and spin until interrupted."""
    from camera.realsense import RealSenseBackend

    Config.load(args.config)
    if args.log_level:
        # the file's logging section must not undo --log-level
        Logger.configure(
            level=args.log_level,
            log_dir=Config.get("logging.log_dir"),
            json_format=Config.get("logging.json"),
        )
    cfg = Config.bridge(
        middleware=args.middleware,
        serial=args.serial,
        parameters=parse_overrides(args.overrides),
    )

    node = make_node(cfg)
    with CaptureStderrToLogger(logger):
        backend = RealSenseBackend(serial=cfg.serial)
    bridge = create_bridge(backend, node, restart_delay=cfg.restart_delay)
    ErrorTracker.register_cleanup(bridge.shutdown)
    try:
        bridge.initialize()
        logger.info(f"Node '{node.name}' running on {cfg.middleware}, Ctrl+C to stop")
        spin(node, cfg.spin_period)
    except KeyboardInterrupt:
        logger.info("Interrupted")
    finally:
        ErrorTracker.unregister_cleanup(bridge.shutdown)
        bridge.shutdown()
        node.destroy()


def _run_devices(args: argparse.Namespace) -> None:
    """Print connected devices and the stream profiles of each sensor."""
    from camera.realsense import RealSenseBackend

    with CaptureStderrToLogger(logger):
        devices = RealSenseBackend.list_devices()
    if not devices:
        logger.warning("No RealSense device connected")
        return
    for dev in devices:
        print(
            f"{dev.name}  serial={dev.serial_number}  fw={dev.firmware_version}  "
            f"pid=0x{dev.product_id}"
        )
        backend = RealSenseBackend(serial=dev.serial_number)
        for sensor, profiles in backend.supported_profiles().items():
            print(f"  {sensor}")
            for p in profiles:
                mode = f"{p.width}x{p.height} " if p.is_video else ""
                print(f"    {p.stream} {p.format} {mode}@ {p.fps} fps")


def create_cli() -> CommandDispatcher:
    """Build the dispatcher with the bridge commands."""
    return CommandDispatcher(
        "RealSense bridge",
        [
            Command("run", _run_bridge, _add_run_args, "Run the camera bridge"),
            Command("devices", _run_devices, None, "List devices and stream profiles"),
        ],
    )


def main() -> None:
    """Entry point for the ``realsense-bridge`` script."""
    create_cli().run(logger=logger)


if __name__ == "__main__":
    main()
