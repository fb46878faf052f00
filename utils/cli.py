"""Subcommand dispatcher shared by the command line tools."""

from __future__ import annotations

import argparse
from dataclasses import dataclass, field
from typing import Callable, Iterable, Optional

from utils.error_tracker import CameraError, ErrorTracker
from utils.logger import Logger, LoggerType

LOG_LEVELS = ("TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR")


@dataclass
class Command:
    """One subcommand: name, handler and its argument setup."""

    name: str
    handler: Callable[[argparse.Namespace], None]
    add_arguments: Optional[Callable[[argparse.ArgumentParser], None]] = None
    help: str | None = None


@dataclass
class CommandDispatcher:
    """Build an ``argparse`` parser from commands and run the chosen one.

    Every subcommand also accepts ``--log-level``; camera errors raised by a
    handler are logged and turned into exit status 1.
    """

    description: str
    commands: Iterable[Command] = field(default_factory=list)
    prog: str | None = None

    def _build_parser(self) -> argparse.ArgumentParser:
        common = argparse.ArgumentParser(add_help=False)
        common.add_argument(
            "--log-level",
            choices=LOG_LEVELS,
            type=str.upper,
            help="Console and file log level",
        )
        parser = argparse.ArgumentParser(prog=self.prog, description=self.description)
        subparsers = parser.add_subparsers(dest="command")
        for cmd in self.commands:
            sp = subparsers.add_parser(cmd.name, help=cmd.help, parents=[common])
            if cmd.add_arguments:
                cmd.add_arguments(sp)
            sp.set_defaults(func=cmd.handler)
        return parser

    def run(
        self,
        args: Optional[list[str]] = None,
        *,
        logger: Optional[LoggerType] = None,
        track_exceptions: bool = True,
    ) -> None:
        """Parse ``args`` and dispatch.

        ``track_exceptions`` installs the :class:`ErrorTracker` hooks so
        registered cleanups (pipeline shutdown) run on crashes and signals.
        """
        logger = logger or Logger.get_logger("utils.cli")
        if track_exceptions:
            ErrorTracker.install_excepthook()
            ErrorTracker.install_signal_handlers()

        parser = self._build_parser()
        try:
            ns = parser.parse_args(args)
        except SystemExit as exc:  # argparse calls sys.exit() on error
            if exc.code:
                logger.error(f"Argument parsing failed: {exc}")
            raise

        if not hasattr(ns, "func"):
            parser.print_help()
            return
        if ns.log_level:
            Logger.configure(level=ns.log_level)
        try:
            ns.func(ns)
        except CameraError as e:
            logger.error(f"{ns.command}: {e}")
            raise SystemExit(1) from e
