"""
Auto-discovery CLI dispatcher for sbs.

Scans ``sbs/cli/commands`` and registers every public module as a
subcommand. Adding a new command = adding a .py file there.
"""

from __future__ import annotations

import argparse
import importlib
import logging
import sys
from collections.abc import Callable
from functools import lru_cache
from pathlib import Path
from typing import Any

from sbs.core.exceptions import SbsError

logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def discover_commands() -> dict[str, dict[str, Any]]:
    """Discover commands under cli/commands.

    Returns:
        Dict mapping command name to ``module`` / ``summary`` /
        ``register_args`` / ``main``.
    """
    commands_dir = Path(__file__).parent / "commands"
    commands: dict[str, dict[str, Any]] = {}
    if not commands_dir.exists():
        return commands

    for item in sorted(commands_dir.glob("*.py")):
        if item.name.startswith("_"):
            continue
        cmd_name = item.stem
        try:
            module = importlib.import_module(f"sbs.cli.commands.{cmd_name}")
        except ImportError as e:
            print(f"Warning: Could not import command {cmd_name}: {e}", file=sys.stderr)
            continue
        commands[cmd_name] = {
            "module": module,
            "summary": getattr(module, "SUMMARY", cmd_name),
            "register_args": getattr(module, "register_args", None),
            "main": getattr(module, "main", None),
        }
    return commands


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser with auto-discovered commands."""
    parser = argparse.ArgumentParser(
        prog="sbs",
        description="sbs - sandboxed work-item sessions (git worktree + tmux + sandbox)",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {_get_version()}",
    )

    subparsers = parser.add_subparsers(
        dest="command",
        title="commands",
        description="Available commands",
        metavar="<command>",
    )

    for cmd_name, cmd_info in sorted(discover_commands().items()):
        primary_name = cmd_name.replace("_", "-")
        aliases = [cmd_name] if primary_name != cmd_name else []
        cmd_parser = subparsers.add_parser(
            primary_name,
            aliases=aliases,
            help=cmd_info["summary"],
        )
        if cmd_info["register_args"]:
            cmd_info["register_args"](cmd_parser)
        if cmd_info["main"]:
            cmd_parser.set_defaults(_func=cmd_info["main"])

    return parser


def _get_version() -> str:
    from sbs import __version__

    return __version__


def _configure_logging() -> None:
    """File logging per ``logging`` config; never to stdout/stderr.

    A broken config must not prevent the command from reporting it, so
    configuration errors here fall back to silencing console logging and
    the command itself surfaces the error.
    """
    from sbs.core.config.domains import LoggingConfig
    from sbs.core.utils.logging import configure_stdlib_logging, silence_console_logging

    try:
        cfg = LoggingConfig()
        enabled = cfg.enabled
        log_path, level = cfg.log_path, cfg.level
    except SbsError:
        silence_console_logging()
        return

    if not enabled:
        silence_console_logging()
        return
    try:
        configure_stdlib_logging(log_path=log_path, level=level)
    except OSError:
        silence_console_logging()


def main(argv: list[str] | None = None) -> int:
    """
    Main entry point for the sbs CLI.

    Returns:
        Exit code (0 for success, non-zero for errors)
    """
    if argv is None:
        argv = sys.argv[1:]

    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 0

    _configure_logging()

    func: Callable[[argparse.Namespace], int] | None = getattr(args, "_func", None)
    if func is None:
        parser.print_help()
        return 1

    json_mode = bool(getattr(args, "json", False))
    try:
        return func(args)
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        return 130
    except (SbsError, OSError) as e:
        from sbs.cli._output import OutputFormatter

        logger.error("sbs %s failed: %s", args.command, e)
        OutputFormatter(json_mode=json_mode).error(e, error_code=f"{args.command}_error")
        return 1


if __name__ == "__main__":
    sys.exit(main())
