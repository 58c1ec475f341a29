"""
sbs CLI package.

Commands live in ``sbs/cli/commands/`` and are discovered automatically:
adding a command = adding a module with ``SUMMARY``, ``register_args`` and
``main``.

Framework utilities for building CLI commands:
- _output: Output formatting (JSON/text modes)
- _args: Common argument registration helpers
- _utils: Repository root detection, gateway construction, prompts
"""
from ._output import OutputFormatter
from ._args import (
    add_dry_run_flag,
    add_force_flag,
    add_json_flag,
    add_repo_root_flag,
    add_standard_flags,
    add_work_item_arg,
)
from ._utils import (
    Gateways,
    build_gateways,
    confirm,
    find_repo_root_for,
    get_repo_root,
    git_factory,
)

__all__ = [
    # Output formatting
    "OutputFormatter",
    # Argument helpers
    "add_json_flag",
    "add_repo_root_flag",
    "add_work_item_arg",
    "add_force_flag",
    "add_dry_run_flag",
    "add_standard_flags",
    # Utilities
    "get_repo_root",
    "find_repo_root_for",
    "Gateways",
    "build_gateways",
    "git_factory",
    "confirm",
]
