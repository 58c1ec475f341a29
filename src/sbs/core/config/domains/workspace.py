"""Domain-specific configuration for workspace provisioning."""
from __future__ import annotations

from functools import cached_property
from pathlib import Path
from typing import List

from ..base import BaseDomainConfig


class WorkspaceConfig(BaseDomainConfig):
    def _config_section(self) -> str:
        return "workspace"

    @cached_property
    def worktree_base_path(self) -> Path:
        from sbs.core.utils.paths import expand_path

        return expand_path(self.section.get("worktree_base_path") or "~/.sbs-worktrees")

    @cached_property
    def work_issue_script(self) -> str:
        return str(self.section.get("work_issue_script") or "")

    @cached_property
    def tmux_command(self) -> str:
        return str(self.section.get("tmux_command") or "")

    @cached_property
    def tmux_command_args(self) -> List[str]:
        return [str(a) for a in (self.section.get("tmux_command_args") or [])]

    @cached_property
    def no_command(self) -> bool:
        return bool(self.section.get("no_command", False))

    def launch_command(self) -> List[str]:
        """Command to run inside a new tmux session (empty list = plain shell)."""
        if self.no_command:
            return []
        if self.tmux_command:
            return [self.tmux_command, *self.tmux_command_args]
        if self.work_issue_script:
            return [str(Path(self.work_issue_script).expanduser()), *self.tmux_command_args]
        return []


__all__ = ["WorkspaceConfig"]
