"""Resource gateways: the only code that talks to git, tmux and the sandbox CLI.

Session logic depends on the protocols in :mod:`sbs.core.gateways.base`;
tests substitute in-memory fakes.
"""
from __future__ import annotations

from .base import SandboxGateway, TerminalGateway, VersionControlGateway
from .git import GitGateway
from .sandbox import SandboxCliGateway
from .tmux import TmuxGateway

__all__ = [
    "TerminalGateway",
    "SandboxGateway",
    "VersionControlGateway",
    "GitGateway",
    "TmuxGateway",
    "SandboxCliGateway",
]
