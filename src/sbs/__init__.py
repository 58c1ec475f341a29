"""
sbs - work sessions for issues and ad-hoc tasks

sbs provisions a git branch, a git worktree, a tmux session and an isolated
sandbox per work item, tracks whether each session is alive, stopped or
abandoned, and reconciles resources that drifted out of sync.
"""

__version__ = "1.0.0"
__all__ = ["__version__"]
