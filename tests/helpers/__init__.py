"""Test helper modules for the sbs test suite.

- cache_utils: cache reset utilities for test isolation
- fakes: in-memory gateways (tmux, sandbox, git) used instead of real tools
- records: builders for session records and on-disk stores
"""
from __future__ import annotations
