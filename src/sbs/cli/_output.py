"""Unified CLI output formatting utilities.

Every sbs command supports a text mode and a ``--json`` mode. JSON goes to
stdout on success and to stderr on error; nothing else is printed in JSON mode.
"""
from __future__ import annotations

import json
import sys
from typing import Any, Dict, Optional

from sbs.core.exceptions import SbsError


class OutputFormatter:
    """Unified output formatter for CLI commands."""

    def __init__(self, json_mode: bool = False, indent: int = 2):
        self.json_mode = json_mode
        self.indent = indent

    def success(
        self,
        data: Dict[str, Any],
        message: str,
        *,
        status: str = "success",
    ) -> None:
        """Print ``message`` in text mode, ``{"status": ..., **data}`` in JSON mode."""
        if self.json_mode:
            output = {"status": status, **data}
            print(json.dumps(output, indent=self.indent, default=str))
        else:
            print(message)

    def error(
        self,
        error: Exception | str,
        message: Optional[str] = None,
        *,
        error_code: str = "error",
    ) -> None:
        """Report an error on stderr.

        In JSON mode an :class:`SbsError` contributes its structured context.
        """
        msg = message or str(error)
        if self.json_mode:
            output: Dict[str, Any] = {"error": error_code, "message": msg}
            if isinstance(error, SbsError):
                payload = error.to_json_error()
                output["type"] = payload.get("code")
                if payload.get("context"):
                    output["context"] = payload["context"]
            print(json.dumps(output, indent=self.indent, default=str), file=sys.stderr)
        else:
            print(f"Error: {msg}", file=sys.stderr)

    def json_output(self, data: Any) -> None:
        print(json.dumps(data, indent=self.indent, default=str))

    def text(self, message: str) -> None:
        if not self.json_mode:
            print(message)


__all__ = ["OutputFormatter"]
