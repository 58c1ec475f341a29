"""Sandbox CLI gateway (``sandbox list|delete|--name X cat``)."""
from __future__ import annotations

import logging
import subprocess
from typing import List, Optional, Sequence

from sbs.core.exceptions import GatewayError
from sbs.core.utils.subprocess import command_output, describe_failure, run_with_timeout

logger = logging.getLogger(__name__)


class SandboxCliGateway:
    def __init__(self, executable: str = "sandbox") -> None:
        self.executable = executable

    def _run(
        self,
        args: Sequence[str],
        *,
        operation: str,
        resource: str,
        text: bool = True,
        timeout: Optional[float] = None,
    ) -> subprocess.CompletedProcess:
        argv = [self.executable, *args]
        kwargs = {"capture_output": True, "text": text}
        if timeout is not None:
            kwargs["timeout"] = timeout
        try:
            return run_with_timeout(argv, timeout_type="sandbox", **kwargs)
        except (subprocess.TimeoutExpired, OSError) as exc:
            raise GatewayError(
                f"sandbox {operation} failed for {resource}: {describe_failure(exc, argv)}",
                resource=resource,
                operation=operation,
            ) from exc

    def list_sandboxes(self) -> List[str]:
        """Names (first column) from ``sandbox list``.

        A non-zero exit from ``sandbox list`` means there are no sandboxes to
        report; only a missing tool or a timeout is an error.
        """
        result = self._run(["list"], operation="list", resource="sandbox")
        if result.returncode != 0:
            logger.debug("sandbox list exited %s: %s", result.returncode, command_output(result))
            return []
        names: List[str] = []
        for line in (result.stdout or "").splitlines():
            fields = line.split()
            if fields:
                names.append(fields[0])
        return names

    def sandbox_exists(self, name: str) -> bool:
        return name in self.list_sandboxes()

    def delete_sandbox(self, name: str) -> None:
        """Delete a sandbox; one that does not exist is already in the desired state."""
        if not self.sandbox_exists(name):
            return
        result = self._run(["delete", name, "-y"], operation="delete", resource=name)
        if result.returncode != 0:
            raise GatewayError(
                f"failed to delete sandbox {name}: {command_output(result)}",
                resource=name,
                operation="delete",
            )
        logger.info("Deleted sandbox %s", name)

    def read_file(self, name: str, path: str, *, timeout: Optional[float] = None) -> bytes:
        """Return the raw bytes of ``path`` inside sandbox ``name``.

        Raises:
            GatewayError: Sandbox missing, read failed or timed out.
        """
        if not self.sandbox_exists(name):
            raise GatewayError(f"sandbox {name} does not exist", resource=name, operation="read-file")
        result = self._run(
            ["--name", name, "cat", path],
            operation="read-file",
            resource=name,
            text=False,
            timeout=timeout,
        )
        if result.returncode != 0:
            raise GatewayError(
                f"failed to read {path} from sandbox {name}: {command_output(result)}",
                resource=name,
                operation="read-file",
            )
        return result.stdout or b""


__all__ = ["SandboxCliGateway"]
