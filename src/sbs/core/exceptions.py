from __future__ import annotations

from typing import Any, Dict, Mapping


class SbsError(Exception):
    """Base exception for sbs."""

    context: Dict[str, Any]

    def __init__(self, message: str = "", *, context: Mapping[str, Any] | None = None) -> None:
        super().__init__(message)
        if context is not None:
            # Store a shallow copy to avoid accidental mutation.
            self.context = dict(context)
        else:
            self.context = {}

    def to_json_error(self) -> Dict[str, Any]:
        """Return a JSON-serializable error payload."""
        return {
            "message": str(self),
            "code": self.__class__.__name__,
            "context": self.context,
        }


class ConfigError(SbsError):
    """Raised when configuration is missing, unparsable or out of range."""


class WorkItemIdError(SbsError, ValueError):
    """Raised when a work item identifier cannot be parsed."""

    def __init__(self, message: str = "", *, context: Mapping[str, Any] | None = None) -> None:
        SbsError.__init__(self, message, context=context)
        ValueError.__init__(self, message)


class SessionStoreError(SbsError):
    """Raised for session store I/O failures."""


class StoreCorruptedError(SessionStoreError):
    """Raised when the session store exists but cannot be parsed or validated."""


class StoreConflictError(SessionStoreError):
    """Raised when the store changed between a versioned load and the save."""


class SessionNotFoundError(SessionStoreError, LookupError):
    """Raised when no session record matches a namespaced ID."""


class GatewayError(SbsError, RuntimeError):
    """Raised when an external resource cannot be queried or mutated.

    Gateways raise this for "cannot tell" situations (tool missing, timeout,
    unexpected exit code). A resource that is confirmed absent is never an error.
    """

    def __init__(
        self,
        message: str,
        *,
        resource: str | None = None,
        operation: str | None = None,
        context: Mapping[str, Any] | None = None,
    ) -> None:
        ctx = dict(context or {})
        if resource:
            ctx["resource"] = resource
        if operation:
            ctx["operation"] = operation
        SbsError.__init__(self, message, context=ctx)
        RuntimeError.__init__(self, message)

    @property
    def resource(self) -> str | None:
        return self.context.get("resource")

    @property
    def operation(self) -> str | None:
        return self.context.get("operation")


class BranchDeletionError(GatewayError):
    """Raised when a branch cannot or must not be deleted."""


class StopArtifactError(SbsError):
    """Raised when a shutdown artifact is present but cannot be parsed."""


class CleanupError(SbsError):
    """A single resource failure collected during a cleanup batch."""

    def __init__(
        self,
        message: str,
        *,
        session_id: str | None = None,
        resource: str | None = None,
        operation: str | None = None,
        context: Mapping[str, Any] | None = None,
    ) -> None:
        ctx = dict(context or {})
        if session_id:
            ctx["session_id"] = session_id
        if resource:
            ctx["resource"] = resource
        if operation:
            ctx["operation"] = operation
        super().__init__(message, context=ctx)

    @property
    def session_id(self) -> str | None:
        return self.context.get("session_id")

    @property
    def resource(self) -> str | None:
        return self.context.get("resource")


class ProvisioningError(SbsError):
    """Raised when provisioning a session's resources fails part-way."""

    def __init__(
        self,
        message: str,
        *,
        session_id: str | None = None,
        step: str | None = None,
        context: Mapping[str, Any] | None = None,
    ) -> None:
        ctx = dict(context or {})
        if session_id:
            ctx["session_id"] = session_id
        if step:
            ctx["step"] = step
        super().__init__(message, context=ctx)


__all__ = [
    "SbsError",
    "ConfigError",
    "WorkItemIdError",
    "SessionStoreError",
    "StoreCorruptedError",
    "StoreConflictError",
    "SessionNotFoundError",
    "GatewayError",
    "BranchDeletionError",
    "StopArtifactError",
    "CleanupError",
    "ProvisioningError",
]
