"""
Typed errors for the plugin engine.

Only truly exceptional conditions raise. Validation and lifecycle
operations report problems through their structured results instead.
Each exception carries an ErrorCode so callers (the CLI) can map it to a
user-facing TypedError.
"""

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field


class ErrorCode(str, Enum):
    """Error codes for programmatic handling."""

    UNKNOWN_FRAMEWORK = "unknown_framework"
    ISOLATION_VIOLATION = "isolation_violation"
    REGISTRY_ENTRY_NOT_FOUND = "registry_entry_not_found"
    REGISTRY_LOCKED = "registry_locked"
    BACKUP_NOT_FOUND = "backup_not_found"
    STEP_FAILED = "step_failed"
    UNKNOWN_ERROR = "unknown_error"


class AiwgError(Exception):
    """Base class for exceptions raised by the engine."""

    code: ErrorCode = ErrorCode.UNKNOWN_ERROR


class UnknownFrameworkError(AiwgError):
    """A namespace that is neither `shared` nor a known framework id."""

    code = ErrorCode.UNKNOWN_FRAMEWORK

    def __init__(self, framework: str):
        super().__init__(f"Unknown framework: {framework}")
        self.framework = framework


class IsolationError(AiwgError):
    """A write would cross a framework isolation boundary."""

    code = ErrorCode.ISOLATION_VIOLATION

    def __init__(self, framework: str, path: str):
        super().__init__(f"Framework '{framework}' may not write to {path}")
        self.framework = framework
        self.path = path


class RegistryEntryNotFoundError(AiwgError):
    code = ErrorCode.REGISTRY_ENTRY_NOT_FOUND

    def __init__(self, plugin_id: str):
        super().__init__(f"Plugin '{plugin_id}' is not in the registry")
        self.plugin_id = plugin_id


class RegistryLockError(AiwgError):
    code = ErrorCode.REGISTRY_LOCKED

    def __init__(self, lock_path: str, timeout: float):
        super().__init__(f"Timed out after {timeout:g}s waiting for registry lock: {lock_path}")
        self.lock_path = lock_path


class BackupNotFoundError(AiwgError):
    code = ErrorCode.BACKUP_NOT_FOUND

    def __init__(self, migration_id: str):
        super().__init__(f"Backup not found for migration ID: {migration_id}")
        self.migration_id = migration_id


class TransactionError(AiwgError):
    """A step failed; previously applied steps have been undone."""

    code = ErrorCode.STEP_FAILED

    def __init__(self, detail: str, cause: BaseException):
        super().__init__(f"{detail}: {cause}")
        self.detail = detail
        self.cause = cause


class TypedError(BaseModel):
    """A structured error with user-friendly info."""

    code: ErrorCode = Field(description="Error code for programmatic handling")
    title: str = Field(description="User-friendly title")
    message: str = Field(description="Detailed message explaining what went wrong")
    hint: Optional[str] = Field(default=None, description="Suggested next step")


ERROR_DEFINITIONS: dict[ErrorCode, dict[str, Any]] = {
    ErrorCode.UNKNOWN_FRAMEWORK: {
        "title": "Unknown Framework",
        "hint": "Use 'shared' or one of the frameworks present in the workspace.",
    },
    ErrorCode.ISOLATION_VIOLATION: {
        "title": "Isolation Violation",
        "hint": "Framework-specific content belongs under its own namespace, not shared/.",
    },
    ErrorCode.REGISTRY_ENTRY_NOT_FOUND: {
        "title": "Plugin Not Registered",
        "hint": "Check the plugin id with the 'status' command.",
    },
    ErrorCode.REGISTRY_LOCKED: {
        "title": "Registry Busy",
        "hint": "Another install or uninstall is running. Retry when it finishes.",
    },
    ErrorCode.BACKUP_NOT_FOUND: {
        "title": "Backup Not Found",
        "hint": "Only migrations run with backup enabled can be rolled back.",
    },
    ErrorCode.STEP_FAILED: {
        "title": "Operation Failed",
        "hint": "Applied changes were rolled back. See the error for the failing step.",
    },
    ErrorCode.UNKNOWN_ERROR: {
        "title": "Error",
        "hint": None,
    },
}


def describe_error(error: BaseException) -> TypedError:
    """Map an exception to a user-facing TypedError."""
    code = error.code if isinstance(error, AiwgError) else ErrorCode.UNKNOWN_ERROR
    definition = ERROR_DEFINITIONS[code]
    return TypedError(
        code=code,
        title=definition["title"],
        message=str(error),
        hint=definition["hint"],
    )
