"""promptstate Error System.

Provides structured error handling with:
- Numeric error codes for programmatic handling
- User-friendly messages
- Recovery hints
- Context for debugging
"""


from enum import IntEnum
from typing import Any


class ErrorCode(IntEnum):
    """Numeric error codes organized by category.

    Format: XYYY where X = category, YYY = specific error

    Categories:
        4xxx - Validation errors
        5xxx - Configuration errors
        6xxx - Runtime/state errors
        7xxx - IO errors
    """

    # 4xxx - Validation Errors
    SCHEMA_INVALID = 4001

    # 5xxx - Configuration Errors
    CONFIG_INVALID = 5002
    STATE_DIR_REQUIRED = 5004

    # 6xxx - Runtime Errors
    STATE_INVALID = 6001
    STATE_DIR_INSECURE = 6004

    # 7xxx - IO Errors
    FILE_NOT_FOUND = 7003
    FILE_PERMISSION_DENIED = 7004
    FILE_WRITE_FAILED = 7005
    LOCK_FAILED = 7006

    @property
    def category(self) -> str:
        """Get the error category name."""
        prefix = self.value // 1000
        return {
            4: "validation",
            5: "config",
            6: "runtime",
            7: "io",
        }.get(prefix, "unknown")

    @property
    def is_recoverable(self) -> bool:
        """Whether this error type is typically recoverable."""
        non_recoverable = {
            ErrorCode.CONFIG_INVALID,
            ErrorCode.STATE_DIR_INSECURE,
        }
        return self not in non_recoverable


ERROR_MESSAGES: dict[ErrorCode, str] = {
    ErrorCode.SCHEMA_INVALID: "Invalid state bundle ({invariant}): {detail}",
    ErrorCode.CONFIG_INVALID: "Invalid configuration for '{key}': {detail}",
    ErrorCode.STATE_DIR_REQUIRED: "{operation} requires a state directory.",
    ErrorCode.STATE_INVALID: "No usable persisted state.",
    ErrorCode.STATE_DIR_INSECURE: "Refusing insecure state directory {path}: {detail}",
    ErrorCode.FILE_NOT_FOUND: "File not found: {path}",
    ErrorCode.FILE_PERMISSION_DENIED: "Permission denied: {path}",
    ErrorCode.FILE_WRITE_FAILED: "Failed to write file: {path}",
    ErrorCode.LOCK_FAILED: "Could not prepare state lock in {path}: {detail}",
}


RECOVERY_HINTS: dict[ErrorCode, list[str]] = {
    ErrorCode.STATE_DIR_INSECURE: [
        "Restrict the directory to its owner: chmod 700 {path}",
        "Make sure the directory is owned by the current user",
    ],
    ErrorCode.STATE_DIR_REQUIRED: [
        "Pass --state-dir or set PROMPTSTATE_STATE_DIR",
    ],
    ErrorCode.STATE_INVALID: [
        "Run live to regenerate state",
        "Inspect the state directory with 'promptstate verify'",
    ],
    ErrorCode.CONFIG_INVALID: [
        "Check .promptstate/config.yaml for typos",
    ],
}


class PromptStateError(Exception):
    """Base error type for all promptstate errors.

    Example:
        >>> err = PromptStateError(
        ...     code=ErrorCode.STATE_DIR_INSECURE,
        ...     context={"path": "/tmp/state", "detail": "world-writable"},
        ... )
        >>> print(err)
        [PS-6004] Refusing insecure state directory /tmp/state: world-writable
    """

    def __init__(
        self,
        code: ErrorCode,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ):
        self.code = code
        self.context = context or {}
        self.cause = cause
        super().__init__(str(self))

    @property
    def message(self) -> str:
        """Get the formatted user-friendly message."""
        template = ERROR_MESSAGES.get(self.code, "An error occurred: {detail}")
        try:
            return template.format(**self.context)
        except KeyError:
            return template

    @property
    def recovery_hints(self) -> list[str]:
        """Get recovery suggestions for this error."""
        formatted = []
        for hint in RECOVERY_HINTS.get(self.code, []):
            try:
                formatted.append(hint.format(**self.context))
            except KeyError:
                formatted.append(hint)
        return formatted

    @property
    def is_recoverable(self) -> bool:
        return self.code.is_recoverable

    @property
    def category(self) -> str:
        return self.code.category

    @property
    def error_id(self) -> str:
        """Get the error ID string (e.g., 'PS-6001')."""
        return f"PS-{self.code.value}"

    def __str__(self) -> str:
        return f"[{self.error_id}] {self.message}"

    def __repr__(self) -> str:
        return f"{type(self).__name__}(code={self.code!r}, context={self.context!r})"

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dict for logging/CLI JSON output."""
        return {
            "error_id": self.error_id,
            "code": self.code.value,
            "category": self.category,
            "message": self.message,
            "recoverable": self.is_recoverable,
            "recovery_hints": self.recovery_hints,
            "context": self.context,
        }


class SchemaInvalidError(PromptStateError):
    """A bundle failed structural validation.

    ``invariant`` names the rule that failed: ``version``, ``created_at``,
    ``model_id``, ``base_url``, ``scope_key`` or ``structure``.
    """

    def __init__(self, invariant: str, detail: str = "", cause: Exception | None = None):
        self.invariant = invariant
        super().__init__(
            code=ErrorCode.SCHEMA_INVALID,
            context={"invariant": invariant, "detail": detail or invariant},
            cause=cause,
        )


class StateInvalidError(PromptStateError):
    """Persisted state is absent or unusable.

    Raised for every load failure alike; the reason is logged, not exposed.
    """

    def __init__(self) -> None:
        super().__init__(code=ErrorCode.STATE_INVALID)


class InsecureStateDirError(PromptStateError):
    """The state directory has unsafe ownership or permissions."""

    def __init__(self, path: str, detail: str):
        super().__init__(
            code=ErrorCode.STATE_DIR_INSECURE,
            context={"path": path, "detail": detail},
        )


class LockError(PromptStateError):
    """Lock setup failed for a reason other than contention."""

    def __init__(self, path: str, cause: OSError):
        super().__init__(
            code=ErrorCode.LOCK_FAILED,
            context={"path": path, "detail": str(cause)},
            cause=cause,
        )


def config_error(key: str, detail: str = "") -> PromptStateError:
    """Create a configuration error."""
    return PromptStateError(
        code=ErrorCode.CONFIG_INVALID,
        context={"key": key, "detail": detail},
    )


def state_dir_required(operation: str) -> PromptStateError:
    """Create a STATE_DIR_REQUIRED error for ``operation``."""
    return PromptStateError(
        code=ErrorCode.STATE_DIR_REQUIRED,
        context={"operation": operation},
    )
