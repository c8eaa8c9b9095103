"""Error system for promptstate."""

from promptstate.foundation.errors.errors import (
    ERROR_MESSAGES,
    RECOVERY_HINTS,
    ErrorCode,
    InsecureStateDirError,
    LockError,
    PromptStateError,
    SchemaInvalidError,
    StateInvalidError,
    config_error,
    state_dir_required,
)

__all__ = [
    "ErrorCode",
    "ERROR_MESSAGES",
    "RECOVERY_HINTS",
    "PromptStateError",
    "SchemaInvalidError",
    "StateInvalidError",
    "InsecureStateDirError",
    "LockError",
    "config_error",
    "state_dir_required",
]
