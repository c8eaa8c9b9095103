"""Foundation domain - Base errors, config, logging and utilities.

This domain has no dependencies on other promptstate modules. Everything
else imports from here.
"""

from promptstate.foundation.config import (
    PromptStateConfig,
    get_config,
    load_config,
    reset_config,
    resolve_state_dir,
)
from promptstate.foundation.errors import (
    ErrorCode,
    InsecureStateDirError,
    LockError,
    PromptStateError,
    SchemaInvalidError,
    StateInvalidError,
)
from promptstate.foundation.logging import configure_logging

__all__ = [
    # === Config ===
    "PromptStateConfig",
    "get_config",
    "load_config",
    "reset_config",
    "resolve_state_dir",
    # === Errors ===
    "ErrorCode",
    "PromptStateError",
    "SchemaInvalidError",
    "StateInvalidError",
    "InsecureStateDirError",
    "LockError",
    # === Logging ===
    "configure_logging",
]
