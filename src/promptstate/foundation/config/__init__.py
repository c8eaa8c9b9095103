"""Configuration management for promptstate."""

from promptstate.foundation.config.loader import (
    LockConfig,
    PromptStateConfig,
    StateConfig,
    get_config,
    load_config,
    reset_config,
    resolve_state_dir,
)

__all__ = [
    "LockConfig",
    "PromptStateConfig",
    "StateConfig",
    "get_config",
    "load_config",
    "reset_config",
    "resolve_state_dir",
]
