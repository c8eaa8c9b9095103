"""promptstate configuration management.

Loads configuration from .promptstate/config.yaml with sensible defaults.
Settings can be overridden via environment variables (PROMPTSTATE_*).

Config locations (in priority order):
1. Explicit path passed to load_config()
2. .promptstate/config.yaml (project-local)
3. ~/.promptstate/config.yaml (user-global)
4. Built-in defaults

Example config.yaml:

    state:
      dir: ~/.local/state/promptstate
      scope: ""
      quarantine: true
    lock:
      timeout_seconds: 2.0
      jitter_min_ms: 50
      jitter_max_ms: 150
    debug: false
"""

import logging
import os
import threading
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any

from promptstate.foundation.errors import config_error
from promptstate.foundation.utils.paths import ensure_private_dir, normalize_path
from promptstate.foundation.utils.serialization import safe_yaml_load

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class StateConfig:
    """Where state lives and how loads treat corrupt files."""

    dir: str = ""
    """State directory. Empty disables restore and save."""

    scope: str = ""
    """Scope key restored bundles must match. Empty means a computed default."""

    quarantine: bool = True
    """Rename corrupt pointer/snapshot files aside when a load rejects them."""


@dataclass(frozen=True, slots=True)
class LockConfig:
    """Advisory lock tuning."""

    timeout_seconds: float = 2.0
    """Wall-clock budget before a writer proceeds without the lock."""

    jitter_min_ms: int = 50
    jitter_max_ms: int = 150

    @property
    def jitter(self) -> tuple[float, float]:
        """Retry delay bounds in seconds."""
        return (self.jitter_min_ms / 1000.0, self.jitter_max_ms / 1000.0)


@dataclass(frozen=True, slots=True)
class PromptStateConfig:
    """Root configuration for promptstate."""

    state: StateConfig = field(default_factory=StateConfig)
    lock: LockConfig = field(default_factory=LockConfig)
    debug: bool = False


# Global config instance (lazy-loaded, thread-safe)
_config: PromptStateConfig | None = None
_config_lock = threading.Lock()

# env var -> (section, key); section None means top level
_ENV_OVERRIDES: dict[str, tuple[str | None, str]] = {
    "PROMPTSTATE_STATE_DIR": ("state", "dir"),
    "PROMPTSTATE_STATE_SCOPE": ("state", "scope"),
    "PROMPTSTATE_STATE_QUARANTINE": ("state", "quarantine"),
    "PROMPTSTATE_LOCK_TIMEOUT_SECONDS": ("lock", "timeout_seconds"),
    "PROMPTSTATE_LOCK_JITTER_MIN_MS": ("lock", "jitter_min_ms"),
    "PROMPTSTATE_LOCK_JITTER_MAX_MS": ("lock", "jitter_max_ms"),
    "PROMPTSTATE_DEBUG": (None, "debug"),
}


def _deep_update(base: dict, updates: dict) -> dict:
    """Recursively update a dict with another dict."""
    for key, value in updates.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_update(base[key], value)
        else:
            base[key] = value
    return base


def _coerce(value: str) -> bool | int | float | str:
    """Coerce an environment string to bool/int/float where it looks like one."""
    if value.lower() in ("true", "false"):
        return value.lower() == "true"
    if value.isdigit() or (value.startswith("-") and value[1:].isdigit()):
        return int(value)
    try:
        return float(value)
    except ValueError:
        return value


def _apply_env_overrides(config_dict: dict[str, Any]) -> dict[str, Any]:
    """Apply PROMPTSTATE_* environment overrides."""
    for var, (section, key) in _ENV_OVERRIDES.items():
        raw = os.environ.get(var)
        if raw is None:
            continue
        # Paths and scope keys stay strings even when they look numeric
        value: Any = raw if key in ("dir", "scope") else _coerce(raw)
        target = config_dict if section is None else config_dict.setdefault(section, {})
        target[key] = value
    return config_dict


def _dict_to_config(data: dict[str, Any]) -> PromptStateConfig:
    """Convert a dict to PromptStateConfig."""
    try:
        state = StateConfig(**data.get("state", {}))
        lock = LockConfig(**data.get("lock", {}))
    except TypeError as e:
        raise config_error("state/lock", str(e)) from e

    if lock.timeout_seconds < 0:
        raise config_error("lock.timeout_seconds", "must be >= 0")
    if not 0 <= lock.jitter_min_ms <= lock.jitter_max_ms:
        raise config_error("lock.jitter_min_ms", "must satisfy 0 <= min <= max")

    return PromptStateConfig(state=state, lock=lock, debug=bool(data.get("debug", False)))


def load_config(path: str | Path | None = None) -> PromptStateConfig:
    """Load configuration from file with defaults and env overrides.

    Priority (highest to lowest):
    1. Environment variables (PROMPTSTATE_*)
    2. Explicit path if provided
    3. .promptstate/config.yaml (project-local)
    4. ~/.promptstate/config.yaml (user-global)
    5. Built-in defaults

    Raises:
        PromptStateError: If the merged configuration is invalid
    """
    global _config

    defaults = PromptStateConfig()
    config_dict: dict[str, Any] = {
        "state": asdict(defaults.state),
        "lock": asdict(defaults.lock),
        "debug": defaults.debug,
    }

    config_paths = []
    if path:
        config_paths.append(Path(path))
    config_paths.extend([
        Path(".promptstate/config.yaml"),
        Path.home() / ".promptstate" / "config.yaml",
    ])

    for config_path in config_paths:
        if not config_path.exists():
            continue
        try:
            _deep_update(config_dict, safe_yaml_load(config_path))
            logger.debug("Loaded config from %s", config_path)
            break  # Use first found config
        except (OSError, ValueError) as e:
            logger.warning("Skipping unreadable config %s: %s", config_path, e)

    config_dict = _apply_env_overrides(config_dict)

    _config = _dict_to_config(config_dict)
    return _config


def get_config() -> PromptStateConfig:
    """Get the current configuration, loading if needed.

    Thread-safe with double-check locking.
    """
    global _config

    if _config is not None:
        return _config

    with _config_lock:
        if _config is None:
            _config = load_config()
        return _config


def reset_config() -> None:
    """Reset the global config (useful for testing)."""
    global _config
    with _config_lock:
        _config = None


def resolve_state_dir(value: str | Path | None) -> Path | None:
    """Expand, normalize and create a configured state directory.

    Returns None when ``value`` is empty. The directory is created with
    mode 0700 when missing; an existing directory keeps its mode so the
    state directory check still sees it.
    """
    if value is None or not str(value).strip():
        return None
    path = normalize_path(str(value).strip())
    return ensure_private_dir(path)
