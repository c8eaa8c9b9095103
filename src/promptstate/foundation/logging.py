"""Logging configuration for promptstate.

Provides centralized logging setup with sensible defaults:
- Default: WARNING level (quiet operation)
- --debug flag: DEBUG level with full context
- PROMPTSTATE_DEBUG=true or PROMPTSTATE_LOG_LEVEL=DEBUG env vars: Override for CI/scripting

Usage:
    from promptstate.foundation.logging import configure_logging
    configure_logging(debug=args.debug)

Priority for level resolution (highest to lowest):
    1. Explicit `level` parameter (programmatic override)
    2. PROMPTSTATE_LOG_LEVEL env var (any level: DEBUG, INFO, WARNING, etc.)
    3. PROMPTSTATE_DEBUG=true env var (simple boolean)
    4. `debug=True` parameter (--debug flag)
    5. WARNING (default)
"""

import logging
import os
import sys

# Format includes module path for tracing issues
_DEBUG_FORMAT = "%(asctime)s %(name)s [%(levelname)s] %(message)s"
_DEFAULT_FORMAT = "%(name)s: %(message)s"

def resolve_level(*, debug: bool = False, level: int | str | None = None) -> int:
    """Resolve the effective log level from arguments and environment."""
    if level is not None:
        return _parse_level(level)
    if env_level := os.environ.get("PROMPTSTATE_LOG_LEVEL"):
        return _parse_level(env_level)
    if os.environ.get("PROMPTSTATE_DEBUG", "").lower() in ("true", "1", "yes"):
        return logging.DEBUG
    if debug:
        return logging.DEBUG
    return logging.WARNING


def configure_logging(
    *,
    debug: bool = False,
    level: int | str | None = None,
    stream: object = None,
) -> None:
    """Configure logging for the promptstate CLI.

    Args:
        debug: Enable DEBUG level with detailed format
        level: Override log level (int or string like "DEBUG", "INFO")
        stream: Output stream (default: stderr)
    """
    resolved_level = resolve_level(debug=debug, level=level)
    console_format = _DEBUG_FORMAT if resolved_level <= logging.DEBUG else _DEFAULT_FORMAT

    root_logger = logging.getLogger()
    root_logger.setLevel(resolved_level)
    root_logger.handlers.clear()

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setLevel(resolved_level)
    handler.setFormatter(logging.Formatter(console_format))
    root_logger.addHandler(handler)

    logging.getLogger(__name__).debug(
        "Logging configured: level=%s, debug=%s",
        logging.getLevelName(resolved_level),
        debug,
    )


def _parse_level(level: int | str) -> int:
    """Parse log level from int or string."""
    if isinstance(level, int):
        return level
    numeric = getattr(logging, level.upper(), None)
    if isinstance(numeric, int):
        return numeric
    try:
        return int(level)
    except ValueError:
        return logging.WARNING
