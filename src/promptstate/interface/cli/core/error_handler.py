"""CLI Error Handler.

Provides unified error handling for the CLI with support for:
- Human-readable output (default)
- JSON output for machine consumption
"""

import json
import sys
from typing import NoReturn

from rich.console import Console
from rich.text import Text

from promptstate.foundation.errors import ErrorCode, PromptStateError

_ICONS = {
    "validation": "✗",
    "config": "⚙",
    "runtime": "⚡",
    "io": "📁",
}


def as_prompt_state_error(error: BaseException) -> PromptStateError:
    """Wrap arbitrary exceptions so every error renders the same way."""
    if isinstance(error, PromptStateError):
        return error
    if isinstance(error, FileNotFoundError):
        code = ErrorCode.FILE_NOT_FOUND
    elif isinstance(error, PermissionError):
        code = ErrorCode.FILE_PERMISSION_DENIED
    elif isinstance(error, OSError):
        code = ErrorCode.FILE_WRITE_FAILED
    else:
        code = ErrorCode.STATE_INVALID
    return PromptStateError(
        code=code,
        context={"detail": str(error), "path": getattr(error, "filename", "") or ""},
        cause=error if isinstance(error, Exception) else None,
    )


def handle_error(error: BaseException, json_output: bool = False) -> NoReturn:
    """Print ``error`` and exit with status 1.

    Args:
        error: The error to handle
        json_output: Emit a JSON object on stderr instead of rich text
    """
    wrapped = as_prompt_state_error(error)

    if json_output:
        error_dict = wrapped.to_dict()
        if wrapped.cause:
            error_dict["cause"] = str(wrapped.cause)
        print(json.dumps(error_dict), file=sys.stderr)
        sys.exit(1)

    _print_human_error(wrapped)
    sys.exit(1)


def _print_human_error(error: PromptStateError) -> None:
    console = Console(stderr=True)

    header = Text()
    header.append(f"{_ICONS.get(error.category, '✗')} ", style="bold")
    header.append(error.error_id, style="bold red")
    header.append(f" {error.message}")
    console.print(header)

    if error.recovery_hints:
        console.print("\n[bold]What you can do:[/]")
        for i, hint in enumerate(error.recovery_hints, 1):
            console.print(f"  {i}. {hint}")
