"""Pre-stage prompt resolution.

Precedence for the prompt sent on a live run:
    1. explicit prompt overrides (joined)
    2. pre-joined prompt file contents
    3. the packaged default prompt
"""

from __future__ import annotations

from functools import cache
from importlib.resources import files
from typing import Literal

PromptSource = Literal["override", "default"]

_TRAILING_NL_TAB = "\n\r\t"


@cache
def default_prep_prompt() -> str:
    """The packaged default pre-stage prompt."""
    return (files("promptstate") / "prestage" / "prep_default.md").read_text(encoding="utf-8")


def join_prompts(parts: list[str]) -> str:
    """Join prompt parts with a blank line.

    Trailing newlines, carriage returns and tabs are trimmed from each part
    (trailing spaces are kept); the joined text is right-stripped.

    Example:
        >>> join_prompts(["one\\n", "two\\t"])
        'one\\n\\ntwo'
    """
    if not parts:
        return ""
    return "\n\n".join(p.rstrip(_TRAILING_NL_TAB) for p in parts).rstrip()


def resolve_prep_prompt(
    prep_prompts: list[str] | None,
    prep_files_joined: str = "",
) -> tuple[PromptSource, str]:
    """Resolve the effective pre-stage prompt and where it came from."""
    if prep_prompts:
        return "override", join_prompts(list(prep_prompts))
    if prep_files_joined.strip():
        return "override", prep_files_joined.strip().rstrip(_TRAILING_NL_TAB + " ")
    return "default", default_prep_prompt()
