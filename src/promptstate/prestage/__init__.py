"""Pre-stage: decide between restoring persisted state and running live."""

from promptstate.prestage.coordinator import (
    OVERRIDE_REFINE_WARNING,
    Coordinator,
    Outcome,
    Runner,
)
from promptstate.prestage.prompts import default_prep_prompt, join_prompts, resolve_prep_prompt

__all__ = [
    "OVERRIDE_REFINE_WARNING",
    "Coordinator",
    "Outcome",
    "Runner",
    "default_prep_prompt",
    "join_prompts",
    "resolve_prep_prompt",
]
