"""Restore-before-prep coordination.

One decision per invocation, in order:

1. Explicit overrides present -> live run with the override text. If
   ``refine`` is also set, warn once that overrides win.
2. No overrides, no ``refine``, a state directory configured -> load the
   latest bundle; reuse it when no scope is requested or the scope matches.
   Any load failure or scope mismatch falls through.
3. Otherwise -> one live run with the resolved prompt; runner errors
   propagate unchanged.

Exactly one of restore or live run happens. The coordinator never saves;
callers persist explicitly (e.g. refine_state_bundle() then store.save()).
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Protocol

from promptstate.foundation.errors import StateInvalidError
from promptstate.prestage.prompts import resolve_prep_prompt
from promptstate.state.schema import StateBundle
from promptstate.state.store import SnapshotStore

logger = logging.getLogger(__name__)

OVERRIDE_REFINE_WARNING = (
    "pre-stage: explicit prompt overrides provided while refine is requested; "
    "proceeding with overrides"
)


class Runner(Protocol):
    """Live pre-stage computation (e.g. one chat-completions call).

    Raises whatever the underlying call raises; the coordinator does not
    retry or wrap it.
    """

    def run(self, prompt: str) -> Any:
        ...


class BundleSource(Protocol):
    def load_latest(self) -> StateBundle:
        ...


@dataclass(slots=True)
class Outcome:
    """Result of one coordinator decision."""

    used_restore: bool = False
    """A persisted bundle was reused and the runner was not called."""

    restored: StateBundle | None = None
    prompt_used: str = ""
    """Prompt sent to the runner when no restore happened."""

    response: Any = None
    """Runner output when it was called."""


@dataclass
class Coordinator:
    """Restore-or-run decision with override precedence."""

    state_dir: str | Path | None = None
    """Empty disables restore."""

    scope_key: str = ""
    """When set, a restored bundle must carry this scope key."""

    refine: bool = False
    """Force a live run instead of restoring."""

    prep_prompts: list[str] = field(default_factory=list)
    prep_files_joined: str = ""

    runner: Runner | None = None
    warn: Callable[[str], None] | None = None
    """Called at most once per execute()."""

    store_factory: Callable[[Path], BundleSource] = SnapshotStore

    def execute(self) -> Outcome:
        """Run one decision. Runner exceptions propagate unchanged."""
        source, override_text = resolve_prep_prompt(self.prep_prompts, self.prep_files_joined)
        overrides_provided = source == "override" and bool(override_text.strip())

        if overrides_provided and self.refine:
            logger.debug("Overrides and refine both requested; overrides win")
            if self.warn is not None:
                self.warn(OVERRIDE_REFINE_WARNING)

        if not overrides_provided and not self.refine:
            restored = self._try_restore()
            if restored is not None:
                return Outcome(used_restore=True, restored=restored)

        return self._run_live(override_text)

    def _try_restore(self) -> StateBundle | None:
        if self.state_dir is None or not str(self.state_dir).strip():
            return None

        store = self.store_factory(Path(str(self.state_dir).strip()))
        try:
            bundle = store.load_latest()
        except StateInvalidError:
            logger.debug("No usable state; running live")
            return None

        requested = self.scope_key.strip()
        if requested and bundle.scope_key != self.scope_key:
            logger.debug(
                "Stored scope %r does not match requested %r; running live",
                bundle.scope_key,
                self.scope_key,
            )
            return None
        return bundle

    def _run_live(self, prompt: str) -> Outcome:
        outcome = Outcome(prompt_used=prompt)
        if self.runner is not None:
            outcome.response = self.runner.run(prompt)
        return outcome
