"""promptstate - Persist and restore the working state of prompting sessions.

Snapshots are content-addressed, written atomically, redacted before they
reach disk, and verified on load. A coordinator decides per invocation
whether to reuse the latest snapshot or run live.
"""

from promptstate.foundation.errors import PromptStateError, SchemaInvalidError, StateInvalidError
from promptstate.prestage import Coordinator, Outcome, Runner
from promptstate.state import (
    SnapshotStore,
    StateBundle,
    compute_source_hash,
    refine_state_bundle,
    sanitize_bundle,
)

__version__ = "0.1.0"

__all__ = [
    "__version__",
    "Coordinator",
    "Outcome",
    "PromptStateError",
    "Runner",
    "SchemaInvalidError",
    "SnapshotStore",
    "StateBundle",
    "StateInvalidError",
    "compute_source_hash",
    "refine_state_bundle",
    "sanitize_bundle",
]
