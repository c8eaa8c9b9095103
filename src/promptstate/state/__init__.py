"""Persisted session state: schema, redaction, locking, store, refinement.

Typical flow:

    store = SnapshotStore(state_dir)
    try:
        prev = store.load_latest()
    except StateInvalidError:
        prev = None  # nothing usable; run live instead
    if prev is not None:
        store.save(refine_state_bundle(prev, "tighten temperature", "hello"))
"""

from promptstate.state.lock import LOCK_FILE_NAME, AdvisoryLock, StateLock
from promptstate.state.refine import (
    refine_state_bundle,
    refined_developer_prompt,
    resolve_refine_input,
)
from promptstate.state.sanitizer import sanitize_bundle
from promptstate.state.schema import (
    SCHEMA_VERSION,
    StateBundle,
    canonical_bytes,
    compute_default_scope,
    compute_source_hash,
    compute_toolset_hash,
    new_bundle,
)
from promptstate.state.security import ensure_secure_state_dir
from promptstate.state.store import (
    LATEST_FILE_NAME,
    LatestPointer,
    SnapshotStore,
    load_latest_state_bundle,
    quarantine_file,
    save_state_bundle,
    snapshot_file_name,
)

__all__ = [
    # Schema
    "SCHEMA_VERSION",
    "StateBundle",
    "canonical_bytes",
    "compute_default_scope",
    "compute_source_hash",
    "compute_toolset_hash",
    "new_bundle",
    # Sanitizer / security
    "sanitize_bundle",
    "ensure_secure_state_dir",
    # Lock
    "LOCK_FILE_NAME",
    "AdvisoryLock",
    "StateLock",
    # Store
    "LATEST_FILE_NAME",
    "LatestPointer",
    "SnapshotStore",
    "load_latest_state_bundle",
    "quarantine_file",
    "save_state_bundle",
    "snapshot_file_name",
    # Refinement
    "refine_state_bundle",
    "refined_developer_prompt",
    "resolve_refine_input",
]
