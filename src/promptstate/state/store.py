"""Content-addressed, crash-safe snapshot store.

Storage layout (directory mode 0700, files 0600):

    <state_dir>/
    ├── latest.json                          # {version, path, sha256}
    ├── state-<created_at>-<sha8>.json       # one immutable snapshot per save
    ├── state.lock                           # present only during a save
    └── *.quarantined[.N]                    # corrupt files moved aside

``<created_at>`` is the bundle timestamp with ':' removed; ``<sha8>`` is the
first 8 hex characters of the snapshot's SHA-256.

Loading never distinguishes corruption from absence: every failure raises
:class:`StateInvalidError` and the reason goes to the debug log only.
Reads take no lock. Quarantining a corrupt pointer does: the rename happens
under the writer lock and only if ``latest.json`` still holds the bytes that
failed to load.

Example:
    >>> store = SnapshotStore(Path("~/.local/state/promptstate").expanduser())
    >>> store.save(bundle)
    PosixPath('.../state-2026-01-21T150405Z-1a2b3c4d.json')
    >>> store.load_latest().scope_key
    'scope-1'
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from promptstate.foundation.errors import (
    InsecureStateDirError,
    LockError,
    SchemaInvalidError,
    StateInvalidError,
)
from promptstate.foundation.utils.hashing import compute_hash, digests_match
from promptstate.foundation.utils.paths import (
    PRIVATE_DIR_MODE,
    ensure_private_dir,
    is_base_name,
    restrict_dir_mode,
)
from promptstate.foundation.utils.serialization import (
    DirectorySyncer,
    FsyncDirectorySyncer,
    atomic_write_bytes,
    dumps_indented,
    safe_json_loads,
)
from promptstate.foundation.utils.timestamps import filename_timestamp
from promptstate.state.lock import DEFAULT_JITTER_SECONDS, DEFAULT_TIMEOUT_SECONDS, AdvisoryLock
from promptstate.state.sanitizer import sanitize_bundle
from promptstate.state.schema import SCHEMA_VERSION, StateBundle, canonical_bytes
from promptstate.state.security import ensure_secure_state_dir

logger = logging.getLogger(__name__)

LATEST_FILE_NAME = "latest.json"
SNAPSHOT_PREFIX = "state-"
SNAPSHOT_SUFFIX = ".json"
QUARANTINE_SUFFIX = ".quarantined"
_MAX_QUARANTINE_SUFFIX = 100


@dataclass(frozen=True, slots=True)
class LatestPointer:
    """The single mutable record naming the current snapshot."""

    version: str
    path: str
    """Bare snapshot file name inside the state directory."""

    sha256: str

    def to_dict(self) -> dict[str, str]:
        return {"version": self.version, "path": self.path, "sha256": self.sha256}

    @classmethod
    def from_dict(cls, data: object) -> LatestPointer:
        """Parse a decoded pointer.

        Raises:
            ValueError: If the pointer is malformed, has an unsupported
                version, or its path is not a bare file name
        """
        if not isinstance(data, dict):
            raise ValueError("pointer is not an object")
        version = data.get("version")
        path = data.get("path")
        sha = data.get("sha256", "")
        if not isinstance(version, str) or not isinstance(path, str) or not isinstance(sha, str):
            raise ValueError("pointer fields must be strings")
        if version != SCHEMA_VERSION:
            raise ValueError(f"unsupported pointer version {version!r}")
        if not is_base_name(path):
            raise ValueError(f"unsafe pointer path {path!r}")
        return cls(version=version, path=path, sha256=sha)


class _LoadFailure(Exception):
    """Internal: a load step failed. Never leaves this module."""

    def __init__(self, reason: str, *quarantine: Path, pointer_bytes: bytes = b""):
        super().__init__(reason)
        self.reason = reason
        self.quarantine = quarantine
        self.pointer_bytes = pointer_bytes


def snapshot_file_name(created_at: str, digest: str) -> str:
    """``state-<created_at without ':'>-<first 8 hex of digest>.json``."""
    return f"{SNAPSHOT_PREFIX}{filename_timestamp(created_at)}-{digest[:8]}{SNAPSHOT_SUFFIX}"


class SnapshotStore:
    """Atomic, content-addressed persistence of state bundles.

    Snapshot files are immutable once written and safe to read without
    locking. ``latest.json`` is the only file that is ever replaced, and it
    is always replaced by rename.
    """

    def __init__(
        self,
        state_dir: str | Path,
        *,
        syncer: DirectorySyncer | None = None,
        lock_timeout: float = DEFAULT_TIMEOUT_SECONDS,
        lock_jitter: tuple[float, float] = DEFAULT_JITTER_SECONDS,
        quarantine: bool = True,
    ):
        """Initialize store.

        Args:
            state_dir: Directory holding snapshots and the pointer
            syncer: Directory sync strategy run after every rename
            lock_timeout: Seconds a save waits for the advisory lock
            lock_jitter: (min, max) seconds between lock attempts
            quarantine: Move corrupt pointer/snapshot files aside on load
        """
        self.state_dir = Path(state_dir)
        self.syncer: DirectorySyncer = syncer or FsyncDirectorySyncer()
        self.quarantine = quarantine
        self._lock = AdvisoryLock(self.state_dir, timeout=lock_timeout, jitter=lock_jitter)

    @property
    def latest_path(self) -> Path:
        return self.state_dir / LATEST_FILE_NAME

    # ─────────────────────────────────────────────────────────────────
    # Write path
    # ─────────────────────────────────────────────────────────────────

    def save(self, bundle: StateBundle) -> Path:
        """Persist ``bundle`` and advance ``latest.json`` to it.

        The bundle is sanitized before serialization; the caller's object is
        not modified.

        Returns:
            Path of the snapshot file written

        Raises:
            SchemaInvalidError: If the bundle is invalid (nothing is written)
            InsecureStateDirError: If the directory is not private
            OSError: If writing fails
        """
        bundle.validate()
        ensure_secure_state_dir(self.state_dir)

        try:
            lock = self._lock.acquire()
        except LockError as e:
            logger.warning("Saving without lock: %s", e)
            lock = None

        try:
            return self._write_snapshot(bundle)
        finally:
            if lock is not None:
                lock.release()

    def _write_snapshot(self, bundle: StateBundle) -> Path:
        ensure_private_dir(self.state_dir)
        restrict_dir_mode(self.state_dir)

        snapshot_bytes = canonical_bytes(sanitize_bundle(bundle))
        digest = compute_hash(snapshot_bytes)
        name = snapshot_file_name(bundle.created_at, digest)
        snapshot_path = self.state_dir / name

        atomic_write_bytes(snapshot_path, snapshot_bytes, syncer=self.syncer)

        pointer = LatestPointer(version=SCHEMA_VERSION, path=name, sha256=digest)
        atomic_write_bytes(self.latest_path, dumps_indented(pointer.to_dict()), syncer=self.syncer)

        logger.info("Saved state snapshot %s", name)
        return snapshot_path

    # ─────────────────────────────────────────────────────────────────
    # Read path
    # ─────────────────────────────────────────────────────────────────

    def load_latest(self) -> StateBundle:
        """Load and verify the bundle ``latest.json`` points to.

        Raises:
            StateInvalidError: On any failure (missing or malformed pointer,
                unsafe path, missing snapshot, digest mismatch, malformed or
                invalid bundle, insecure directory, I/O error)
        """
        try:
            return self._load_latest()
        except _LoadFailure as failure:
            logger.debug("No usable state in %s: %s", self.state_dir, failure.reason)
            if self.quarantine and failure.quarantine:
                self._quarantine(failure)
            raise StateInvalidError() from None

    def _quarantine(self, failure: _LoadFailure) -> None:
        """Move the files behind a failed load aside, under the writer lock.

        Skipped when latest.json changed since it was read: a writer
        installed a new pointer and its snapshot must stay reachable.
        """
        try:
            lock = self._lock.acquire()
        except LockError as e:
            logger.debug("Quarantining without lock: %s", e)
            lock = None

        try:
            try:
                current = self.latest_path.read_bytes()
            except OSError:
                current = None
            if current != failure.pointer_bytes:
                logger.debug("%s changed during load; not quarantining", LATEST_FILE_NAME)
                return
            for path in failure.quarantine:
                quarantine_file(path)
        finally:
            if lock is not None:
                lock.release()

    def _load_latest(self) -> StateBundle:
        try:
            ensure_secure_state_dir(self.state_dir)
        except InsecureStateDirError as e:
            raise _LoadFailure(f"insecure directory: {e.message}") from e

        try:
            pointer_bytes = self.latest_path.read_bytes()
        except OSError as e:
            raise _LoadFailure(f"pointer unreadable: {e}") from e

        try:
            pointer = LatestPointer.from_dict(safe_json_loads(pointer_bytes))
        except ValueError as e:
            raise _LoadFailure(
                f"bad pointer: {e}", self.latest_path, pointer_bytes=pointer_bytes
            ) from e

        snapshot_path = self.state_dir / pointer.path
        try:
            snapshot_bytes = snapshot_path.read_bytes()
        except OSError as e:
            raise _LoadFailure(
                f"snapshot unreadable: {e}", self.latest_path, pointer_bytes=pointer_bytes
            ) from e

        if pointer.sha256 and not digests_match(compute_hash(snapshot_bytes), pointer.sha256):
            raise _LoadFailure(
                "snapshot digest mismatch",
                snapshot_path,
                self.latest_path,
                pointer_bytes=pointer_bytes,
            )

        try:
            bundle = StateBundle.from_dict(safe_json_loads(snapshot_bytes))
            bundle.validate()
        except (ValueError, SchemaInvalidError) as e:
            raise _LoadFailure(
                f"bad snapshot: {e}", snapshot_path, self.latest_path, pointer_bytes=pointer_bytes
            ) from e

        return bundle

    def latest_pointer(self) -> LatestPointer | None:
        """The current pointer, or None when absent or malformed."""
        try:
            return LatestPointer.from_dict(safe_json_loads(self.latest_path.read_bytes()))
        except (OSError, ValueError):
            return None

    def list_snapshots(self) -> list[Path]:
        """Snapshot files, oldest first by name."""
        if not self.state_dir.is_dir():
            return []
        return sorted(
            p for p in self.state_dir.iterdir()
            if p.name.startswith(SNAPSHOT_PREFIX) and p.name.endswith(SNAPSHOT_SUFFIX)
        )

    def verify(self) -> list[str]:
        """Report integrity problems without modifying anything.

        Returns:
            Human-readable problems; empty when the latest state loads cleanly
        """
        problems: list[str] = []
        try:
            ensure_secure_state_dir(self.state_dir)
        except InsecureStateDirError as e:
            problems.append(e.message)
            return problems

        if self.state_dir.is_dir():
            mode = self.state_dir.stat().st_mode & 0o777
            if os.name != "nt" and mode != PRIVATE_DIR_MODE:
                problems.append(f"directory mode is {mode:o}, expected {PRIVATE_DIR_MODE:o}")

        try:
            self._load_latest()
        except _LoadFailure as failure:
            problems.append(failure.reason)
        return problems


def quarantine_file(path: Path) -> Path | None:
    """Rename ``path`` aside with a ``.quarantined`` suffix.

    Picks ``.quarantined.1`` ... ``.quarantined.99`` when earlier names are
    taken. Best-effort: returns None if the rename fails.
    """
    candidate = path.with_name(path.name + QUARANTINE_SUFFIX)
    counter = 1
    while candidate.exists() and counter < _MAX_QUARANTINE_SUFFIX:
        candidate = path.with_name(f"{path.name}{QUARANTINE_SUFFIX}.{counter}")
        counter += 1

    try:
        os.replace(path, candidate)
    except OSError as e:
        logger.debug("Could not quarantine %s: %s", path, e)
        return None
    logger.info("Quarantined %s -> %s", path.name, candidate.name)
    return candidate


def save_state_bundle(state_dir: str | Path, bundle: StateBundle) -> Path:
    """Save with a default-configured :class:`SnapshotStore`."""
    return SnapshotStore(state_dir).save(bundle)


def load_latest_state_bundle(state_dir: str | Path) -> StateBundle:
    """Load with a default-configured :class:`SnapshotStore`.

    Raises:
        StateInvalidError: When no usable state exists
    """
    return SnapshotStore(state_dir).load_latest()
