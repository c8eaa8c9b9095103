"""Advisory lock for one state directory.

Writers take the lock by exclusively creating ``state.lock`` in the state
directory. Contention is retried with a jittered 50-150ms delay until a
~2s deadline; after that the writer proceeds WITHOUT the lock. This trades
strict exclusion for availability:

- The store's write path is atomic on its own (temp file + rename), so an
  unlocked writer can never corrupt a snapshot or the pointer.
- The lock only reduces interleaving. Two writers that both fall through
  race on ``latest.json`` and the last rename wins; no earlier snapshot is
  lost.
- A marker left behind by a crashed process is never cleaned up here.
  Later writers wait out the deadline and continue unlocked instead of
  deadlocking.

Do not rely on this lock for mutual exclusion.

Example:
    lock = AdvisoryLock(state_dir)
    with lock.hold() as held:
        if not held.held:
            logger.warning("writing without lock")
        ...
"""

from __future__ import annotations

import logging
import os
import random
import secrets
import time
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path

from promptstate.foundation.errors import LockError
from promptstate.foundation.utils.paths import PRIVATE_FILE_MODE, ensure_private_dir
from promptstate.foundation.utils.timestamps import format_rfc3339_nano

logger = logging.getLogger(__name__)

LOCK_FILE_NAME = "state.lock"
DEFAULT_TIMEOUT_SECONDS = 2.0
DEFAULT_JITTER_SECONDS = (0.05, 0.15)


@dataclass(slots=True)
class StateLock:
    """Result of a lock attempt."""

    lock_file: Path
    """The marker file path."""

    held: bool
    """False when the deadline passed and the caller proceeds unlocked."""

    attempts: int = 1

    def release(self) -> None:
        """Remove the marker if this attempt created it. Idempotent."""
        if not self.held:
            return
        self.held = False
        try:
            self.lock_file.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning("Could not remove lock %s: %s", self.lock_file, e)


class AdvisoryLock:
    """Best-effort, file-based lock scoped to one state directory."""

    def __init__(
        self,
        state_dir: Path,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        jitter: tuple[float, float] = DEFAULT_JITTER_SECONDS,
    ):
        """Initialize lock.

        Args:
            state_dir: Directory whose writes the lock guards
            timeout: Seconds to retry before proceeding without the lock
            jitter: (min, max) seconds slept between attempts
        """
        self.state_dir = Path(state_dir)
        self.lock_file = self.state_dir / LOCK_FILE_NAME
        self.timeout = timeout
        self.jitter = jitter

    def _try_create(self) -> bool:
        """One exclusive-create attempt. False on contention."""
        try:
            fd = os.open(self.lock_file, os.O_CREAT | os.O_EXCL | os.O_WRONLY, PRIVATE_FILE_MODE)
        except FileExistsError:
            return False
        except OSError as e:
            raise LockError(str(self.state_dir), e) from e

        stamp = format_rfc3339_nano(datetime.now(UTC))
        body = f"ts={stamp} token={secrets.token_hex(8)}\n".encode()
        try:
            os.write(fd, body)
            os.fsync(fd)
        except OSError as e:
            # The marker exists, which is all exclusion needs
            logger.debug("Could not write lock body %s: %s", self.lock_file, e)
        finally:
            os.close(fd)
        return True

    def acquire(self) -> StateLock:
        """Try to take the lock, falling through to unlocked on timeout.

        Returns:
            StateLock with ``held`` True on success, False after the deadline

        Raises:
            LockError: If the directory cannot be created or the marker cannot
                be created for a reason other than contention
        """
        try:
            ensure_private_dir(self.state_dir)
        except OSError as e:
            raise LockError(str(self.state_dir), e) from e

        attempts = 1
        if self._try_create():
            return StateLock(lock_file=self.lock_file, held=True, attempts=attempts)

        deadline = time.monotonic() + self.timeout
        while time.monotonic() < deadline:
            time.sleep(random.uniform(*self.jitter))
            attempts += 1
            if self._try_create():
                return StateLock(lock_file=self.lock_file, held=True, attempts=attempts)

        logger.warning(
            "State lock %s still held after %.1fs (%d attempts); proceeding without lock",
            self.lock_file,
            self.timeout,
            attempts,
        )
        return StateLock(lock_file=self.lock_file, held=False, attempts=attempts)

    @contextmanager
    def hold(self) -> Iterator[StateLock]:
        """Acquire for the duration of a ``with`` block; always release."""
        lock = self.acquire()
        try:
            yield lock
        finally:
            lock.release()
