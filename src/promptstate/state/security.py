"""State directory ownership and permission checks.

Bundles may hold near-secrets even after redaction, so a state directory
must be private to its owner. Checks only apply on POSIX; Windows ACLs are
not reflected in ``st_mode``.
"""

import os
import stat
import sys
from pathlib import Path

from promptstate.foundation.errors import InsecureStateDirError


def ensure_secure_state_dir(path: str | Path) -> None:
    """Reject a state directory that other users could tamper with.

    A directory that does not exist yet is accepted; it will be created with
    mode 0700.

    Raises:
        InsecureStateDirError: If the path is empty, not a directory,
            world-writable, or owned by another user
    """
    if not str(path).strip():
        raise InsecureStateDirError(str(path), "empty state dir")
    if sys.platform == "win32":
        return

    try:
        info = os.stat(path)
    except FileNotFoundError:
        return
    except OSError as e:
        raise InsecureStateDirError(str(path), f"cannot stat: {e}") from e

    if not stat.S_ISDIR(info.st_mode):
        raise InsecureStateDirError(str(path), "not a directory")
    if info.st_mode & stat.S_IWOTH:
        raise InsecureStateDirError(str(path), "world-writable")
    if hasattr(os, "getuid") and info.st_uid != os.getuid():
        raise InsecureStateDirError(str(path), "not owned by current user")
