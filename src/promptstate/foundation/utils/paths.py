"""Filesystem path utilities."""

import contextlib
import os
from pathlib import Path

PRIVATE_DIR_MODE = 0o700
PRIVATE_FILE_MODE = 0o600


def normalize_path(path: str | Path) -> Path:
    """Expand ``~`` and normalize the path without requiring it to exist.

    Example:
        >>> normalize_path("~/state/../state")
        PosixPath('/home/user/state')
    """
    return Path(os.path.normpath(Path(path).expanduser()))


def is_base_name(name: str) -> bool:
    """True if ``name`` is a bare file name.

    Rejects empty names, anything with a directory separator and any
    parent-traversal segment.

    Example:
        >>> is_base_name("state-2026-01-21T150405Z-abcd1234.json")
        True
        >>> is_base_name("../latest.json")
        False
    """
    if not name or name in (".", ".."):
        return False
    if "/" in name or "\\" in name:
        return False
    if os.path.basename(name) != name:
        return False
    return ".." not in name


def ensure_private_dir(path: Path) -> Path:
    """Create ``path`` (and parents) with mode 0700 if it does not exist.

    An existing directory keeps its mode. Callers check it with
    ``ensure_secure_state_dir`` before trusting it and only then call
    :func:`restrict_dir_mode`.
    """
    if path.is_dir():
        return path
    path.mkdir(mode=PRIVATE_DIR_MODE, parents=True, exist_ok=True)
    # mkdir honours the umask; pin the new leaf to exactly 0700
    with contextlib.suppress(OSError):
        os.chmod(path, PRIVATE_DIR_MODE)
    return path


def restrict_dir_mode(path: Path) -> None:
    """Best-effort chmod of an already-vetted directory to 0700."""
    with contextlib.suppress(OSError):
        os.chmod(path, PRIVATE_DIR_MODE)
