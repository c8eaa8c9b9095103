"""Safe JSON/YAML serialization and crash-safe file writes.

Every write to a state directory goes through :func:`atomic_write_bytes`:
temp file in the same directory, fsync, ``os.replace`` into place, then a
sync of the directory entry. Readers never observe a partial file.
"""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Protocol

import yaml

from promptstate.foundation.utils.paths import PRIVATE_FILE_MODE, ensure_private_dir

logger = logging.getLogger(__name__)


class DirectorySyncer(Protocol):
    """Strategy that makes a directory entry durable after a rename."""

    def sync(self, directory: Path) -> None:
        ...


class FsyncDirectorySyncer:
    """Default syncer: fsync an open handle on the directory.

    Platforms that cannot open directories (Windows) skip the sync.
    """

    def sync(self, directory: Path) -> None:
        if os.name == "nt":
            return
        fd = os.open(directory, os.O_RDONLY)
        try:
            os.fsync(fd)
        finally:
            os.close(fd)


def safe_json_loads(data: str | bytes) -> Any:
    """Parse JSON with clear error messages.

    Raises:
        ValueError: If JSON is invalid (with clear message)
    """
    try:
        return json.loads(data)
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON: {e.msg} at line {e.lineno}, column {e.colno}") from e
    except UnicodeDecodeError as e:
        raise ValueError(f"Invalid JSON encoding: {e}") from e


def dumps_indented(obj: Any) -> bytes:
    """Serialize to two-space indented UTF-8 JSON, the on-disk format."""
    return json.dumps(obj, indent=2, ensure_ascii=False).encode("utf-8")


def safe_yaml_load(path: Path) -> dict[str, Any]:
    """Load a YAML mapping from ``path``.

    Raises:
        FileNotFoundError: If file doesn't exist
        ValueError: If YAML is invalid or not a mapping
    """
    content = path.read_text(encoding="utf-8")
    try:
        data = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in {path}: {e}") from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"YAML must contain a dict, got {type(data).__name__}")
    return data


def atomic_write_bytes(
    path: Path,
    data: bytes,
    *,
    syncer: DirectorySyncer | None = None,
) -> None:
    """Write ``data`` to ``path`` atomically with owner-only permissions.

    Args:
        path: Destination file
        data: Bytes to write
        syncer: Directory sync strategy (default: fsync the directory)

    Raises:
        OSError: If any step fails; the temp file is removed first
    """
    directory = ensure_private_dir(path.parent)
    fd, tmp_name = tempfile.mkstemp(prefix=".tmp-", dir=directory)
    try:
        with os.fdopen(fd, "wb") as f:
            os.chmod(tmp_name, PRIVATE_FILE_MODE)
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        try:
            os.unlink(tmp_name)
        except OSError:
            pass
        raise

    (syncer or FsyncDirectorySyncer()).sync(directory)
    logger.debug("Wrote %s (%d bytes)", path, len(data))
