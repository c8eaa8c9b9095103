"""Foundation utilities - Generic helpers shared by the state and CLI layers.

Provides:
- Hashing (compute_hash, compute_string_hash, compute_file_hash)
- Path operations (normalize_path, is_base_name, ensure_private_dir, restrict_dir_mode)
- Serialization (safe_json_loads, dumps_indented, safe_yaml_load, atomic_write_bytes)
- Timestamps (parse_rfc3339, format_rfc3339, utc_now, filename_timestamp)
"""

from promptstate.foundation.utils.hashing import (
    compute_file_hash,
    compute_hash,
    compute_string_hash,
    digests_match,
)
from promptstate.foundation.utils.paths import (
    PRIVATE_DIR_MODE,
    PRIVATE_FILE_MODE,
    ensure_private_dir,
    is_base_name,
    normalize_path,
    restrict_dir_mode,
)
from promptstate.foundation.utils.serialization import (
    DirectorySyncer,
    FsyncDirectorySyncer,
    atomic_write_bytes,
    dumps_indented,
    safe_json_loads,
    safe_yaml_load,
)
from promptstate.foundation.utils.timestamps import (
    filename_timestamp,
    format_rfc3339,
    format_rfc3339_nano,
    is_rfc3339,
    parse_rfc3339,
    utc_now,
)

__all__ = [
    # Hashing utilities
    "compute_hash",
    "compute_string_hash",
    "compute_file_hash",
    "digests_match",
    # Path utilities
    "PRIVATE_DIR_MODE",
    "PRIVATE_FILE_MODE",
    "ensure_private_dir",
    "is_base_name",
    "normalize_path",
    "restrict_dir_mode",
    # Serialization utilities
    "DirectorySyncer",
    "FsyncDirectorySyncer",
    "atomic_write_bytes",
    "dumps_indented",
    "safe_json_loads",
    "safe_yaml_load",
    # Timestamp utilities
    "filename_timestamp",
    "format_rfc3339",
    "format_rfc3339_nano",
    "is_rfc3339",
    "parse_rfc3339",
    "utc_now",
]
