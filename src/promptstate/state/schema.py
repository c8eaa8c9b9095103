"""State bundle schema (version 1).

A bundle is the unit of persisted session state: model identity, prompts,
capability flags and free-form settings. Bundles are never mutated once
saved; refinement produces a new bundle and a new snapshot file.

On disk a bundle is two-space indented JSON with the field names of
:class:`StateBundle`. ``prev_sha`` is omitted when empty.
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

from promptstate.foundation.errors import SchemaInvalidError
from promptstate.foundation.utils.hashing import compute_file_hash, compute_string_hash
from promptstate.foundation.utils.serialization import dumps_indented
from promptstate.foundation.utils.timestamps import format_rfc3339, is_rfc3339, utc_now

logger = logging.getLogger(__name__)

SCHEMA_VERSION = "1"
"""The single supported bundle and pointer schema version."""

_SOURCE_HASH_SEPARATOR = "|"

_STRING_FIELDS = (
    "version",
    "created_at",
    "tool_version",
    "model_id",
    "base_url",
    "toolset_hash",
    "scope_key",
    "source_hash",
    "prev_sha",
)
_MAPPING_FIELDS = ("prep_settings", "context", "tool_caps", "custom")


def compute_source_hash(
    model_id: str,
    base_url: str,
    toolset_hash: str,
    scope_key: str,
) -> str:
    """Digest of the four fields that identify a session.

    Pure and deterministic: equal inputs give equal output and changing any
    one input changes the digest.

    Example:
        >>> compute_source_hash("gpt-x", "http://api", "", "scope-1") == \\
        ...     compute_source_hash("gpt-x", "http://api", "", "scope-1")
        True
    """
    joined = _SOURCE_HASH_SEPARATOR.join((model_id, base_url, toolset_hash, scope_key))
    return compute_string_hash(joined)


def compute_default_scope(model_id: str, base_url: str, toolset_hash: str) -> str:
    """Scope key used when the caller does not configure one."""
    joined = _SOURCE_HASH_SEPARATOR.join(
        (model_id.strip(), base_url.strip(), toolset_hash.strip())
    )
    return compute_string_hash(joined)


def compute_toolset_hash(manifest_path: str | Path | None) -> str:
    """Hash of a tools manifest file, or ``""`` when absent or unreadable."""
    if manifest_path is None or not str(manifest_path).strip():
        return ""
    try:
        return compute_file_hash(Path(str(manifest_path).strip()))
    except OSError as e:
        logger.debug("Tools manifest %s unreadable: %s", manifest_path, e)
        return ""


@dataclass(slots=True)
class StateBundle:
    """Versioned persisted session state."""

    version: str = SCHEMA_VERSION
    created_at: str = ""
    """RFC 3339 UTC timestamp."""

    tool_version: str = ""
    model_id: str = ""
    base_url: str = ""
    toolset_hash: str = ""
    scope_key: str = ""
    """Logical session this bundle belongs to."""

    prompts: dict[str, str] = field(default_factory=dict)
    """Role name -> prompt text."""

    prep_settings: dict[str, Any] = field(default_factory=dict)
    context: dict[str, Any] = field(default_factory=dict)
    tool_caps: dict[str, Any] = field(default_factory=dict)
    custom: dict[str, Any] = field(default_factory=dict)

    source_hash: str = ""
    """compute_source_hash() of model_id, base_url, toolset_hash, scope_key."""

    prev_sha: str = ""
    """SHA-256 of the previous bundle's canonical bytes; refined bundles only."""

    def validate(self) -> None:
        """Check the version 1 invariants.

        Raises:
            SchemaInvalidError: Naming the first invariant that fails
        """
        if self.version != SCHEMA_VERSION:
            raise SchemaInvalidError("version", f"unsupported version {self.version!r}")
        if not is_rfc3339(self.created_at):
            raise SchemaInvalidError("created_at", f"unparseable timestamp {self.created_at!r}")
        if not self.model_id:
            raise SchemaInvalidError("model_id", "missing model_id")
        if not self.base_url:
            raise SchemaInvalidError("base_url", "missing base_url")
        if not self.scope_key:
            raise SchemaInvalidError("scope_key", "missing scope_key")

    def expected_source_hash(self) -> str:
        return compute_source_hash(
            self.model_id, self.base_url, self.toolset_hash, self.scope_key
        )

    def with_recomputed_source_hash(self) -> StateBundle:
        """Copy of this bundle with ``source_hash`` derived from its identity."""
        clone = self.copy()
        clone.source_hash = clone.expected_source_hash()
        return clone

    def copy(self) -> StateBundle:
        """Deep copy; nested settings are not shared with the original."""
        return copy.deepcopy(self)

    def to_dict(self) -> dict[str, Any]:
        """Convert to the on-disk JSON mapping."""
        data: dict[str, Any] = {
            "version": self.version,
            "created_at": self.created_at,
            "tool_version": self.tool_version,
            "model_id": self.model_id,
            "base_url": self.base_url,
            "toolset_hash": self.toolset_hash,
            "scope_key": self.scope_key,
            "prompts": self.prompts,
            "prep_settings": self.prep_settings,
            "context": self.context,
            "tool_caps": self.tool_caps,
            "custom": self.custom,
            "source_hash": self.source_hash,
        }
        if self.prev_sha:
            data["prev_sha"] = self.prev_sha
        return data

    @classmethod
    def from_dict(cls, data: Any) -> StateBundle:
        """Create from a decoded JSON mapping.

        Unknown top-level keys are ignored. Missing mappings become empty.

        Raises:
            SchemaInvalidError: If ``data`` or one of its fields has the wrong type
        """
        if not isinstance(data, dict):
            raise SchemaInvalidError("structure", f"expected object, got {type(data).__name__}")

        known = {f.name for f in fields(cls)}
        kwargs: dict[str, Any] = {}
        for name, value in data.items():
            if name not in known or value is None:
                continue
            if name in _STRING_FIELDS and not isinstance(value, str):
                raise SchemaInvalidError("structure", f"{name} must be a string")
            if name in _MAPPING_FIELDS and not isinstance(value, dict):
                raise SchemaInvalidError("structure", f"{name} must be an object")
            if name == "prompts":
                if not isinstance(value, dict) or not all(
                    isinstance(k, str) and isinstance(v, str) for k, v in value.items()
                ):
                    raise SchemaInvalidError("structure", "prompts must map strings to strings")
            kwargs[name] = value
        return cls(**kwargs)


def canonical_bytes(bundle: StateBundle) -> bytes:
    """The serialization shared by the snapshot store and refinement.

    Key order follows the dataclass field order, so equal bundles give equal
    bytes within one process and across runs.

    Raises:
        SchemaInvalidError: If a settings value is not JSON-serializable
    """
    try:
        return dumps_indented(bundle.to_dict())
    except (TypeError, ValueError) as e:
        raise SchemaInvalidError("structure", f"not JSON-serializable: {e}", cause=e) from e


def new_bundle(
    *,
    model_id: str,
    base_url: str,
    scope_key: str,
    toolset_hash: str = "",
    tool_version: str = "",
    prompts: dict[str, str] | None = None,
    prep_settings: dict[str, Any] | None = None,
    context: dict[str, Any] | None = None,
    tool_caps: dict[str, Any] | None = None,
    custom: dict[str, Any] | None = None,
) -> StateBundle:
    """Build a first-run bundle stamped with the current UTC second."""
    bundle = StateBundle(
        created_at=format_rfc3339(utc_now()),
        tool_version=tool_version,
        model_id=model_id,
        base_url=base_url,
        toolset_hash=toolset_hash,
        scope_key=scope_key,
        prompts=dict(prompts or {}),
        prep_settings=dict(prep_settings or {}),
        context=dict(context or {}),
        tool_caps=dict(tool_caps or {}),
        custom=dict(custom or {}),
    )
    bundle.source_hash = bundle.expected_source_hash()
    return bundle
