"""Deterministic refinement of a state bundle.

Refining derives a new bundle from a previous one plus new instructions.
The previous bundle's canonical bytes are hashed into ``prev_sha``, which
chains snapshots together without a separate history index:

    b0 ── sha256(canonical(b0)) ──> b1.prev_sha
    b1 ── sha256(canonical(b1)) ──> b2.prev_sha

Only the ``developer`` prompt and ``created_at`` change; identity fields are
copied and ``source_hash`` is recomputed from them.
"""

from __future__ import annotations

import copy
from collections.abc import Callable
from datetime import datetime, timedelta
from pathlib import Path

from promptstate.foundation.utils.hashing import compute_hash
from promptstate.foundation.utils.timestamps import format_rfc3339, parse_rfc3339, utc_now
from promptstate.state.schema import StateBundle, canonical_bytes, compute_source_hash

DEVELOPER_ROLE = "developer"
USER_TAG = "USER: "


def refined_developer_prompt(previous: str, refine_instruction: str, user_text: str) -> str:
    """Append the instruction and tagged user text to the developer prompt.

    Blank parts are skipped; parts are separated by a blank line.

    Example:
        >>> refined_developer_prompt("dev1", "be terse", "hello")
        'dev1\\n\\nbe terse\\n\\nUSER: hello'
    """
    parts: list[str] = []
    if previous.strip():
        parts.append(previous)
    if refine_instruction.strip():
        parts.append(refine_instruction)
    if user_text.strip():
        parts.append(USER_TAG + user_text)
    return "\n\n".join(parts).strip()


def next_created_at(previous: str, now: datetime) -> str:
    """Timestamp for the refined bundle, strictly after ``previous``.

    ``now`` is truncated to the second. If that does not move past the
    previous timestamp, the previous timestamp plus one second is used so
    snapshot file names stay distinct.
    """
    candidate = now.replace(microsecond=0)
    prior = parse_rfc3339(previous)
    if candidate <= prior:
        candidate = prior.replace(microsecond=0) + timedelta(seconds=1)
    return format_rfc3339(candidate)


def refine_state_bundle(
    prev: StateBundle,
    refine_instruction: str,
    user_text: str,
    *,
    now: Callable[[], datetime] = utc_now,
) -> StateBundle:
    """Produce a new bundle derived from ``prev``.

    Args:
        prev: Previously loaded bundle (left unmodified)
        refine_instruction: Instruction appended to the developer prompt
        user_text: User prompt appended with a ``USER: `` tag
        now: Clock returning an aware UTC datetime

    Returns:
        New bundle with ``prev_sha`` set to the digest of ``prev``'s
        canonical serialization

    Raises:
        SchemaInvalidError: If ``prev`` is invalid
    """
    prev.validate()
    prev_sha = compute_hash(canonical_bytes(prev))

    prompts = dict(prev.prompts)
    prompts[DEVELOPER_ROLE] = refined_developer_prompt(
        prompts.get(DEVELOPER_ROLE, ""), refine_instruction, user_text
    )

    return StateBundle(
        version=prev.version,
        created_at=next_created_at(prev.created_at, now()),
        tool_version=prev.tool_version,
        model_id=prev.model_id,
        base_url=prev.base_url,
        toolset_hash=prev.toolset_hash,
        scope_key=prev.scope_key,
        prompts=prompts,
        prep_settings=copy.deepcopy(prev.prep_settings),
        context=copy.deepcopy(prev.context),
        tool_caps=copy.deepcopy(prev.tool_caps),
        custom=copy.deepcopy(prev.custom),
        source_hash=compute_source_hash(
            prev.model_id, prev.base_url, prev.toolset_hash, prev.scope_key
        ),
        prev_sha=prev_sha,
    )


def resolve_refine_input(text: str | None, file_path: str | Path | None) -> str:
    """Refinement instruction from a file (preferred) or inline text.

    Raises:
        OSError: If ``file_path`` is given but cannot be read
    """
    if file_path is not None and str(file_path).strip():
        return Path(str(file_path).strip()).read_text(encoding="utf-8")
    return text or ""
