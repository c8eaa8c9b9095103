"""Redaction of secrets and raw payloads before a bundle reaches disk.

The sanitized copy is what gets serialized; the caller's bundle is never
modified. Rules, applied to every string value at any depth:

- ``Authorization: <Bearer|Token|Basic> <token>`` keeps the scheme and
  masks the token to ``****`` plus its last four characters.
- Values under credential-shaped keys (``api_key``, ``apikey``, ``token``,
  ``password``, ``secret``) are masked the same way.
- Values under ``Authorization`` keys keep a leading scheme word and mask
  the token; a value with no scheme is masked whole.
- Runs of 64+ base64-alphabet characters are masked.
- Keys holding raw request/response bodies are dropped entirely.

Unknown keys pass through unchanged.
"""

from __future__ import annotations

import re
from typing import Any

from promptstate.state.schema import StateBundle

MASK = "****"

_AUTH_HEADER = re.compile(
    r"authorization\s*:\s*(bearer|token|basic)\s+([A-Za-z0-9._\-]+)",
    re.IGNORECASE,
)
_LONG_BASE64 = re.compile(r"[A-Za-z0-9+/=]{64,}")
# Bare header value, as stored under an Authorization key
_AUTH_VALUE = re.compile(r"^\s*(bearer|token|basic)\s+(\S+)\s*$", re.IGNORECASE)

AUTHORIZATION_KEY_MARKER = "authorization"

CREDENTIAL_KEY_MARKERS: tuple[str, ...] = ("api_key", "apikey", "token", "password", "secret")
RAW_BODY_KEYS: frozenset[str] = frozenset(
    {"request_body", "response_body", "raw_request", "raw_response"}
)


def mask_value(value: str) -> str:
    """Mask a secret, keeping at most its last four characters.

    Example:
        >>> mask_value("sk-abcdef123456")
        '****3456'
    """
    trimmed = value.strip()
    if not trimmed:
        return ""
    return MASK + trimmed[-4:]


def is_credential_key(key: str) -> bool:
    lowered = key.lower()
    return any(marker in lowered for marker in CREDENTIAL_KEY_MARKERS)


def is_authorization_key(key: str) -> bool:
    """True for ``Authorization``, ``Proxy-Authorization`` and similar keys."""
    return AUTHORIZATION_KEY_MARKER in key.lower()


def is_raw_body_key(key: str) -> bool:
    return key.lower() in RAW_BODY_KEYS


def _redact_auth_header(match: re.Match[str]) -> str:
    return f"Authorization: {match.group(1)} {mask_value(match.group(2))}"


def _mask_authorization_value(value: str) -> str:
    """``Bearer abc123`` -> ``Bearer ****c123``; unknown shapes are fully masked."""
    match = _AUTH_VALUE.match(value)
    if match is None:
        return mask_value(value)
    return f"{match.group(1)} {mask_value(match.group(2))}"


def sanitize_string(key: str, value: str) -> str:
    """Apply the string rules to ``value`` found under ``key``."""
    result = _AUTH_HEADER.sub(_redact_auth_header, value)
    if is_authorization_key(key):
        if result == value:
            result = _mask_authorization_value(result)
    elif is_credential_key(key):
        result = mask_value(result)
    return _LONG_BASE64.sub(lambda m: mask_value(m.group(0)), result)


def sanitize_value(key: str, value: Any) -> Any:
    """Sanitize any JSON value found under ``key``."""
    if isinstance(value, str):
        return sanitize_string(key, value)
    if isinstance(value, dict):
        return sanitize_mapping(value)
    if isinstance(value, (list, tuple)):
        return [sanitize_value(key, item) for item in value]
    # numbers, booleans, None
    return value


def sanitize_mapping(mapping: dict[str, Any]) -> dict[str, Any]:
    """Sanitized copy of ``mapping``; raw body keys are omitted."""
    return {
        key: sanitize_value(key, value)
        for key, value in mapping.items()
        if not is_raw_body_key(str(key))
    }


def sanitize_bundle(bundle: StateBundle) -> StateBundle:
    """Return a redacted deep copy of ``bundle`` suitable for persistence."""
    return StateBundle(
        version=bundle.version,
        created_at=bundle.created_at,
        tool_version=bundle.tool_version,
        model_id=bundle.model_id,
        base_url=bundle.base_url,
        toolset_hash=bundle.toolset_hash,
        scope_key=bundle.scope_key,
        prompts={
            role: sanitize_string(role, text)
            for role, text in bundle.prompts.items()
        },
        prep_settings=sanitize_mapping(bundle.prep_settings),
        context=sanitize_mapping(bundle.context),
        tool_caps=sanitize_mapping(bundle.tool_caps),
        custom=sanitize_mapping(bundle.custom),
        source_hash=bundle.source_hash,
        prev_sha=bundle.prev_sha,
    )
