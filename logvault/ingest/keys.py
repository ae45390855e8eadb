"""Storage key derivation.

Deterministic keys come from the first whitespace-delimited token of the
content so that an ALARM and a later CLEAR address the same record.
Random keys come from 16 bytes of OS entropy and are never addressed again
by the pipeline.
"""

from __future__ import annotations

import secrets

from logvault.core.store import ALARM_PREFIX

RANDOM_KEY_BYTES = 16


class KeyGenerationError(RuntimeError):
    """Raised when no key can be derived for a record."""


def deterministic_key(content: str, prefix: str = ALARM_PREFIX) -> str:
    """Return ``<prefix><first token of content>``.

    Raises:
        KeyGenerationError: If the content has no token.
    """
    tokens = content.split(maxsplit=1)
    if not tokens:
        raise KeyGenerationError("content has no token to derive a key from")
    return f"{prefix}{tokens[0]}"


def random_key(prefix: str = ALARM_PREFIX) -> str:
    """Return ``<prefix><32 hex chars>`` from 16 random bytes.

    Raises:
        KeyGenerationError: If the entropy source is unavailable.
    """
    try:
        suffix = secrets.token_hex(RANDOM_KEY_BYTES)
    except (NotImplementedError, OSError) as exc:
        raise KeyGenerationError(f"entropy source unavailable: {exc}") from exc
    return f"{prefix}{suffix}"
