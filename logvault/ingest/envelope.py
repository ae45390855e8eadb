"""Envelope resolution: the (tag, content) pair handed to the classifier.

Two wire sub-formats supply the pair under different field names:

- RFC 3164 (``structured``): ``tag`` / ``content``
- RFC 5424 (``legacy``): ``app_name`` / ``message``

Which pair is consulted first is configurable. For each concept the first
non-empty value wins.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass

PRECEDENCE_STRUCTURED = "structured"
PRECEDENCE_LEGACY = "legacy"

_TAG_FIELDS = {
    PRECEDENCE_STRUCTURED: ("tag", "app_name"),
    PRECEDENCE_LEGACY: ("app_name", "tag"),
}
_CONTENT_FIELDS = {
    PRECEDENCE_STRUCTURED: ("content", "message"),
    PRECEDENCE_LEGACY: ("message", "content"),
}


class MalformedEnvelopeError(ValueError):
    """Raised when a field map carries neither tag field."""


@dataclass(frozen=True)
class Envelope:
    """Decoded unit handed from the listener to the classifier."""

    tag: str
    content: str

    @property
    def is_empty(self) -> bool:
        return not self.content


def _first_value(fields: Mapping[str, object], names: tuple[str, ...]) -> str:
    for name in names:
        value = fields.get(name)
        if isinstance(value, str) and value:
            return value
    return ""


def resolve_envelope(fields: Mapping[str, object], precedence: str = PRECEDENCE_STRUCTURED) -> Envelope:
    """Build an Envelope from a parsed syslog field map.

    Args:
        fields: Field name to value, as produced by the syslog parser.
        precedence: ``structured`` (tag/content first) or ``legacy``
            (app_name/message first).

    Raises:
        MalformedEnvelopeError: If both tag-source fields are absent.
        ValueError: On an unknown precedence.
    """
    if precedence not in _TAG_FIELDS:
        raise ValueError(f"Unknown tag precedence: {precedence}")
    tag_fields = _TAG_FIELDS[precedence]
    if not any(name in fields for name in tag_fields):
        raise MalformedEnvelopeError("no tag field present")
    return Envelope(
        tag=_first_value(fields, tag_fields).strip(),
        content=_first_value(fields, _CONTENT_FIELDS[precedence]).strip(),
    )
