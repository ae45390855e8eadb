"""Syslog message parsing (RFC 5424 and RFC 3164).

Turns one raw datagram into a flat field map of strings. RFC 5424 yields
``app_name``/``message``; RFC 3164 yields ``tag``/``content``. Envelope
resolution in :mod:`logvault.ingest.envelope` consumes either pair.

Nil RFC 5424 values (``-``) become empty strings. Structured data is kept
verbatim as a string; it is not interpreted.
"""

from __future__ import annotations

import re

FORMAT_RFC5424 = "rfc5424"
FORMAT_RFC3164 = "rfc3164"
FORMAT_AUTOMATIC = "automatic"

_BOM = "\ufeff"
_NIL = "-"

_PRI_RE = re.compile(r"^<(\d{1,3})>")
_VERSION_RE = re.compile(r"^[1-9]\d? ")

# "Oct 11 22:14:15" (day may be space padded) or an RFC 3339 timestamp
_BSD_HEADER_RE = re.compile(
    r"^(?P<timestamp>[A-Z][a-z]{2} [ \d]\d \d{2}:\d{2}:\d{2}"
    r"|\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}(?:\.\d+)?(?:Z|[+-]\d{2}:\d{2})?)"
    r" +(?P<hostname>\S+) ?(?P<body>.*)$",
    re.DOTALL,
)
_BSD_TAG_RE = re.compile(r"^(?P<tag>[^\s\[:]{1,32})(?:\[(?P<pid>[^\]]*)\])?:\s?(?P<content>.*)$", re.DOTALL)


class SyslogParseError(ValueError):
    """Raised when a datagram cannot be parsed as syslog."""


def _decode(data: bytes | str) -> str:
    text = data.decode("utf-8", errors="replace") if isinstance(data, bytes) else data
    return text.rstrip("\r\n\x00")


def _split_pri(text: str) -> tuple[dict[str, str], str]:
    match = _PRI_RE.match(text)
    if not match:
        raise SyslogParseError("missing PRI")
    pri = int(match.group(1))
    if pri > 191:
        raise SyslogParseError(f"invalid PRI value {pri}")
    fields = {
        "priority": str(pri),
        "facility": str(pri // 8),
        "severity": str(pri % 8),
    }
    return fields, text[match.end():]


def _nil(value: str) -> str:
    return "" if value == _NIL else value


def _scan_structured_data(text: str) -> int:
    """Return the index just past the structured-data element list.

    Inside quoted param values ``\\"``, ``\\]`` and ``\\\\`` are escapes.
    """
    pos = 0
    length = len(text)
    while pos < length and text[pos] == "[":
        pos += 1
        in_quotes = False
        while True:
            if pos >= length:
                raise SyslogParseError("unterminated structured data")
            char = text[pos]
            if in_quotes and char == "\\":
                pos += 2
                continue
            if char == '"':
                in_quotes = not in_quotes
            elif char == "]" and not in_quotes:
                pos += 1
                break
            pos += 1
    return pos


def parse_rfc5424(data: bytes | str) -> dict[str, str]:
    """Parse an RFC 5424 message.

    Raises:
        SyslogParseError: On a missing PRI or a truncated header.
    """
    fields, rest = _split_pri(_decode(data))
    parts = rest.split(" ", 6)
    if len(parts) < 7:
        raise SyslogParseError("truncated RFC 5424 header")
    version, timestamp, hostname, app_name, proc_id, msg_id, remainder = parts
    if not version.isdigit():
        raise SyslogParseError(f"invalid version {version!r}")

    if remainder.startswith(_NIL):
        structured_data = ""
        tail = remainder[1:]
    elif remainder.startswith("["):
        end = _scan_structured_data(remainder)
        structured_data = remainder[:end]
        tail = remainder[end:]
    else:
        raise SyslogParseError("invalid structured data")

    if tail and not tail.startswith(" "):
        raise SyslogParseError("missing separator before MSG")
    message = tail[1:]
    if message.startswith(_BOM):
        message = message[len(_BOM):]

    fields.update(
        {
            "version": version,
            "timestamp": _nil(timestamp),
            "hostname": _nil(hostname),
            "app_name": _nil(app_name),
            "proc_id": _nil(proc_id),
            "msg_id": _nil(msg_id),
            "structured_data": structured_data,
            "message": message,
        }
    )
    return fields


def parse_rfc3164(data: bytes | str) -> dict[str, str]:
    """Parse a BSD (RFC 3164) message.

    Without a recognizable ``TIMESTAMP HOSTNAME`` header the whole body
    becomes ``content`` and no ``tag`` field is produced. A header without a
    ``TAG:`` prefix gives an empty tag.

    Raises:
        SyslogParseError: On a missing or invalid PRI.
    """
    fields, rest = _split_pri(_decode(data))
    header = _BSD_HEADER_RE.match(rest)
    if not header:
        fields["content"] = rest.strip()
        return fields

    fields["timestamp"] = header.group("timestamp")
    fields["hostname"] = header.group("hostname")
    body = header.group("body")
    tagged = _BSD_TAG_RE.match(body)
    if tagged:
        fields["tag"] = tagged.group("tag")
        fields["content"] = tagged.group("content")
        if tagged.group("pid") is not None:
            fields["proc_id"] = tagged.group("pid")
    else:
        fields["tag"] = ""
        fields["content"] = body
    return fields


def detect_format(data: bytes | str) -> str:
    """Guess the wire format: RFC 5424 when PRI is followed by a version."""
    _fields, rest = _split_pri(_decode(data))
    return FORMAT_RFC5424 if _VERSION_RE.match(rest) else FORMAT_RFC3164


def parse_message(data: bytes | str, fmt: str = FORMAT_AUTOMATIC) -> dict[str, str]:
    """Parse one datagram in the given format (or detect it)."""
    if fmt == FORMAT_AUTOMATIC:
        fmt = detect_format(data)
    if fmt == FORMAT_RFC5424:
        return parse_rfc5424(data)
    if fmt == FORMAT_RFC3164:
        return parse_rfc3164(data)
    raise ValueError(f"Unknown syslog format: {fmt}")
