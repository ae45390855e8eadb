"""Structured "insights" payload decoding.

Content is a backtick-delimited list of positional values mapped onto a
fixed field list. Surplus values are joined back into ``Extra``; missing
ones default to an empty string, so every field is always present.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import Any

logger = logging.getLogger(__name__)

DELIMITER = "`"

INSIGHT_FIELDS: tuple[str, ...] = (
    "Score",
    "DetectTime",
    "DetectType",
    "DetectSubType",
    "FileName",
    "RuleName",
    "IP",
    "UserID",
    "UserName",
    "Department",
)

EXTRA_FIELD = "Extra"
FORMATTED_TIME_FIELD = "DetectTimeFormatted"
TIME_FORMAT = "%Y-%m-%d %H:%M:%S"


def split_payload(content: str) -> list[str]:
    """Split on the delimiter after dropping one leading and trailing delimiter."""
    text = content.strip()
    if text.startswith(DELIMITER):
        text = text[len(DELIMITER):]
    if text.endswith(DELIMITER):
        text = text[: -len(DELIMITER)]
    if not text:
        return []
    return text.split(DELIMITER)


def format_epoch_millis(value: str) -> str | None:
    """Render a base-10 epoch-milliseconds string as UTC ``YYYY-MM-DD HH:MM:SS``.

    Returns None when the value is not an integer or out of range.
    """
    raw = value.strip()
    if not (raw.isascii() and raw.removeprefix("-").isdigit()):
        return None
    try:
        millis = int(raw, 10)
        return datetime.fromtimestamp(millis / 1000, tz=UTC).strftime(TIME_FORMAT)
    except (ValueError, OverflowError, OSError):
        logger.debug("DetectTime %r is out of range", value)
        return None


def parse_insights(content: str, tag: str) -> dict[str, Any]:
    """Decode a structured payload into a record with every field present."""
    values = split_payload(content)
    record: dict[str, Any] = {"tag": tag, "message": content}
    for index, name in enumerate(INSIGHT_FIELDS):
        record[name] = values[index] if index < len(values) else ""
    record[EXTRA_FIELD] = DELIMITER.join(values[len(INSIGHT_FIELDS):])
    record[FORMATTED_TIME_FIELD] = format_epoch_millis(record["DetectTime"]) or ""
    return record
