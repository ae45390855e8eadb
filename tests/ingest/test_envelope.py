"""Tests for envelope resolution from parsed syslog fields."""

from __future__ import annotations

import pytest

from logvault.ingest.envelope import (
    PRECEDENCE_LEGACY,
    Envelope,
    MalformedEnvelopeError,
    resolve_envelope,
)


def test_rfc3164_fields() -> None:
    envelope = resolve_envelope({"tag": "ALARM", "content": "disk1 full"})
    assert envelope == Envelope(tag="ALARM", content="disk1 full")


def test_rfc5424_fields() -> None:
    envelope = resolve_envelope({"app_name": "CLEAR", "message": "disk1 ok"})
    assert envelope == Envelope(tag="CLEAR", content="disk1 ok")


def test_structured_precedence_prefers_tag() -> None:
    fields = {"tag": "ALARM", "app_name": "CLEAR", "content": "a", "message": "b"}
    envelope = resolve_envelope(fields)
    assert envelope.tag == "ALARM"
    assert envelope.content == "a"


def test_legacy_precedence_prefers_app_name() -> None:
    fields = {"tag": "ALARM", "app_name": "CLEAR", "content": "a", "message": "b"}
    envelope = resolve_envelope(fields, PRECEDENCE_LEGACY)
    assert envelope.tag == "CLEAR"
    assert envelope.content == "b"


def test_first_non_empty_value_wins() -> None:
    envelope = resolve_envelope({"tag": "", "app_name": "ALARM", "content": "", "message": "x"})
    assert envelope.tag == "ALARM"
    assert envelope.content == "x"


def test_present_but_empty_tag_resolves_to_empty() -> None:
    envelope = resolve_envelope({"tag": "", "content": "orphan line"})
    assert envelope.tag == ""
    assert envelope.content == "orphan line"


def test_values_are_stripped() -> None:
    envelope = resolve_envelope({"tag": " ALARM ", "content": "  disk1 full \n"})
    assert envelope == Envelope(tag="ALARM", content="disk1 full")


def test_both_tag_fields_absent_is_malformed() -> None:
    with pytest.raises(MalformedEnvelopeError):
        resolve_envelope({"content": "free form text"})


def test_empty_content_marks_envelope_empty() -> None:
    assert resolve_envelope({"tag": "ALARM", "content": "   "}).is_empty


def test_unknown_precedence_rejected() -> None:
    with pytest.raises(ValueError, match="Unknown tag precedence"):
        resolve_envelope({"tag": "ALARM", "content": "x"}, "newest")
