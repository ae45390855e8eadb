"""Tests for trigger-tag parsing and matching."""

from __future__ import annotations

from logvault.notify.triggers import TriggerTags, normalize_tag


def test_parse_trims_and_skips_blanks() -> None:
    triggers = TriggerTags.parse(" ALARM, insights ,, ")
    assert triggers.tags == frozenset({"ALARM", "INSIGHTS"})


def test_matching_is_case_insensitive() -> None:
    triggers = TriggerTags.parse("alarm")
    assert triggers.matches("ALARM")
    assert triggers.matches(" Alarm ")
    assert not triggers.matches("CLEAR")


def test_empty_set_is_falsy() -> None:
    assert not TriggerTags.parse("")
    assert not TriggerTags()
    assert TriggerTags.parse("ALARM")


def test_normalize_tag() -> None:
    assert normalize_tag("  clear\n") == "CLEAR"
