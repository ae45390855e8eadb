"""Tests for the backtick-delimited insights payload."""

from __future__ import annotations

from logvault.ingest.insights import (
    EXTRA_FIELD,
    FORMATTED_TIME_FIELD,
    INSIGHT_FIELDS,
    format_epoch_millis,
    parse_insights,
    split_payload,
)

FULL_PAYLOAD = "`85`1700000000000`malware`sub`file.exe`rule1`1.2.3.4`user1`Alice`Dept`"


def test_full_payload_decodes_every_field() -> None:
    record = parse_insights(FULL_PAYLOAD, "INSIGHTS")

    assert record["tag"] == "INSIGHTS"
    assert record["message"] == FULL_PAYLOAD
    assert record["Score"] == "85"
    assert record["DetectTime"] == "1700000000000"
    assert record["DetectType"] == "malware"
    assert record["DetectSubType"] == "sub"
    assert record["FileName"] == "file.exe"
    assert record["RuleName"] == "rule1"
    assert record["IP"] == "1.2.3.4"
    assert record["UserID"] == "user1"
    assert record["UserName"] == "Alice"
    assert record["Department"] == "Dept"
    assert record[EXTRA_FIELD] == ""
    assert record[FORMATTED_TIME_FIELD] == "2023-11-14 22:13:20"


def test_missing_values_default_to_empty() -> None:
    record = parse_insights("`85`", "INSIGHTS")

    assert record["Score"] == "85"
    for name in INSIGHT_FIELDS[1:]:
        assert record[name] == ""
    assert record[EXTRA_FIELD] == ""
    assert record[FORMATTED_TIME_FIELD] == ""


def test_surplus_values_join_into_extra() -> None:
    record = parse_insights(FULL_PAYLOAD.rstrip("`") + "`more`data`", "INSIGHTS")
    assert record["Department"] == "Dept"
    assert record[EXTRA_FIELD] == "more`data"


def test_non_numeric_detect_time_left_untouched() -> None:
    record = parse_insights("`85`yesterday`malware`", "INSIGHTS")
    assert record["DetectTime"] == "yesterday"
    assert record[FORMATTED_TIME_FIELD] == ""


def test_split_payload_strips_one_delimiter_each_side() -> None:
    assert split_payload("`a`b`") == ["a", "b"]
    assert split_payload("``a`b``") == ["", "a", "b", ""]
    assert split_payload("a`b") == ["a", "b"]
    assert split_payload("``") == []


def test_format_epoch_millis() -> None:
    assert format_epoch_millis("1700000000000") == "2023-11-14 22:13:20"
    assert format_epoch_millis("0") == "1970-01-01 00:00:00"
    assert format_epoch_millis("17e11") is None
    assert format_epoch_millis("") is None
    assert format_epoch_millis("99999999999999999999999") is None


def test_format_epoch_millis_accepts_only_ascii_decimal() -> None:
    assert format_epoch_millis(" 1700000000000 ") == "2023-11-14 22:13:20"
    assert format_epoch_millis("-1000") == "1969-12-31 23:59:59"
    assert format_epoch_millis("1_700_000_000_000") is None
    assert format_epoch_millis("+1700000000000") is None
    assert format_epoch_millis("\u0661\u0667" + "\u0660" * 11) is None


def test_underscored_detect_time_left_unformatted() -> None:
    record = parse_insights("`85`1_700_000_000_000`malware`", "INSIGHTS")
    assert record["DetectTime"] == "1_700_000_000_000"
    assert record[FORMATTED_TIME_FIELD] == ""
