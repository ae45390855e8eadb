"""Trigger-tag matching for external notifications."""

from __future__ import annotations

from dataclasses import dataclass


def normalize_tag(tag: str) -> str:
    return tag.strip().upper()


@dataclass(frozen=True)
class TriggerTags:
    """Case-insensitive set of tags that cause a notification."""

    tags: frozenset[str] = frozenset()

    @classmethod
    def parse(cls, value: str) -> TriggerTags:
        """Parse a comma-separated list, trimming whitespace and skipping blanks."""
        return cls(frozenset(normalize_tag(part) for part in value.split(",") if part.strip()))

    def matches(self, tag: str) -> bool:
        return normalize_tag(tag) in self.tags

    def __bool__(self) -> bool:
        return bool(self.tags)
