"""Message classification: tag dispatch, key derivation and encoding.

Each normalized tag maps to a ``TagStrategy`` describing how the storage
key is derived, how the value is encoded, and whether the event may
trigger an external notification::

    tag         kind      key            effect   notifies
    ALARM       ALARM     alarm:<token>  set      yes
    CLEAR       CLEAR     alarm:<token>  delete   yes
    <insights>  INSIGHTS  alarm:<hex>    set      yes
    ""          FALLBACK  alarm:<hex>    set      no   (tag stored as "NONE")
    other       FALLBACK  alarm:<hex>    set      no

Notifications are gated on the trigger set for every kind, CLEAR included,
and are queued only after the store mutation succeeded.
"""

from __future__ import annotations

import enum
import json
import logging
from collections.abc import Callable
from dataclasses import dataclass

import redis.asyncio as aioredis

from logvault.core.store import AlarmStore
from logvault.ingest.envelope import Envelope
from logvault.ingest.insights import parse_insights
from logvault.ingest.keys import KeyGenerationError, deterministic_key, random_key
from logvault.notify.dispatcher import NotificationDispatcher
from logvault.notify.triggers import TriggerTags, normalize_tag

logger = logging.getLogger(__name__)

EMPTY_TAG_LABEL = "NONE"


class MessageKind(enum.StrEnum):
    """Lifecycle class of a classified message."""

    ALARM = "ALARM"
    CLEAR = "CLEAR"
    INSIGHTS = "INSIGHTS"
    FALLBACK = "FALLBACK"


@dataclass(frozen=True)
class Classification:
    """Outcome of classifying one envelope.

    Attributes:
        kind: Which strategy handled the message.
        key: Full storage key (``alarm:...``).
        value: Encoded value to store; None when ``delete_only``.
        delete_only: True when the key is to be removed instead of written.
        tag: Normalized tag (``NONE`` for an empty tag).
        message: The envelope content.
        notifies: Whether this kind may trigger a notification.
    """

    kind: MessageKind
    key: str
    value: str | None
    delete_only: bool
    tag: str
    message: str
    notifies: bool

    def notification_payload(self) -> dict[str, str]:
        return {"key": self.key, "message": self.message, "status": self.tag}


def encode_tagged(tag: str, content: str) -> str:
    return json.dumps({"tag": tag, "message": content})


@dataclass(frozen=True)
class TagStrategy:
    """Key derivation and encoding for one kind of message."""

    kind: MessageKind
    deterministic: bool
    encode: Callable[[str, str], str] | None
    notifies: bool

    @property
    def delete_only(self) -> bool:
        return self.encode is None


def _encode_insights(tag: str, content: str) -> str:
    return json.dumps(parse_insights(content, tag))


ALARM_STRATEGY = TagStrategy(MessageKind.ALARM, True, encode_tagged, notifies=True)
CLEAR_STRATEGY = TagStrategy(MessageKind.CLEAR, True, None, notifies=True)
INSIGHTS_STRATEGY = TagStrategy(MessageKind.INSIGHTS, False, _encode_insights, notifies=True)
FALLBACK_STRATEGY = TagStrategy(MessageKind.FALLBACK, False, encode_tagged, notifies=False)


def build_strategy_table(insights_tag: str = "INSIGHTS") -> dict[str, TagStrategy]:
    """Return the dispatch table keyed by normalized tag.

    ALARM and CLEAR win if the insights tag is configured to one of them.
    """
    table: dict[str, TagStrategy] = {}
    if normalize_tag(insights_tag):
        table[normalize_tag(insights_tag)] = INSIGHTS_STRATEGY
    table["ALARM"] = ALARM_STRATEGY
    table["CLEAR"] = CLEAR_STRATEGY
    return table


class MessageClassifier:
    """Classify envelopes and apply their effect on the store.

    Args:
        store: Store adapter receiving set/delete calls.
        dispatcher: Notification dispatcher; consulted only when enabled.
        triggers: Tags allowed to trigger a notification.
        insights_tag: Tag carrying a structured backtick payload.
        key_factory: Random key generator, replaceable in tests.
    """

    def __init__(
        self,
        store: AlarmStore,
        dispatcher: NotificationDispatcher | None = None,
        triggers: TriggerTags | None = None,
        insights_tag: str = "INSIGHTS",
        key_factory: Callable[[], str] = random_key,
    ) -> None:
        self.store = store
        self.dispatcher = dispatcher
        self.triggers = triggers or TriggerTags()
        self.key_factory = key_factory
        self.strategies = build_strategy_table(insights_tag)

    def strategy_for(self, tag: str) -> TagStrategy:
        return self.strategies.get(normalize_tag(tag), FALLBACK_STRATEGY)

    def classify(self, envelope: Envelope) -> Classification:
        """Derive key and encoded value for an envelope. No side effects.

        Raises:
            KeyGenerationError: If no key can be derived.
        """
        tag = normalize_tag(envelope.tag) or EMPTY_TAG_LABEL
        strategy = self.strategy_for(envelope.tag)

        key = deterministic_key(envelope.content) if strategy.deterministic else self.key_factory()

        value: str | None = None
        if strategy.encode is not None:
            try:
                value = strategy.encode(tag, envelope.content)
            except (TypeError, ValueError):
                logger.warning("Failed to encode %s payload; storing raw message", strategy.kind)
                key = self.key_factory()
                value = envelope.content

        return Classification(
            kind=strategy.kind,
            key=key,
            value=value,
            delete_only=strategy.delete_only,
            tag=tag,
            message=envelope.content,
            notifies=strategy.notifies,
        )

    async def process(self, envelope: Envelope) -> Classification | None:
        """Classify an envelope, mutate the store, and queue a notification.

        Returns:
            The classification if the store mutation succeeded, else None.
        """
        if envelope.is_empty:
            logger.debug("Discarding envelope with empty content (tag=%r)", envelope.tag)
            return None

        try:
            result = self.classify(envelope)
        except KeyGenerationError as exc:
            logger.error("Failed to derive key for %s message: %s", envelope.tag or EMPTY_TAG_LABEL, exc)
            return None

        try:
            if result.delete_only:
                await self.store.delete(result.key)
                logger.info("%s: Deleted key %s", result.tag, result.key)
            else:
                await self.store.set(result.key, result.value or "")
                logger.info("%s: Set key %s", result.tag, result.key)
        except (aioredis.RedisError, ConnectionError, OSError) as exc:
            action = "DEL" if result.delete_only else "SET"
            logger.error("Failed to %s key %s: %s", action, result.key, exc)
            return None

        if self.dispatcher is not None and self._should_notify(result):
            self.dispatcher.notify(result.notification_payload())
        return result

    def _should_notify(self, result: Classification) -> bool:
        return (
            result.notifies
            and self.dispatcher is not None
            and self.dispatcher.enabled
            and self.triggers.matches(result.tag)
        )
