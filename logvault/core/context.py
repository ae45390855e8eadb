"""Application context shared by the pipeline and the web layer.

One ``AppContext`` is built at startup and passed explicitly to every
component; HTTP handlers reach it through ``get_context``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any

from fastapi import Request

from logvault.core.config import Settings
from logvault.core.sessions import SessionStore
from logvault.core.store import AlarmStore
from logvault.notify.dispatcher import NotificationDispatcher
from logvault.notify.triggers import TriggerTags


@dataclass
class AppContext:
    """Long-lived collaborators for one running instance."""

    settings: Settings
    store: AlarmStore
    dispatcher: NotificationDispatcher
    sessions: SessionStore
    triggers: TriggerTags = field(default_factory=TriggerTags)

    @classmethod
    def build(cls, settings: Settings, redis_client: Any) -> AppContext:
        """Wire a context from settings and a shared Redis client."""
        return cls(
            settings=settings,
            store=AlarmStore(redis_client),
            dispatcher=NotificationDispatcher(settings),
            sessions=SessionStore(expiry=timedelta(hours=settings.session_expiry_hours)),
            triggers=TriggerTags.parse(settings.external_api_trigger_tag),
        )


def get_context(request: Request) -> AppContext:
    """FastAPI dependency returning the context stored on app.state."""
    context: AppContext = request.app.state.context
    return context
