"""External HTTP notification for classified events."""

from logvault.notify.dispatcher import NotificationDispatcher
from logvault.notify.triggers import TriggerTags

__all__ = [
    "NotificationDispatcher",
    "TriggerTags",
]
