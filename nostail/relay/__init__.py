"""Relay connections and the notification stream they feed.

Example usage:
    from nostail.relay import RelayPool, EventNotification

    async with RelayPool() as pool:
        await pool.add_relay("wss://relay.example.com")
        await pool.subscribe(build_filters())
        stream = pool.notifications()
        await pool.connect()

        async for notification in stream:
            if isinstance(notification, EventNotification):
                print(notification.event.kind)
"""

from .notifications import (
    EventNotification,
    MessageNotification,
    Notification,
    RelayStatus,
    RelayStatusNotification,
    ShutdownNotification,
    StopNotification,
)
from .pool import Relay, RelayPool, RelayPoolOptions, validate_relay_url
from .stream import NotificationStream

__all__ = [
    # Notifications
    "EventNotification",
    "MessageNotification",
    "Notification",
    "RelayStatus",
    "RelayStatusNotification",
    "ShutdownNotification",
    "StopNotification",
    # Pool
    "Relay",
    "RelayPool",
    "RelayPoolOptions",
    "validate_relay_url",
    # Stream
    "NotificationStream",
]
