"""Notification types published by the relay pool.

All notifications are immutable (frozen dataclasses) and carry a
``notification_type`` tag for logging and dispatch.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Tuple, Union

from ..models import Event


class RelayStatus(Enum):
    """Connection status of a single relay."""
    INITIALIZED = "initialized"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    STOPPED = "stopped"
    TERMINATED = "terminated"


@dataclass(frozen=True)
class EventNotification:
    """A new event, published once even if several relays deliver it.

    Attributes:
        relay_url: Relay that delivered the event first
        event: The event
        notification_type: Always "event"
    """

    relay_url: str
    event: Event
    notification_type: str = field(default="event", repr=False)


@dataclass(frozen=True)
class MessageNotification:
    """Any message received from a relay (EVENT, EOSE, NOTICE, OK, ...).

    Attributes:
        relay_url: Relay that sent the message
        message: The decoded JSON array
        notification_type: Always "message"
    """

    relay_url: str
    message: Tuple[Any, ...]
    notification_type: str = field(default="message", repr=False)


@dataclass(frozen=True)
class RelayStatusNotification:
    """A relay changed connection status.

    Attributes:
        relay_url: The relay
        status: Its new status
        notification_type: Always "relay_status"
    """

    relay_url: str
    status: RelayStatus
    notification_type: str = field(default="relay_status", repr=False)


@dataclass(frozen=True)
class StopNotification:
    """The pool stopped its relays; it may be reconnected later."""

    notification_type: str = field(default="stop", repr=False)


@dataclass(frozen=True)
class ShutdownNotification:
    """The pool shut down for good; no more notifications will follow."""

    notification_type: str = field(default="shutdown", repr=False)


# Type alias for all notification types
Notification = Union[
    EventNotification,
    MessageNotification,
    RelayStatusNotification,
    StopNotification,
    ShutdownNotification,
]
