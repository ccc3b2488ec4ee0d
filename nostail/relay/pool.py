"""Relay pool: connections, subscriptions and notification fan-out.

The pool keeps one websocket connection task per relay, sends the
current subscription on every (re)connection and publishes what the
relays send to every NotificationStream handed out by notifications().

Example usage:
    pool = RelayPool()
    await pool.add_relay("wss://relay.example.com")
    await pool.subscribe(build_filters([1]))
    await pool.connect()

    stream = pool.notifications()
    notification = await stream.recv()

    await pool.shutdown()
"""

import asyncio
import json
import logging
import uuid
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence
from urllib.parse import urlparse

import websockets
from websockets.exceptions import WebSocketException

from ..errors import EventParseError, RelayError
from ..filters import Filter
from ..models import Event
from .notifications import (
    EventNotification,
    MessageNotification,
    Notification,
    RelayStatus,
    RelayStatusNotification,
    ShutdownNotification,
    StopNotification,
)
from .stream import NotificationStream

logger = logging.getLogger(__name__)


@dataclass
class RelayPoolOptions:
    """Configuration for RelayPool.

    Attributes:
        reconnect: Whether to reconnect after a connection drops
        initial_backoff: Seconds to wait before the first reconnection
        max_backoff: Upper bound for the doubling reconnection delay
        open_timeout: Seconds allowed for the websocket handshake
        seen_ids_capacity: How many event ids to remember for de-duplication
    """

    reconnect: bool = True
    initial_backoff: float = 1.0
    max_backoff: float = 60.0
    open_timeout: float = 10.0
    seen_ids_capacity: int = 10000


@dataclass
class Relay:
    """A relay registered with the pool."""

    url: str
    status: RelayStatus = RelayStatus.INITIALIZED
    connection_attempts: int = 0
    task: Optional["asyncio.Task[None]"] = field(default=None, repr=False)
    websocket: Any = field(default=None, repr=False)

    @property
    def is_connected(self) -> bool:
        return self.status == RelayStatus.CONNECTED


def validate_relay_url(url: str) -> str:
    """Check that ``url`` is a usable websocket URL.

    Returns:
        The URL with surrounding whitespace removed

    Raises:
        RelayError: If the scheme is not ws/wss or the host is missing
    """
    cleaned = url.strip()
    parsed = urlparse(cleaned)
    if parsed.scheme not in ("ws", "wss"):
        raise RelayError(f"invalid relay url {url!r}: scheme must be ws or wss")
    if not parsed.hostname:
        raise RelayError(f"invalid relay url {url!r}: missing host")
    try:
        parsed.port
    except ValueError as e:
        raise RelayError(f"invalid relay url {url!r}: {e}") from e
    return cleaned


class RelayPool:
    """A set of relays sharing one subscription and one notification bus."""

    def __init__(self, options: Optional[RelayPoolOptions] = None):
        self._options = options or RelayPoolOptions()
        self._relays: Dict[str, Relay] = {}
        self._streams: List[NotificationStream] = []
        self._filters: List[Filter] = []
        self._subscription_id = uuid.uuid4().hex[:16]
        self._seen_ids: "OrderedDict[str, None]" = OrderedDict()
        self._shutdown = False

    # --- Public API ---

    @property
    def relays(self) -> Dict[str, Relay]:
        return dict(self._relays)

    @property
    def subscription_id(self) -> str:
        return self._subscription_id

    @property
    def filters(self) -> List[Filter]:
        return list(self._filters)

    async def add_relay(self, url: str) -> Relay:
        """Register a relay. Does not connect.

        Args:
            url: Websocket URL of the relay

        Returns:
            The registered Relay (the existing one for a duplicate URL)

        Raises:
            RelayError: If the URL is invalid or the pool was shut down
        """
        if self._shutdown:
            raise RelayError("relay pool has been shut down")

        url = validate_relay_url(url)
        relay = self._relays.get(url)
        if relay is None:
            relay = Relay(url=url)
            self._relays[url] = relay
            logger.debug("Added relay %s", url)
        return relay

    async def subscribe(self, filters: Sequence[Filter]) -> str:
        """Set the pool's subscription.

        The REQ is sent to every connected relay now and to every relay
        that connects later.

        Returns:
            The subscription id
        """
        self._filters = list(filters)
        request = self.subscription_request()
        for relay in self._relays.values():
            if relay.is_connected and relay.websocket is not None:
                await self._send(relay, request)
        return self._subscription_id

    def subscription_request(self) -> str:
        """The REQ message for the current subscription, JSON-encoded."""
        message: List[Any] = ["REQ", self._subscription_id]
        message.extend(f.to_dict() for f in self._filters)
        return json.dumps(message)

    async def connect(self) -> None:
        """Start connecting to every relay without waiting for the result."""
        if self._shutdown:
            raise RelayError("relay pool has been shut down")

        for relay in self._relays.values():
            if relay.task is None or relay.task.done():
                relay.task = asyncio.create_task(
                    self._run_relay(relay), name=f"relay:{relay.url}"
                )

    def notifications(self, maxsize: int = 1024) -> NotificationStream:
        """Create a new reader of the pool's notifications."""
        stream = NotificationStream(maxsize=maxsize)
        if self._shutdown:
            stream.close()
        else:
            self._streams.append(stream)
        return stream

    async def stop(self) -> None:
        """Disconnect every relay and publish a StopNotification.

        The pool stays usable; connect() starts the relays again.
        """
        await self._disconnect_all(RelayStatus.STOPPED)
        self._publish(StopNotification())

    async def shutdown(self) -> None:
        """Disconnect every relay, publish a ShutdownNotification and
        close every notification stream."""
        if self._shutdown:
            return
        await self._disconnect_all(RelayStatus.TERMINATED)
        self._publish(ShutdownNotification())
        self._shutdown = True
        for stream in self._streams:
            stream.close()
        self._streams.clear()

    # --- Relay messages ---

    def handle_message(self, relay_url: str, raw: Any) -> Optional[EventNotification]:
        """Process one frame received from a relay.

        Publishes a MessageNotification for every well-formed message and
        an EventNotification the first time an event id is seen. Events
        whose kind is outside the subscription filters and malformed
        frames are logged and dropped.

        Returns:
            The EventNotification published, if any
        """
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8", errors="replace")

        try:
            message = json.loads(raw)
        except (TypeError, ValueError, RecursionError):
            logger.debug("Ignoring non-JSON frame from %s", relay_url)
            return None

        if not isinstance(message, list) or not message or not isinstance(message[0], str):
            logger.debug("Ignoring malformed message from %s: %r", relay_url, raw)
            return None

        self._publish(MessageNotification(relay_url=relay_url, message=tuple(message)))

        verb = message[0]
        if verb == "EVENT" and len(message) >= 3:
            try:
                event = Event.from_dict(message[2])
            except EventParseError as e:
                logger.debug("Invalid event from %s: %s", relay_url, e)
                return None

            if self._filters and not any(f.matches_kind(event.kind) for f in self._filters):
                logger.debug("Ignoring kind %d event from %s outside the subscription", event.kind, relay_url)
                return None

            if not self._remember(event.id):
                return None

            notification = EventNotification(relay_url=relay_url, event=event)
            self._publish(notification)
            return notification

        if verb == "NOTICE" and len(message) >= 2:
            logger.info("Notice from %s: %s", relay_url, message[1])
        elif verb == "CLOSED" and len(message) >= 2:
            logger.warning("Subscription closed by %s: %s", relay_url, message[-1])
        elif verb == "EOSE":
            logger.debug("End of stored events from %s", relay_url)

        return None

    # --- Internal Methods ---

    def _publish(self, notification: Notification) -> None:
        for stream in self._streams:
            stream.publish(notification)

    def _remember(self, event_id: str) -> bool:
        """Record an event id; False if it was already seen."""
        if event_id in self._seen_ids:
            self._seen_ids.move_to_end(event_id)
            return False
        self._seen_ids[event_id] = None
        while len(self._seen_ids) > self._options.seen_ids_capacity:
            self._seen_ids.popitem(last=False)
        return True

    def _set_status(self, relay: Relay, status: RelayStatus) -> None:
        if relay.status == status:
            return
        relay.status = status
        logger.info("Relay %s is %s", relay.url, status.value)
        self._publish(RelayStatusNotification(relay_url=relay.url, status=status))

    async def _send(self, relay: Relay, payload: str) -> None:
        try:
            await relay.websocket.send(payload)
        except (OSError, WebSocketException) as e:
            logger.warning("Failed to send to %s: %s", relay.url, e)

    async def _run_relay(self, relay: Relay) -> None:
        """Connection loop for one relay, reconnecting with backoff."""
        backoff = self._options.initial_backoff

        while True:
            relay.connection_attempts += 1
            self._set_status(relay, RelayStatus.CONNECTING)
            try:
                async with websockets.connect(
                    relay.url, open_timeout=self._options.open_timeout
                ) as websocket:
                    relay.websocket = websocket
                    self._set_status(relay, RelayStatus.CONNECTED)
                    backoff = self._options.initial_backoff

                    if self._filters:
                        await websocket.send(self.subscription_request())

                    async for raw in websocket:
                        try:
                            self.handle_message(relay.url, raw)
                        except Exception as e:
                            logger.exception("Dropped frame from %s: %s", relay.url, e)
            except asyncio.CancelledError:
                raise
            except (OSError, asyncio.TimeoutError, WebSocketException) as e:
                logger.warning("Connection to %s failed: %s", relay.url, e)
            finally:
                relay.websocket = None

            self._set_status(relay, RelayStatus.DISCONNECTED)
            if not self._options.reconnect:
                return

            logger.debug("Reconnecting to %s in %.1fs", relay.url, backoff)
            await asyncio.sleep(backoff)
            backoff = min(backoff * 2, self._options.max_backoff)

    async def _disconnect_all(self, final_status: RelayStatus) -> None:
        tasks = []
        for relay in self._relays.values():
            if relay.task is not None:
                relay.task.cancel()
                tasks.append(relay.task)
            relay.task = None

        for task in tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
            except Exception as e:
                logger.exception("Error in relay task: %s", e)

        for relay in self._relays.values():
            self._set_status(relay, final_status)

    # --- Context Manager ---

    async def __aenter__(self) -> "RelayPool":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> bool:
        await self.shutdown()
        return False

    def __repr__(self) -> str:
        connected = sum(1 for r in self._relays.values() if r.is_connected)
        return f"RelayPool({len(self._relays)} relays, {connected} connected)"
