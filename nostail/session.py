"""Session controller: the live-tail loop.

The controller merges two input sources, the relay notification stream
and (optionally) operator keystrokes, and reacts to whichever is ready
first. It owns the per-kind statistics and the pause state; nothing else
mutates them.

States:
    RUNNING_ACTIVE  events are counted and displayed
    RUNNING_PAUSED  events are read and discarded
    TERMINATED      nothing is processed; the summary is rendered once

Example usage:
    stream = pool.notifications()
    controller = SessionController(stream, Display(), show_stats=True)

    loop.add_signal_handler(signal.SIGINT, controller.request_stop)
    snapshot = await controller.run()
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Protocol, Set

from .display import Display
from .errors import NotificationStreamError, StreamClosed
from .models import Event
from .relay.notifications import (
    EventNotification,
    MessageNotification,
    Notification,
    RelayStatusNotification,
    ShutdownNotification,
    StopNotification,
)
from .stats import StatsSnapshot, StatsTable
from .terminal import ControlAction, decode_key

logger = logging.getLogger(__name__)


class NotificationSource(Protocol):
    """Anything with an awaitable recv(), like NotificationStream."""

    async def recv(self) -> Notification:
        ...


class KeySource(Protocol):
    """Anything with an awaitable read_key(), like KeyReader.

    read_key() raises EOFError once no more keys will arrive.
    """

    async def read_key(self) -> str:
        ...


class SessionPhase(Enum):
    """Observable state of a session."""
    RUNNING_ACTIVE = "running_active"
    RUNNING_PAUSED = "running_paused"
    TERMINATED = "terminated"


@dataclass
class SessionState:
    """Pause and termination flags.

    ``terminated`` only ever goes from False to True.
    """

    paused: bool = False
    terminated: bool = False
    termination_reason: Optional[str] = None

    @property
    def phase(self) -> SessionPhase:
        if self.terminated:
            return SessionPhase.TERMINATED
        if self.paused:
            return SessionPhase.RUNNING_PAUSED
        return SessionPhase.RUNNING_ACTIVE

    def toggle_pause(self) -> bool:
        """Flip the pause flag and return the new value."""
        self.paused = not self.paused
        return self.paused

    def terminate(self, reason: str) -> bool:
        """Mark the session terminated.

        Returns:
            True if this call terminated the session, False if it
            already was
        """
        if self.terminated:
            return False
        self.terminated = True
        self.termination_reason = reason
        return True


class SessionController:
    """Drives one monitoring session from first event to summary.

    Every handle_* method is synchronous and runs to completion before
    the next input is looked at, so the statistics never see concurrent
    updates. All of them are no-ops once the session is terminated.

    Attributes:
        state: Current SessionState
        discarded: Events read while paused
    """

    PAUSED_NOTICE = "PAUSED"
    UNPAUSED_NOTICE = "UNPAUSED"

    def __init__(
        self,
        notifications: NotificationSource,
        display: Display,
        keys: Optional[KeySource] = None,
        show_content: bool = False,
        show_stats: bool = False,
    ):
        """Initialize the controller.

        Args:
            notifications: Source of relay notifications
            display: Where events, notices and the summary are written
            keys: Source of operator keystrokes, None when not interactive
            show_content: Display sanitized content next to the kind
            show_stats: Render the per-kind summary when the session ends
        """
        self._notifications = notifications
        self._display = display
        self._keys = keys
        self._show_content = show_content
        self._show_stats = show_stats

        self._stats = StatsTable()
        self._stop_event = asyncio.Event()
        self.state = SessionState()
        self.discarded = 0

    @property
    def phase(self) -> SessionPhase:
        return self.state.phase

    def snapshot(self) -> StatsSnapshot:
        """Per-kind counts so far, in ascending kind order."""
        return self._stats.snapshot()

    def seen_count(self, kind: int) -> int:
        return self._stats.seen_count(kind)

    # --- Input handlers ---

    def handle_notification(self, notification: Notification) -> None:
        """React to one notification from the relay pool."""
        if self.state.terminated:
            return

        if isinstance(notification, EventNotification):
            self._handle_event(notification.event)
        elif isinstance(notification, RelayStatusNotification):
            logger.info(
                "Relay %s status: %s",
                notification.relay_url,
                notification.status.value,
            )
        elif isinstance(notification, StopNotification):
            logger.info("Relay pool stopped")
            self._display.notice("stop!")
            self.request_stop("stop")
        elif isinstance(notification, ShutdownNotification):
            logger.info("Relay pool shut down")
            self._display.warn("shutdown!")
            self.request_stop("shutdown")
        elif isinstance(notification, MessageNotification):
            pass
        else:
            logger.debug("Ignoring notification %r", notification)

    def handle_stream_error(self, error: NotificationStreamError) -> None:
        """Report a failed read; only a closed stream ends the session."""
        if self.state.terminated:
            return

        if isinstance(error, StreamClosed):
            logger.info("Notification stream closed")
            self.request_stop("stream closed")
            return

        logger.debug("Notification stream error: %s", error)
        self._display.warn(f"error! {error}")

    def handle_control(self, action: Optional[ControlAction]) -> None:
        """Apply an operator action. None (an unbound key) does nothing."""
        if self.state.terminated or action is None:
            return

        if action is ControlAction.TOGGLE_PAUSE:
            paused = self.state.toggle_pause()
            self._display.notice(self.PAUSED_NOTICE if paused else self.UNPAUSED_NOTICE)
        elif action is ControlAction.QUIT:
            self.request_stop("quit")

    def handle_key(self, key: str) -> None:
        self.handle_control(decode_key(key))

    def request_stop(self, reason: str = "interrupt") -> None:
        """End the session. Safe to call from a signal handler."""
        if self.state.terminate(reason):
            logger.info("Session terminated: %s", reason)
            self._stop_event.set()

    def _handle_event(self, event: Event) -> None:
        if self.state.paused:
            self.discarded += 1
            return

        self._stats.record(event.kind)
        content = event.content if self._show_content else None
        self._display.render_event(event.kind, content)

    # --- Loop ---

    async def run(self) -> StatsSnapshot:
        """Process input until the session terminates.

        Waits on the pending notification read, the pending key read and
        the stop request at once. A read that is not yet complete is kept
        for the next round, so neither source loses input or starves the
        other. When the loop ends, outstanding reads are abandoned.

        Returns:
            The final statistics snapshot (also rendered if show_stats)
        """
        stop_waiter = asyncio.ensure_future(self._stop_event.wait())
        notification_task: Optional[asyncio.Future] = None
        key_task: Optional[asyncio.Future] = None
        keys_open = self._keys is not None

        try:
            while not self.state.terminated:
                if notification_task is None:
                    notification_task = asyncio.ensure_future(self._notifications.recv())
                if keys_open and key_task is None:
                    key_task = asyncio.ensure_future(self._keys.read_key())

                waiting: Set[asyncio.Future] = {stop_waiter, notification_task}
                if key_task is not None:
                    waiting.add(key_task)

                done, _ = await asyncio.wait(waiting, return_when=asyncio.FIRST_COMPLETED)

                if notification_task in done:
                    task, notification_task = notification_task, None
                    self._dispatch_notification(task)

                if key_task is not None and key_task in done and not self.state.terminated:
                    task, key_task = key_task, None
                    try:
                        key = task.result()
                    except EOFError:
                        logger.debug("Control input closed, keyboard control disabled")
                        keys_open = False
                    else:
                        self.handle_key(key)
        finally:
            pending = [
                task for task in (notification_task, key_task, stop_waiter)
                if task is not None and not task.done()
            ]
            for task in pending:
                task.cancel()
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)

        snapshot = self._stats.snapshot()
        logger.debug(
            "Session ended (%s): %d kinds, %d events, %d discarded while paused",
            self.state.termination_reason,
            len(self._stats),
            self._stats.total,
            self.discarded,
        )
        if self._show_stats:
            self._display.render_summary(snapshot)
        return snapshot

    def _dispatch_notification(self, task: asyncio.Future) -> None:
        try:
            notification = task.result()
        except NotificationStreamError as e:
            self.handle_stream_error(e)
        else:
            self.handle_notification(notification)
