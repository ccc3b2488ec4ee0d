"""Shared pytest fixtures for nostail tests."""

import asyncio
import io
import itertools
from typing import Any, Dict, Iterable, List, Optional

import pytest

from nostail.display import Display
from nostail.models import Event
from nostail.relay.notifications import EventNotification


SAMPLE_RELAY_URL = "wss://relay.example.com"
SAMPLE_PUBKEY = "a" * 64
SAMPLE_SIG = "b" * 128

_event_ids = itertools.count(1)


def make_event(kind: int = 1, content: str = "hello", event_id: Optional[str] = None) -> Event:
    """Create an Event with a unique id."""
    return Event(
        id=event_id or f"{next(_event_ids):064x}",
        pubkey=SAMPLE_PUBKEY,
        created_at=1700000000,
        kind=kind,
        content=content,
        sig=SAMPLE_SIG,
    )


def make_event_notification(kind: int = 1, content: str = "hello") -> EventNotification:
    """Create an EventNotification from the sample relay."""
    return EventNotification(relay_url=SAMPLE_RELAY_URL, event=make_event(kind, content))


def make_event_dict(kind: int = 1, content: str = "hello", event_id: Optional[str] = None) -> Dict[str, Any]:
    """Relay JSON for an event."""
    return {
        "id": event_id or f"{next(_event_ids):064x}",
        "pubkey": SAMPLE_PUBKEY,
        "created_at": 1700000000,
        "kind": kind,
        "tags": [["p", SAMPLE_PUBKEY], ["t", "nostr"]],
        "content": content,
        "sig": SAMPLE_SIG,
    }


class FakeNotificationSource:
    """Notification source fed by the test.

    Items may be notifications or exceptions; exceptions are raised
    from recv() in order.
    """

    def __init__(self, items: Iterable[Any] = ()):
        self.queue: "asyncio.Queue[Any]" = asyncio.Queue()
        self.received = 0
        for item in items:
            self.queue.put_nowait(item)

    def feed(self, *items: Any) -> None:
        for item in items:
            self.queue.put_nowait(item)

    async def recv(self):
        item = await self.queue.get()
        self.received += 1
        if isinstance(item, BaseException):
            raise item
        return item


class FakeKeySource:
    """Key source fed by the test. Feeding None signals end of input."""

    def __init__(self, keys: Iterable[Optional[str]] = ()):
        self.queue: "asyncio.Queue[Optional[str]]" = asyncio.Queue()
        for key in keys:
            self.queue.put_nowait(key)

    def feed(self, *keys: Optional[str]) -> None:
        for key in keys:
            self.queue.put_nowait(key)

    async def read_key(self) -> str:
        key = await self.queue.get()
        if key is None:
            raise EOFError("control input closed")
        return key


async def settle(rounds: int = 50) -> None:
    """Let other tasks run until they block again."""
    for _ in range(rounds):
        await asyncio.sleep(0)


def output_lines(stream: io.StringIO, line_ending: str = "\n") -> List[str]:
    """Split captured output into lines without terminators."""
    text = stream.getvalue()
    if not text:
        return []
    return text[: -len(line_ending)].split(line_ending) if text.endswith(line_ending) else text.split(line_ending)


@pytest.fixture
def out() -> io.StringIO:
    return io.StringIO()


@pytest.fixture
def err() -> io.StringIO:
    return io.StringIO()


@pytest.fixture
def display(out, err) -> Display:
    """A plain-text Display writing to in-memory streams."""
    return Display(out=out, err=err)
