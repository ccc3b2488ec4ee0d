"""
nostail - Live-tail events from Nostr relays.

Usage:
    import asyncio
    from nostail import Display, RelayPool, SessionController, build_filters

    async def main():
        async with RelayPool() as pool:
            await pool.add_relay("wss://relay.example.com")
            await pool.subscribe(build_filters([1]))
            stream = pool.notifications()
            await pool.connect()

            controller = SessionController(stream, Display(), show_stats=True)
            await controller.run()

    asyncio.run(main())

Or from the shell:
    nostail -r wss://relay.example.com -k 1 --content --stats
"""

from .display import Display
from .errors import (
    EventParseError,
    NostailError,
    NotificationStreamError,
    RelayError,
    StreamClosed,
    StreamLagged,
    TerminalError,
)
from .filters import Filter, build_filters
from .formatters import JsonFormatter, OutputFormatter, PlainFormatter, get_formatter
from .models import Event, kind_name
from .relay import NotificationStream, RelayPool, RelayPoolOptions
from .sanitize import normalize_newlines, sanitize_content
from .session import SessionController, SessionPhase, SessionState
from .stats import KindStats, StatsTable
from .terminal import ControlAction, KeyReader, RawTerminal, decode_key


__version__ = "0.1.0"

__all__ = [
    # Models
    "Event",
    "kind_name",
    "Filter",
    "build_filters",
    # Errors
    "NostailError",
    "RelayError",
    "EventParseError",
    "TerminalError",
    "NotificationStreamError",
    "StreamLagged",
    "StreamClosed",
    # Core
    "SessionController",
    "SessionPhase",
    "SessionState",
    "KindStats",
    "StatsTable",
    "sanitize_content",
    "normalize_newlines",
    # Output
    "Display",
    "OutputFormatter",
    "PlainFormatter",
    "JsonFormatter",
    "get_formatter",
    # Terminal
    "RawTerminal",
    "KeyReader",
    "ControlAction",
    "decode_key",
    # Relays
    "RelayPool",
    "RelayPoolOptions",
    "NotificationStream",
]
