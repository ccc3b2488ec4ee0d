#!/usr/bin/env python3
"""Command-line interface for nostail.

Tails events from one or more relays, printing the kind of every event
(and optionally its sanitized content), with a per-kind summary at exit.

While running interactively:
    p        pause / unpause (events are read but not counted)
    q        quit
    Ctrl+C   quit

Usage:
    nostail -r URL [-r URL ...] [options]

Examples:
    # Every event from one relay
    nostail -r wss://relay.example.com

    # Text notes and reactions with content, summary at exit
    nostail -r wss://relay.example.com -k 1 -k 7 --content --stats

    # JSON lines for piping (no keyboard control)
    nostail -r wss://relay.example.com --no-interactive --format json | jq .
"""

import argparse
import asyncio
import contextlib
import logging
import signal
import sys
from dataclasses import dataclass, field
from typing import Iterator, List, Optional

from .display import Display
from .errors import NostailError
from .filters import build_filters
from .formatters import get_formatter
from .relay import RelayPool, RelayPoolOptions
from .session import SessionController
from .terminal import KeyReader, RawTerminal

logger = logging.getLogger(__name__)

RAW_LINE_ENDING = "\r\n"


def _kind(value: str) -> int:
    try:
        kind = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid kind: {value!r}")
    if kind < 0:
        raise argparse.ArgumentTypeError(f"kind must be non-negative: {value!r}")
    return kind


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="nostail",
        description="Tail events from Nostr relays",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  nostail -r wss://relay.example.com                  All events
  nostail -r wss://relay.example.com -k 1 -c          Text notes with content
  nostail -r wss://relay.example.com -s               Per-kind summary at exit
  nostail -r wss://relay.example.com --no-interactive -f json

Keys (interactive mode): p pause/unpause, q or Ctrl+C quit
        """,
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Increase verbosity (-v for info, -vv for debug)",
    )

    # Subscription options
    sub_group = parser.add_argument_group("subscription")
    sub_group.add_argument(
        "-r",
        "--relay",
        dest="relays",
        action="append",
        metavar="URL",
        help="Relay websocket URL (can specify multiple, at least one required)",
    )
    sub_group.add_argument(
        "-k",
        "--kind",
        dest="kinds",
        action="append",
        type=_kind,
        metavar="KIND",
        help="Only subscribe to this event kind (can specify multiple; default: all kinds)",
    )

    # Output options
    output_group = parser.add_argument_group("output")
    output_group.add_argument(
        "-s",
        "--stats",
        action="store_true",
        help="Print per-kind statistics at exit",
    )
    output_group.add_argument(
        "-c",
        "--content",
        action="store_true",
        help="Show sanitized event content next to the kind",
    )
    output_group.add_argument(
        "-t",
        "--show-tags",
        action="store_true",
        help="Reserved: accepted but currently has no effect",
    )
    output_group.add_argument(
        "--format",
        "-f",
        choices=["plain", "json"],
        default="plain",
        help="Output format (default: plain)",
    )

    # Control options
    control_group = parser.add_argument_group("control")
    control_group.add_argument(
        "--no-interactive",
        action="store_true",
        help="Do not switch the terminal to raw mode or read keys",
    )

    return parser


@dataclass
class MonitorConfig:
    """Settings for one monitoring run.

    Attributes:
        relays: Relay URLs to subscribe to
        kinds: Kinds to subscribe to; empty means all kinds
        show_stats: Print the per-kind summary at exit
        show_content: Show sanitized content next to the kind
        show_tags: Reserved; has no effect on output
        interactive: Use raw mode and keyboard control
        output_format: Formatter name ("plain" or "json")
        queue_size: Notifications buffered before older ones are dropped
    """

    relays: List[str] = field(default_factory=list)
    kinds: List[int] = field(default_factory=list)
    show_stats: bool = False
    show_content: bool = False
    show_tags: bool = False
    interactive: bool = True
    output_format: str = "plain"
    queue_size: int = 1024

    @classmethod
    def from_args(cls, args: argparse.Namespace) -> "MonitorConfig":
        """Build a configuration from parsed CLI arguments."""
        return cls(
            relays=list(args.relays or []),
            kinds=list(args.kinds or []),
            show_stats=args.stats,
            show_content=args.content,
            show_tags=args.show_tags,
            interactive=not args.no_interactive,
            output_format=args.format,
        )


@contextlib.contextmanager
def _log_line_ending(line_ending: str) -> Iterator[None]:
    """Temporarily change the terminator of the root logging handlers."""
    handlers = [h for h in logging.getLogger().handlers if isinstance(h, logging.StreamHandler)]
    saved = [h.terminator for h in handlers]
    for handler in handlers:
        handler.terminator = line_ending
    try:
        yield
    finally:
        for handler, terminator in zip(handlers, saved):
            handler.terminator = terminator


@contextlib.contextmanager
def _stop_on_signals(controller: SessionController) -> Iterator[None]:
    """Route SIGINT and SIGTERM to controller.request_stop()."""
    loop = asyncio.get_running_loop()
    installed = []
    for signum in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(signum, controller.request_stop, signal.Signals(signum).name)
        except (NotImplementedError, RuntimeError):
            # No signal support in this loop (e.g. Windows, non-main thread)
            continue
        installed.append(signum)
    try:
        yield
    finally:
        for signum in installed:
            loop.remove_signal_handler(signum)


async def run_monitor(
    config: MonitorConfig,
    display: Optional[Display] = None,
    pool: Optional[RelayPool] = None,
) -> int:
    """Run one monitoring session.

    Args:
        config: Settings for this run
        display: Output sink (stdout/stderr by default)
        pool: Relay pool to use (a new one by default)

    Returns:
        Exit code (0 for orderly termination)

    Raises:
        RelayError: If a relay cannot be registered
        TerminalError: If raw mode cannot be acquired in interactive mode
    """
    display = display or Display(get_formatter(config.output_format))
    pool = pool or RelayPool(RelayPoolOptions())

    try:
        for url in config.relays:
            await pool.add_relay(url)

        await pool.subscribe(build_filters(config.kinds))
        stream = pool.notifications(maxsize=config.queue_size)
        await pool.connect()

        with contextlib.ExitStack() as stack:
            keys = None
            if config.interactive:
                stack.enter_context(RawTerminal())
                stack.callback(setattr, display, "line_ending", display.line_ending)
                display.line_ending = RAW_LINE_ENDING
                stack.enter_context(_log_line_ending(RAW_LINE_ENDING))
                keys = stack.enter_context(KeyReader())

            controller = SessionController(
                stream,
                display,
                keys=keys,
                show_content=config.show_content,
                show_stats=config.show_stats,
            )
            stack.enter_context(_stop_on_signals(controller))

            logger.info(
                "Watching %d relay(s), kinds: %s",
                len(config.relays),
                ", ".join(str(k) for k in sorted(set(config.kinds))) or "all",
            )
            await controller.run()
    finally:
        await pool.shutdown()

    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for CLI.

    Args:
        argv: Command-line arguments (defaults to sys.argv[1:])

    Returns:
        Exit code
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    # Configure logging based on verbosity
    if args.verbose >= 2:
        log_level = logging.DEBUG
    elif args.verbose >= 1:
        log_level = logging.INFO
    else:
        log_level = logging.WARNING

    logging.basicConfig(
        level=log_level,
        format="%(levelname)s: %(message)s",
    )

    if not args.relays:
        parser.error("at least one relay is required (-r URL)")

    config = MonitorConfig.from_args(args)
    if config.show_tags:
        logger.warning("--show-tags is reserved and currently has no effect")

    try:
        return asyncio.run(run_monitor(config))
    except NostailError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        return 0


if __name__ == "__main__":
    sys.exit(main())
