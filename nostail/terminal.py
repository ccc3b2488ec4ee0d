"""Raw terminal mode and keyboard control input.

RawTerminal puts the controlling terminal in raw mode for the duration
of a ``with`` block and restores the saved mode on every way out of it.
KeyReader turns keystrokes on stdin into an awaitable stream of keys,
reporting each escape sequence (function and cursor keys) as one key,
and decode_key() maps keys to ControlAction values.

Example usage:
    with RawTerminal():
        with KeyReader() as keys:
            key = await keys.read_key()
            action = decode_key(key)
"""

import asyncio
import codecs
import logging
import os
import sys
from enum import Enum
from typing import Any, List, Optional, TextIO, Tuple

from .errors import TerminalError

# termios only exists on POSIX systems
try:
    import termios
    import tty

    TERMIOS_AVAILABLE = True
except ImportError:
    TERMIOS_AVAILABLE = False

logger = logging.getLogger(__name__)


class ControlAction(Enum):
    """What an operator keystroke asks the session to do."""
    TOGGLE_PAUSE = "toggle_pause"
    QUIT = "quit"


CTRL_C = "\x03"

KEY_BINDINGS = {
    "p": ControlAction.TOGGLE_PAUSE,
    "q": ControlAction.QUIT,
    CTRL_C: ControlAction.QUIT,
}


def decode_key(key: str) -> Optional[ControlAction]:
    """Map a key to its action; None for keys without a binding."""
    return KEY_BINDINGS.get(key)


ESCAPE = "\x1b"


def split_keys(text: str) -> Tuple[List[str], str]:
    """Split decoded terminal input into keys.

    An escape sequence (CSI ``ESC [ ... final``, SS3 ``ESC O x`` or an
    Alt-modified ``ESC x``) is returned as one key, so the characters of a
    function or cursor key never reach the key bindings on their own.

    Returns:
        The complete keys, and the unfinished escape sequence that ended
        the input ("" if none)
    """
    keys: List[str] = []
    i = 0
    while i < len(text):
        if text[i] != ESCAPE:
            keys.append(text[i])
            i += 1
            continue

        end = _escape_end(text, i)
        if end is None:
            return keys, text[i:]
        keys.append(text[i:end])
        i = end
    return keys, ""


def _escape_end(text: str, start: int) -> Optional[int]:
    """Index just past the escape sequence at ``start``; None if incomplete."""
    if start + 1 >= len(text):
        # a lone ESC at the end of a read is the Escape key itself
        return start + 1

    introducer = text[start + 1]
    if introducer == "O":
        return start + 3 if start + 2 < len(text) else None
    if introducer != "[":
        return start + 2

    # CSI: parameter and intermediate bytes, then one final byte @..~
    for i in range(start + 2, len(text)):
        if "\x40" <= text[i] <= "\x7e":
            return i + 1
        if not "\x20" <= text[i] <= "\x3f":
            # malformed; end the sequence before the offending character
            return i
    return None


def _fileno(stream: Any) -> int:
    try:
        return stream.fileno()
    except (AttributeError, OSError, ValueError) as e:
        raise TerminalError(f"input stream has no file descriptor: {e}") from e


class RawTerminal:
    """Scoped raw mode for a terminal.

    The saved mode is restored exactly once, whether the block exits
    normally, with an exception, or through KeyboardInterrupt or task
    cancellation. A failure to restore is logged, not raised.
    """

    def __init__(self, stream: Optional[TextIO] = None):
        """Initialize the guard.

        Args:
            stream: Terminal input stream (default sys.stdin)
        """
        self._stream = stream
        self._fd: Optional[int] = None
        self._saved: Optional[list] = None
        self._active = False

    @property
    def active(self) -> bool:
        """Whether raw mode is currently held."""
        return self._active

    def acquire(self) -> "RawTerminal":
        """Enter raw mode, remembering the current mode.

        Raises:
            TerminalError: If the stream is not a terminal or the mode
                cannot be changed
        """
        if self._active:
            return self

        if not TERMIOS_AVAILABLE:
            raise TerminalError("raw terminal mode is not supported on this platform")

        stream = self._stream if self._stream is not None else sys.stdin
        fd = _fileno(stream)
        if not stream.isatty():
            raise TerminalError("input is not a terminal (use --no-interactive)")

        try:
            saved = termios.tcgetattr(fd)
            tty.setraw(fd)
        except termios.error as e:
            raise TerminalError(f"cannot enable raw mode: {e}") from e

        self._fd = fd
        self._saved = saved
        self._active = True
        logger.debug("Raw mode enabled on fd %d", fd)
        return self

    def restore(self) -> bool:
        """Restore the saved mode.

        Returns:
            True if this call released raw mode, False if it was not held
        """
        if not self._active:
            return False
        self._active = False

        try:
            termios.tcsetattr(self._fd, termios.TCSADRAIN, self._saved)
        except termios.error as e:
            logger.warning("Failed to restore terminal mode: %s", e)
        else:
            logger.debug("Raw mode disabled on fd %d", self._fd)
        return True

    def __enter__(self) -> "RawTerminal":
        return self.acquire()

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> bool:
        self.restore()
        return False


class KeyReader:
    """Asynchronous reader of single keystrokes from a terminal.

    Uses the event loop's reader callbacks, so no thread is involved.
    Must be started from inside a running event loop.
    """

    def __init__(self, stream: Optional[TextIO] = None):
        self._stream = stream
        self._fd: Optional[int] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._queue: Optional["asyncio.Queue[Optional[str]]"] = None
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._pending = ""
        self._eof = False

    @property
    def is_running(self) -> bool:
        return self._fd is not None

    def start(self) -> None:
        """Begin watching the input stream."""
        if self._fd is not None:
            return

        stream = self._stream if self._stream is not None else sys.stdin
        fd = _fileno(stream)
        self._loop = asyncio.get_running_loop()
        self._queue = asyncio.Queue()
        self._loop.add_reader(fd, self._on_readable)
        self._fd = fd

    def stop(self) -> None:
        """Stop watching the input stream."""
        if self._fd is None or self._loop is None:
            return
        self._loop.remove_reader(self._fd)
        self._fd = None

    async def read_key(self) -> str:
        """Wait for the next key.

        Raises:
            EOFError: If the input stream reached end of file
            RuntimeError: If the reader was never started
        """
        if self._queue is None:
            raise RuntimeError("KeyReader not started. Call start() first.")
        if self._eof and self._queue.empty():
            raise EOFError("control input closed")

        key = await self._queue.get()
        if key is None:
            raise EOFError("control input closed")
        return key

    def _on_readable(self) -> None:
        try:
            data = os.read(self._fd, 1024)
        except OSError as e:
            logger.warning("Error reading control input: %s", e)
            data = b""

        if not data:
            self._eof = True
            self.stop()
            if self._pending:
                self._queue.put_nowait(self._pending)
                self._pending = ""
            self._queue.put_nowait(None)
            return

        keys, self._pending = split_keys(self._pending + self._decoder.decode(data))
        for key in keys:
            self._queue.put_nowait(key)

    def __enter__(self) -> "KeyReader":
        self.start()
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> bool:
        self.stop()
        return False
