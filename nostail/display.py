"""Display sink: writes formatted events, notices and summaries.

All remote text passes through sanitize_content() here before it is
formatted, and line breaks are rewritten for the active terminal mode.
"""

import sys
from typing import Optional, TextIO

from .formatters import OutputFormatter, PlainFormatter
from .sanitize import normalize_newlines, sanitize_content
from .stats import StatsSnapshot


class Display:
    """Writes monitor output to a pair of text streams.

    Attributes:
        line_ending: Terminator for every line written. Set to "\\r\\n"
            while the terminal is in raw mode.
    """

    def __init__(
        self,
        formatter: Optional[OutputFormatter] = None,
        out: Optional[TextIO] = None,
        err: Optional[TextIO] = None,
        line_ending: str = "\n",
    ):
        """Initialize the display.

        Args:
            formatter: Formatter for events and summaries (plain by default)
            out: Stream for events, notices and summaries (default stdout)
            err: Stream for warnings and errors (default stderr)
            line_ending: Line terminator
        """
        self.formatter = formatter or PlainFormatter()
        self._out = out
        self._err = err
        self.line_ending = line_ending

    @property
    def out(self) -> TextIO:
        # Resolved lazily so pytest's capsys replacement is honoured
        return self._out if self._out is not None else sys.stdout

    @property
    def err(self) -> TextIO:
        return self._err if self._err is not None else sys.stderr

    def render_event(self, kind: int, content: Optional[str] = None) -> str:
        """Write one event line.

        Args:
            kind: Event kind
            content: Raw (untrusted) content, or None to show the kind only

        Returns:
            The text written, without the final line ending
        """
        if content is not None:
            content = sanitize_content(content)
        line = self.formatter.format_event(kind, content)
        self._write(self.out, line)
        return line

    def render_summary(self, snapshot: StatsSnapshot) -> int:
        """Write one summary line per kind, in snapshot order.

        Returns:
            Number of lines written
        """
        lines = self.formatter.format_summary(snapshot)
        for line in lines:
            self._write(self.out, line)
        return len(lines)

    def notice(self, text: str) -> None:
        """Write an operator notice (PAUSED, relay status, ...)."""
        self._write(self.out, text)

    def warn(self, text: str) -> None:
        """Write an error or warning to the error stream."""
        self._write(self.err, text)

    def _write(self, stream: TextIO, text: str) -> None:
        stream.write(normalize_newlines(text, self.line_ending) + self.line_ending)
        stream.flush()
