"""Output formatters for events and session summaries.

Formatters are pure: they turn already-sanitized values into strings and
never write anything themselves. Writing is done by nostail.display.

Example usage:
    from nostail.formatters import PlainFormatter

    formatter = PlainFormatter()
    formatter.format_event(1, "hello")      # 'Kind 1 => hello'
    formatter.format_summary(((1, 3),))     # ['Kind 1 => seen: 3']
"""

import json
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from .models import kind_name
from .stats import StatsSnapshot


class OutputFormatter(ABC):
    """Base class for event formatters."""

    @abstractmethod
    def format_event(self, kind: int, content: Optional[str] = None) -> str:
        """Format one event.

        Args:
            kind: Event kind
            content: Sanitized content, or None when content display is off

        Returns:
            A single line (content may still contain line breaks)
        """
        pass

    @abstractmethod
    def format_summary_line(self, kind: int, seen: int) -> str:
        """Format the summary line for one kind."""
        pass

    def format_summary(self, snapshot: StatsSnapshot) -> List[str]:
        """Format a stats snapshot, one line per kind, in snapshot order."""
        return [self.format_summary_line(kind, seen) for kind, seen in snapshot]


class PlainFormatter(OutputFormatter):
    """Human-readable output.

    Example output:
        Kind 1 => gm nostr
        Kind 7
        Kind 1 => seen: 42
    """

    def format_event(self, kind: int, content: Optional[str] = None) -> str:
        if content is None:
            return f"Kind {kind}"
        return f"Kind {kind} => {content}"

    def format_summary_line(self, kind: int, seen: int) -> str:
        return f"Kind {kind} => seen: {seen}"


class JsonFormatter(OutputFormatter):
    """JSON output formatter (one object per line, JSONL format).

    Line breaks inside content are escaped by JSON encoding, so each
    record is always exactly one line.

    Example output:
        {"kind": 1, "kind_name": "text_note", "content": "gm"}
        {"kind": 1, "kind_name": "text_note", "seen": 42}
    """

    def format_event(self, kind: int, content: Optional[str] = None) -> str:
        data = self._base(kind)
        if content is not None:
            data["content"] = content
        return json.dumps(data, ensure_ascii=False)

    def format_summary_line(self, kind: int, seen: int) -> str:
        data = self._base(kind)
        data["seen"] = seen
        return json.dumps(data, ensure_ascii=False)

    def _base(self, kind: int) -> Dict[str, Any]:
        data: Dict[str, Any] = {"kind": kind}
        name = kind_name(kind)
        if name:
            data["kind_name"] = name
        return data


def get_formatter(name: str) -> OutputFormatter:
    """Get a formatter by name.

    Args:
        name: Formatter name ("plain" or "json")

    Returns:
        OutputFormatter instance

    Raises:
        ValueError: If formatter name is unknown
    """
    formatters = {
        "plain": PlainFormatter,
        "json": JsonFormatter,
    }

    if name not in formatters:
        raise ValueError(f"Unknown formatter: {name}. Choose from: {list(formatters.keys())}")

    return formatters[name]()
