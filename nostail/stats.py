"""Per-kind occurrence statistics.

The table is owned by a single writer (the session controller) and read
once when the session ends, so it carries no lock.

Example usage:
    from nostail.stats import StatsTable

    stats = StatsTable()
    stats.record(1)
    stats.record(7)
    stats.record(1)

    for kind, seen in stats.snapshot():
        print(f"Kind {kind} => seen: {seen}")
"""

from dataclasses import dataclass
from typing import Dict, Tuple


@dataclass
class KindStats:
    """Counters for one kind.

    Created on the first event of its kind, so ``seen`` is at least 1
    for every entry of a StatsTable.
    """

    seen: int = 0

    def record_seen(self) -> int:
        """Count one more event and return the new total."""
        self.seen += 1
        return self.seen

    def __str__(self) -> str:
        return f"seen: {self.seen}"


# (kind, seen) pairs in ascending kind order
StatsSnapshot = Tuple[Tuple[int, int], ...]


class StatsTable:
    """Mapping from kind to KindStats, reported in ascending kind order."""

    def __init__(self) -> None:
        self._kinds: Dict[int, KindStats] = {}

    def record(self, kind: int) -> int:
        """Count one event of ``kind``, creating its entry if needed.

        Args:
            kind: Event kind

        Returns:
            The kind's count after this event
        """
        stats = self._kinds.get(kind)
        if stats is None:
            stats = self._kinds[kind] = KindStats()
        return stats.record_seen()

    def seen_count(self, kind: int) -> int:
        """Number of events recorded for ``kind`` (0 if never seen)."""
        stats = self._kinds.get(kind)
        return stats.seen if stats is not None else 0

    def snapshot(self) -> StatsSnapshot:
        """Return an immutable view of the table sorted by kind.

        Later calls to record() do not affect a snapshot already taken.
        """
        return tuple((kind, self._kinds[kind].seen) for kind in sorted(self._kinds))

    @property
    def total(self) -> int:
        """Total events recorded across all kinds."""
        return sum(stats.seen for stats in self._kinds.values())

    def __len__(self) -> int:
        return len(self._kinds)

    def __contains__(self, kind: object) -> bool:
        return kind in self._kinds

    def __repr__(self) -> str:
        return f"StatsTable({len(self._kinds)} kinds, {self.total} events)"
