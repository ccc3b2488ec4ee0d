"""Subscription filters sent to relays.

A filter is a server-side predicate: relays only forward events that
match at least one filter of a subscription.

Example usage:
    from nostail.filters import build_filters

    filters = build_filters([1, 7])
    pool.subscribe(filters)
"""

from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, Iterable, List, Optional


@dataclass(frozen=True)
class Filter:
    """A subscription filter.

    Attributes:
        kinds: Kinds to match. Empty means every kind.
        limit: Number of stored events the relay should send before
            switching to live events. 0 asks for live events only.
    """

    kinds: FrozenSet[int] = field(default_factory=frozenset)
    limit: Optional[int] = 0

    def matches_kind(self, kind: int) -> bool:
        """Whether an event of this kind passes the filter."""
        return not self.kinds or kind in self.kinds

    def to_dict(self) -> Dict[str, Any]:
        """Serialize for a REQ message."""
        result: Dict[str, Any] = {}
        if self.kinds:
            result["kinds"] = sorted(self.kinds)
        if self.limit is not None:
            result["limit"] = self.limit
        return result


def build_filters(kinds: Optional[Iterable[int]] = None) -> List[Filter]:
    """Build the filter set for a subscription from CLI kind selectors.

    Args:
        kinds: Kind selectors; None or empty means all kinds

    Returns:
        A single-element filter list

    Raises:
        ValueError: If a kind is negative
    """
    selected = frozenset(kinds or ())
    for kind in selected:
        if kind < 0:
            raise ValueError(f"Kind must be non-negative, got {kind}")
    return [Filter(kinds=selected)]
