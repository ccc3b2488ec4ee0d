"""Data models for events received from relays."""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

from .errors import EventParseError


# Well-known kinds, for labelling only
KIND_NAMES = {
    0: 'metadata',
    1: 'text_note',
    2: 'recommend_relay',
    3: 'contacts',
    4: 'encrypted_direct_message',
    5: 'event_deletion',
    6: 'repost',
    7: 'reaction',
    16: 'generic_repost',
    40: 'channel_creation',
    41: 'channel_metadata',
    42: 'channel_message',
    1984: 'reporting',
    9734: 'zap_request',
    9735: 'zap',
    10002: 'relay_list_metadata',
    30023: 'long_form_content',
}


def kind_name(kind: int) -> Optional[str]:
    """Return the conventional name of a kind, or None if unknown."""
    return KIND_NAMES.get(kind)


@dataclass(frozen=True)
class Event:
    """An event as delivered by a relay.

    Events are authored elsewhere and only observed here. Signatures
    are carried along but never verified.
    """
    id: str
    pubkey: str
    created_at: int
    kind: int
    content: str
    tags: Tuple[Tuple[str, ...], ...] = field(default_factory=tuple)
    sig: str = ""

    @property
    def kind_name(self) -> Optional[str]:
        return kind_name(self.kind)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Event":
        """Build an Event from the JSON object of an EVENT message.

        Args:
            data: Decoded event object

        Returns:
            Event instance

        Raises:
            EventParseError: If a required field is missing or mistyped
        """
        if not isinstance(data, dict):
            raise EventParseError(f"event must be an object, got {type(data).__name__}")

        try:
            event_id = data["id"]
            pubkey = data["pubkey"]
            created_at = data["created_at"]
            kind = data["kind"]
            content = data["content"]
        except KeyError as e:
            raise EventParseError(f"event is missing field {e.args[0]!r}") from e

        for name, value in (("id", event_id), ("pubkey", pubkey), ("content", content)):
            if not isinstance(value, str):
                raise EventParseError(f"event field {name!r} must be a string")

        # bool is an int subclass; reject it explicitly
        for name, value in (("kind", kind), ("created_at", created_at)):
            if isinstance(value, bool) or not isinstance(value, int) or value < 0:
                raise EventParseError(f"event field {name!r} must be a non-negative integer")

        raw_tags = data.get("tags", [])
        if not isinstance(raw_tags, list):
            raise EventParseError("event field 'tags' must be a list")
        tags = []
        for tag in raw_tags:
            if not isinstance(tag, list):
                raise EventParseError("each tag must be a list")
            tags.append(tuple(str(item) for item in tag))

        sig = data.get("sig", "")
        if not isinstance(sig, str):
            raise EventParseError("event field 'sig' must be a string")

        return cls(
            id=event_id,
            pubkey=pubkey,
            created_at=created_at,
            kind=kind,
            content=content,
            tags=tuple(tags),
            sig=sig,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert back to the relay JSON shape."""
        return {
            "id": self.id,
            "pubkey": self.pubkey,
            "created_at": self.created_at,
            "kind": self.kind,
            "tags": [list(tag) for tag in self.tags],
            "content": self.content,
            "sig": self.sig,
        }
