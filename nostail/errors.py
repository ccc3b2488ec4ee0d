"""Exception hierarchy for nostail.

All nostail-specific errors inherit from NostailError for easy catching.
"""


class NostailError(Exception):
    """Base error for all nostail operations."""


class RelayError(NostailError):
    """A relay could not be registered or reached."""


class EventParseError(NostailError):
    """A relay delivered an event that does not have the expected shape."""


class TerminalError(NostailError):
    """Raw terminal mode could not be acquired."""


class NotificationStreamError(NostailError):
    """Reading from a notification stream failed.

    Transport-level and non-fatal: the reader reports it and keeps going.
    """


class StreamLagged(NotificationStreamError):
    """The reader fell behind and notifications were dropped."""

    def __init__(self, skipped: int):
        self.skipped = skipped
        super().__init__(f"stream lagged, skipped {skipped} notification(s)")


class StreamClosed(NotificationStreamError):
    """The stream was closed and drained; no further notifications will arrive."""

    def __init__(self) -> None:
        super().__init__("stream closed")
