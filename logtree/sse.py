"""Incremental parser for the text/event-stream wire format."""

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class ServerEvent:
    data: str
    event: str = "message"
    id: Optional[str] = None
    retry: Optional[int] = None


class EventStreamParser:
    """Feed lines, get complete events back.

    ``data:`` lines accumulate and are joined with newlines, a blank line
    dispatches the pending event, lines starting with ``:`` are comments.
    ``last_event_id`` and ``retry`` persist across events as the format
    requires.
    """

    def __init__(self):
        self._data: list[str] = []
        self._event = ""
        self.last_event_id: Optional[str] = None
        self.retry: Optional[int] = None

    def feed_line(self, line) -> Optional[ServerEvent]:
        """Process one line (str or bytes, trailing newline optional)."""
        if isinstance(line, (bytes, bytearray)):
            line = line.decode("utf-8", errors="replace")
        line = line.rstrip("\r\n")

        if not line:
            return self._dispatch()
        if line.startswith(":"):
            return None

        name, sep, value = line.partition(":")
        if sep and value.startswith(" "):
            value = value[1:]

        if name == "data":
            self._data.append(value)
        elif name == "event":
            self._event = value
        elif name == "id":
            if "\0" not in value:
                self.last_event_id = value
        elif name == "retry":
            if value.isdigit():
                self.retry = int(value)
        return None

    def feed(self, chunk: str) -> list[ServerEvent]:
        """Process a block of text that may hold several lines."""
        events = []
        for line in chunk.splitlines():
            event = self.feed_line(line)
            if event is not None:
                events.append(event)
        return events

    def reset(self):
        """Forget a half-received event, e.g. after the connection dropped."""
        self._data = []
        self._event = ""

    def _dispatch(self) -> Optional[ServerEvent]:
        if not self._data:
            self._event = ""
            return None
        event = ServerEvent(
            data="\n".join(self._data),
            event=self._event or "message",
            id=self.last_event_id,
            retry=self.retry,
        )
        self._data = []
        self._event = ""
        return event
