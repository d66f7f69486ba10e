from __future__ import annotations
from dataclasses import dataclass
from typing import List, Optional

BOM = "\ufeff"


@dataclass(frozen=True)
class UpstreamEvent:
    # "event" for dispatched records, "reconnect-interval" for retry hints
    type: str
    data: str = ""
    event: Optional[str] = None
    id: Optional[str] = None
    retry: Optional[int] = None


class EventStreamDecoder:
    """Incremental parser for text/event-stream bodies.

    Feed it text in whatever pieces the transport delivers; it keeps any
    unfinished line between calls and returns the records completed by each
    piece. Splitting the same input at different points yields the same
    records in the same order.

    Comment lines (``:keep-alive``) never produce a record. A trailing ``\\r``
    is held back until the next piece shows whether it is part of ``\\r\\n``.
    """

    def __init__(self) -> None:
        self.reset()

    def reset(self) -> None:
        self._buffer = ""
        self._started = False
        self._data: List[str] = []
        self._event_name: Optional[str] = None
        self._last_event_id: Optional[str] = None

    @property
    def last_event_id(self) -> Optional[str]:
        return self._last_event_id

    def feed(self, chunk: str) -> List[UpstreamEvent]:
        if not chunk:
            return []
        if not self._started:
            self._started = True
            if chunk.startswith(BOM):
                chunk = chunk[len(BOM):]

        text = self._buffer + chunk
        events: List[UpstreamEvent] = []
        start = 0
        length = len(text)
        while start < length:
            lf = text.find("\n", start)
            cr = text.find("\r", start)
            if lf == -1 and cr == -1:
                break
            if cr != -1 and (lf == -1 or cr < lf):
                if cr == length - 1:
                    # Could be the first half of \r\n
                    break
                end = cr
                next_start = cr + 2 if text[cr + 1] == "\n" else cr + 1
            else:
                end = lf
                next_start = lf + 1
            self._process_line(text[start:end], events)
            start = next_start
        self._buffer = text[start:]
        return events

    def _process_line(self, line: str, events: List[UpstreamEvent]) -> None:
        if not line:
            self._dispatch(events)
            return
        if line.startswith(":"):
            return

        field, sep, value = line.partition(":")
        if sep and value.startswith(" "):
            value = value[1:]

        if field == "data":
            self._data.append(value)
        elif field == "event":
            self._event_name = value
        elif field == "id":
            if "\0" not in value:
                self._last_event_id = value
        elif field == "retry":
            if value.isascii() and value.isdigit():
                events.append(UpstreamEvent(type="reconnect-interval", retry=int(value)))
        # Unknown fields are ignored

    def _dispatch(self, events: List[UpstreamEvent]) -> None:
        if self._data:
            events.append(
                UpstreamEvent(
                    type="event",
                    data="\n".join(self._data),
                    event=self._event_name or None,
                    id=self._last_event_id,
                )
            )
        self._data = []
        self._event_name = None
