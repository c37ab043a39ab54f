"""
Server-sent event parsing over an httpx line iterator.

Groups "field: value" lines into events, dispatching on blank lines:

    event: ping
    data: {"response": "Hi"}

Lines starting with ":" are comments. Multiple data lines are joined
with newlines. A trailing event without a terminating blank line is
still dispatched when the stream ends.
"""

from dataclasses import dataclass
from typing import AsyncGenerator, AsyncIterable, Optional


@dataclass
class ServerSentEvent:
    """A single dispatched event."""
    event: str = "message"
    data: str = ""
    id: Optional[str] = None
    retry: Optional[int] = None


class _EventBuilder:
    def __init__(self):
        self.reset()

    def reset(self) -> None:
        self._event: Optional[str] = None
        self._data: list[str] = []
        self._id: Optional[str] = None
        self._retry: Optional[int] = None
        self._dirty = False

    def feed(self, line: str) -> None:
        if line.startswith(":"):
            return
        field, _, value = line.partition(":")
        if value.startswith(" "):
            value = value[1:]

        if field == "event":
            self._event = value
        elif field == "data":
            self._data.append(value)
        elif field == "id":
            self._id = value
        elif field == "retry":
            try:
                self._retry = int(value)
            except ValueError:
                return
        else:
            return
        self._dirty = True

    def build(self) -> Optional[ServerSentEvent]:
        if not self._dirty:
            return None
        event = ServerSentEvent(
            event=self._event or "message",
            data="\n".join(self._data),
            id=self._id,
            retry=self._retry,
        )
        self.reset()
        return event


async def aiter_sse(lines: AsyncIterable[str]) -> AsyncGenerator[ServerSentEvent, None]:
    """
    Parse an async iterable of text lines into ServerSentEvents.

    Args:
        lines: Typically response.aiter_lines() from an httpx stream

    Yields:
        One ServerSentEvent per blank-line-delimited block
    """
    builder = _EventBuilder()
    async for line in lines:
        line = line.rstrip("\r\n")
        if line:
            builder.feed(line)
            continue
        event = builder.build()
        if event is not None:
            yield event

    event = builder.build()
    if event is not None:
        yield event
