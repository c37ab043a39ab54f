"""
Streaming session: reconciles a server-sent event stream with a single
awaited reply.

State machine (one session per chat_completion call):

    OPEN ──200──> STREAMING ──[DONE] or close──> DONE
      │               │
      └──non-200──────┴──error / malformed / abort──> FAILED

A settled session (DONE or FAILED) never transitions again, so the
"[DONE]" sentinel reaches the progress callback exactly once even when
the server both sends it and then closes the stream.
"""

import asyncio
import inspect
import json
import logging
from enum import Enum
from typing import Awaitable, Callable, Optional, Union

import httpx
from pydantic import ValidationError

from workers_ai.config import DONE_SENTINEL, PING_EVENT
from workers_ai.errors import Cancelled, ProtocolFailure, WorkersAIError
from workers_ai.schema import StreamChunk
from workers_ai.sse import ServerSentEvent

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str], Union[None, Awaitable[None]]]


class StreamState(str, Enum):
    OPEN = "open"
    STREAMING = "streaming"
    DONE = "done"
    FAILED = "failed"


class StreamSession:
    """
    Per-call streaming state: accumulated reply, current state, abort token.

    Args:
        model_id: Model the stream belongs to (for diagnostics)
        on_progress: Called with each fragment, then once with "[DONE]".
            May be a plain function or a coroutine function.
        stream_rate: Pause after each fragment, in milliseconds
        abort_event: Optional token; once set, no further callbacks run
    """

    def __init__(
        self,
        model_id: str,
        on_progress: ProgressCallback,
        stream_rate: int,
        abort_event: Optional[asyncio.Event] = None,
    ):
        self.model_id = model_id
        self.reply = ""
        self.state = StreamState.OPEN
        self._on_progress = on_progress
        self._pace_seconds = stream_rate / 1000
        self._abort_event = abort_event

    @property
    def settled(self) -> bool:
        return self.state in (StreamState.DONE, StreamState.FAILED)

    async def open(self, response: httpx.Response) -> None:
        """
        Handle the stream opening.

        Raises:
            ProtocolFailure: On any status other than 200, with the raw
                body and (when it parses) the JSON body attached
        """
        self._check_abort()
        if response.status_code == 200:
            self.state = StreamState.STREAMING
            return

        body = (await response.aread()).decode("utf-8", errors="replace")
        logger.debug(
            f"StreamSession.open: HTTP {response.status_code} for {self.model_id}: {body}"
        )
        parsed = None
        try:
            parsed = json.loads(body)
        except ValueError:
            pass
        raise self.fail(ProtocolFailure(
            f"Failed to send message. HTTP {response.status_code} - {body}",
            status=response.status_code,
            body=body,
            json=parsed,
        ))

    async def dispatch(self, event: ServerSentEvent) -> bool:
        """
        Handle one event. Returns True once the session is DONE.

        Raises:
            ProtocolFailure: If the event data is not {"response": str}
            Cancelled: If the abort token was set
        """
        self._check_abort()
        if self.settled:
            return True
        if not event.data or event.event == PING_EVENT:
            return False
        if event.data == DONE_SENTINEL:
            await self._finish()
            return True

        try:
            chunk = StreamChunk.model_validate_json(event.data)
        except ValidationError as e:
            raise self.fail(ProtocolFailure(
                f"Malformed stream event for {self.model_id}: {event.data[:200]}",
                body=event.data,
            )) from e

        await self._emit(chunk.response)
        self.reply += chunk.response
        await asyncio.sleep(self._pace_seconds)
        return False

    async def close(self) -> str:
        """
        Handle the stream ending. Without a prior [DONE] this is an
        implicit success: the sentinel is delivered and the reply returned.
        """
        if self.state is StreamState.STREAMING:
            self._check_abort()
            await self._finish()
        return self.reply

    def fail(self, error: WorkersAIError) -> WorkersAIError:
        """Move to FAILED and return the error for the caller to raise."""
        if self.state is not StreamState.FAILED:
            self.state = StreamState.FAILED
            if isinstance(error, Cancelled):
                logger.info(f"StreamSession: {self.model_id} stream aborted by caller")
            else:
                logger.error(f"StreamSession: {self.model_id} stream failed: {error}")
        return error

    async def _finish(self) -> None:
        await self._emit(DONE_SENTINEL)
        self.state = StreamState.DONE
        logger.debug(
            f"StreamSession: {self.model_id} response: {self.reply!r}"
        )

    async def _emit(self, text: str) -> None:
        result = self._on_progress(text)
        if inspect.isawaitable(result):
            await result

    def _check_abort(self) -> None:
        if self._abort_event is not None and self._abort_event.is_set():
            raise self.fail(Cancelled(f"Stream for {self.model_id} aborted by caller"))
