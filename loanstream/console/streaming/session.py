"""Stream session -- lifecycle of one operator-visible agent stream.

States::

    idle --start()--> streaming --+--> completed
                        ^         +--> failed
                        +----- start() from either terminal state

``start`` validates preconditions before touching the transport, resets the
aggregate, and then runs the single read loop:

- every parsed event goes to ``on_event`` first, then to the aggregate;
- a clean end of stream fires ``on_complete`` once;
- a non-success status or a failed read fires ``on_error`` once and keeps
  whatever text was already accumulated.

Callbacks may be plain callables or coroutine functions.
"""

from __future__ import annotations

import inspect
from collections.abc import Awaitable, Callable
from typing import Any

from loguru import logger

from loanstream.console.errors import MissingCredentialsError, StreamBusyError
from loanstream.console.models.api import InvokeAgentRequest
from loanstream.console.models.enums import StreamState
from loanstream.console.models.events import StreamEvent
from loanstream.console.streaming.aggregate import AgentAggregate
from loanstream.console.streaming.reassembler import StreamReassembler
from loanstream.console.streaming.transport import DEFAULT_ENDPOINT, StreamTransport

EventCallback = Callable[[StreamEvent], Awaitable[None] | None]
ErrorCallback = Callable[[Exception], Awaitable[None] | None]
CompleteCallback = Callable[[], Awaitable[None] | None]


async def _notify(callback: Callable[..., Any] | None, *args: Any) -> None:
    if callback is None:
        return
    result = callback(*args)
    if inspect.isawaitable(result):
        await result


class StreamSession:
    """Owns the aggregate and state of the console's agent stream."""

    def __init__(
        self,
        transport: StreamTransport,
        *,
        on_event: EventCallback | None = None,
        on_error: ErrorCallback | None = None,
        on_complete: CompleteCallback | None = None,
        carry_partial: bool = False,
    ) -> None:
        self.transport = transport
        self.on_event = on_event
        self.on_error = on_error
        self.on_complete = on_complete
        self.carry_partial = carry_partial

        self.aggregate = AgentAggregate()
        self.state = StreamState.IDLE
        self.error: str | None = None
        self.event_count = 0

    @property
    def is_streaming(self) -> bool:
        return self.state == StreamState.STREAMING

    def clear(self) -> None:
        """Empty every agent buffer and forget the last error."""
        if self.is_streaming:
            raise StreamBusyError
        self.aggregate.reset()
        self.error = None

    async def start(
        self,
        payload: Any,
        *,
        session_id: str | None,
        bearer_token: str | None,
        endpoint_name: str = DEFAULT_ENDPOINT,
    ) -> StreamState:
        """Run one stream to its terminal state and return that state.

        Raises ``MissingCredentialsError`` if *session_id* or *bearer_token*
        is empty, and ``StreamBusyError`` if a stream is already running.
        Transport failures are reported through ``on_error``, not raised.
        """
        if not session_id or not bearer_token:
            msg = "Session ID and Bearer Token are required"
            raise MissingCredentialsError(msg)
        if self.is_streaming:
            msg = "A stream is already running for this session"
            raise StreamBusyError(msg)

        request = InvokeAgentRequest(
            payload=payload,
            session_id=session_id,
            bearer_token=bearer_token,
            endpoint_name=endpoint_name or DEFAULT_ENDPOINT,
        )

        self.aggregate.reset()
        self.error = None
        self.event_count = 0
        self.state = StreamState.STREAMING
        log = logger.bind(session=session_id)
        log.info("Stream started (endpoint={})", request.endpoint_name)

        try:
            await self._consume(request)
        except Exception as e:
            self.state = StreamState.FAILED
            self.error = str(e) or type(e).__name__
            log.warning("Stream failed: {}", self.error)
            await _notify(self.on_error, e)
            return self.state
        except BaseException:
            # Cancellation: the transport is already closed by the time we get here.
            self.state = StreamState.FAILED
            self.error = "Stream cancelled"
            raise

        self.state = StreamState.COMPLETED
        log.info("Stream completed ({} events)", self.event_count)
        await _notify(self.on_complete)
        return self.state

    async def _consume(self, request: InvokeAgentRequest) -> None:
        reassembler = StreamReassembler(carry_partial=self.carry_partial)
        async with self.transport.open(request) as chunks:
            async for chunk in chunks:
                for event in reassembler.feed(chunk):
                    await self._dispatch(event)
        for event in reassembler.close():
            await self._dispatch(event)

    async def _dispatch(self, event: StreamEvent) -> None:
        self.event_count += 1
        await _notify(self.on_event, event)
        self.aggregate.apply(event)
