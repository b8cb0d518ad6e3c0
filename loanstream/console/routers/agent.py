"""Agent invocation endpoint.

Server-side proxy to the AgentCore runtime: AWS configuration stays on the
console host and the browser (or ``ConsoleTransport``) only sees a plain
SSE stream.  Errors use the ``{error, details}`` body shape existing
clients expect.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import AsyncExitStack

import httpx
from fastapi import APIRouter, status
from fastapi.responses import JSONResponse, Response
from loguru import logger
from sse_starlette.sse import EventSourceResponse, ServerSentEvent
from starlette.background import BackgroundTask

from loanstream.console.deps import AgentTransport
from loanstream.console.errors import AgentConfigurationError, AgentInvocationError
from loanstream.console.models.api import ErrorResponse, InvokeAgentRequest
from loanstream.console.streaming.reassembler import DATA_PREFIX, LineBuffer

router = APIRouter(tags=["agent"])


def error_response(status_code: int, error: str, details: str | None = None) -> JSONResponse:
    body = ErrorResponse(error=error, details=details)
    return JSONResponse(body.model_dump(exclude_none=True), status_code=status_code)


async def _relay_frames(chunks: AsyncIterator[bytes], stack: AsyncExitStack) -> AsyncIterator[ServerSentEvent]:
    """Re-emit every upstream ``data:`` line as one SSE event; drop other lines."""
    lines = LineBuffer()
    async with stack:
        try:
            async for chunk in chunks:
                for line in lines.feed(chunk):
                    if line.startswith(DATA_PREFIX):
                        yield ServerSentEvent(data=line[len(DATA_PREFIX) :])
            for line in lines.flush():
                if line.startswith(DATA_PREFIX):
                    yield ServerSentEvent(data=line[len(DATA_PREFIX) :])
        except httpx.HTTPError:
            logger.exception("Upstream agent stream failed")
            raise


@router.post("/invoke-agent", response_model=None)
async def invoke_agent(body: InvokeAgentRequest, transport: AgentTransport) -> Response:
    """Invoke the agent runtime and relay its event stream."""
    if not body.payload or not body.session_id:
        return error_response(status.HTTP_400_BAD_REQUEST, "Missing required parameters: payload, session_id")

    logger.info("Invoking agent (session={}, endpoint={})", body.session_id, body.endpoint_name)

    # Open upstream before answering so a failed invocation becomes a JSON error, not a broken stream.
    stack = AsyncExitStack()
    try:
        chunks = await stack.enter_async_context(transport.open(body))
    except (AgentConfigurationError, AgentInvocationError, httpx.HTTPError) as e:
        await stack.aclose()
        logger.warning("Agent invocation failed (session={}): {}", body.session_id, e)
        return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Failed to invoke agent endpoint", str(e))

    return EventSourceResponse(
        _relay_frames(chunks, stack),
        sep="\n",
        headers={"Cache-Control": "no-cache", "Connection": "keep-alive"},
        # Also release upstream if the body generator never gets to run.
        background=BackgroundTask(stack.aclose),
    )
