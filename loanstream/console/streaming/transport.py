"""HTTP transports that open an agent stream.

A transport turns an ``InvokeAgentRequest`` into an async iterator of raw
response bytes, scoped by ``async with`` so the connection is released
exactly once however the read loop exits::

    async with transport.open(request) as chunks:
        async for chunk in chunks:
            ...

Two implementations:

- ``AgentCoreTransport`` calls the AgentCore runtime invocation endpoint
  directly (what the console's ``/api/invoke-agent`` route does server-side).
- ``ConsoleTransport`` goes through a running console's ``/api/invoke-agent``
  route, which keeps AWS configuration on the server.

Non-success responses raise ``AgentInvocationError`` before any bytes are
yielded.  Nothing here retries.
"""

from __future__ import annotations

import json
from collections.abc import AsyncIterator
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from typing import Any, Protocol, runtime_checkable
from urllib.parse import quote

import httpx
from loguru import logger

from loanstream.console.errors import AgentConfigurationError, AgentInvocationError
from loanstream.console.models.api import InvokeAgentRequest

DEFAULT_ENDPOINT = "DEFAULT"
SESSION_HEADER = "X-Amzn-Bedrock-AgentCore-Runtime-Session-Id"


@runtime_checkable
class StreamTransport(Protocol):
    """Opens the byte stream for one agent invocation."""

    def open(self, request: InvokeAgentRequest) -> AbstractAsyncContextManager[AsyncIterator[bytes]]:
        """Start the invocation.  Raises ``AgentInvocationError`` on a non-2xx status."""
        ...


# ---------------------------------------------------------------------------
# Request building
# ---------------------------------------------------------------------------


def agentcore_base_url(region: str) -> str:
    return f"https://bedrock-agentcore.{region}.amazonaws.com"


def build_invocation_url(
    agent_arn: str,
    *,
    region: str,
    endpoint_name: str = DEFAULT_ENDPOINT,
    base_url: str | None = None,
) -> str:
    """AgentCore invocation URL for *agent_arn*.

    The whole ARN is percent-encoded into one path segment.  Non-default
    endpoints are selected with the ``qualifier`` query parameter.
    """
    if not agent_arn:
        msg = "Agent runtime ARN is not configured (LOANSTREAM_AGENT_ARN)."
        raise AgentConfigurationError(msg)

    base = (base_url or agentcore_base_url(region)).rstrip("/")
    url = f"{base}/runtimes/{quote(agent_arn, safe='')}/invocations"
    if endpoint_name and endpoint_name != DEFAULT_ENDPOINT:
        url = f"{url}?qualifier={quote(endpoint_name, safe='')}"
    return url


def build_agent_body(payload: Any) -> Any:
    """Upstream request body for *payload*.

    String payloads are parsed as JSON; text that is not JSON is wrapped as
    ``{"payload": text}``.
    """
    if isinstance(payload, str):
        try:
            return json.loads(payload)
        except json.JSONDecodeError:
            return {"payload": payload}
    return payload


# ---------------------------------------------------------------------------
# Transports
# ---------------------------------------------------------------------------


class _HttpStreamTransport:
    """Shared httpx plumbing.  Subclasses provide ``_build``."""

    def __init__(self, *, client: httpx.AsyncClient | None = None, timeout: float = 30.0) -> None:
        self._owns_client = client is None
        # Agent runs can pause for minutes between chunks; only connect/write are bounded.
        self._client = client or httpx.AsyncClient(timeout=httpx.Timeout(timeout, read=None))

    def _build(self, request: InvokeAgentRequest) -> tuple[str, dict[str, str], Any]:
        raise NotImplementedError

    @asynccontextmanager
    async def open(self, request: InvokeAgentRequest) -> AsyncIterator[AsyncIterator[bytes]]:
        url, headers, body = self._build(request)
        logger.debug("Opening agent stream: POST {} (session={})", url, request.session_id)
        async with self._client.stream("POST", url, headers=headers, json=body) as response:
            if not response.is_success:
                error_text = (await response.aread()).decode("utf-8", errors="replace")
                raise AgentInvocationError(response.status_code, error_text)
            yield response.aiter_bytes()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()


class AgentCoreTransport(_HttpStreamTransport):
    """Invokes the AgentCore runtime directly."""

    def __init__(
        self,
        agent_arn: str | None,
        *,
        region: str,
        base_url: str | None = None,
        client: httpx.AsyncClient | None = None,
        timeout: float = 30.0,
    ) -> None:
        super().__init__(client=client, timeout=timeout)
        self.agent_arn = agent_arn
        self.region = region
        self.base_url = base_url

    def _build(self, request: InvokeAgentRequest) -> tuple[str, dict[str, str], Any]:
        url = build_invocation_url(
            self.agent_arn or "",
            region=self.region,
            endpoint_name=request.endpoint_name,
            base_url=self.base_url,
        )
        headers = {
            "Content-Type": "application/json",
            SESSION_HEADER: request.session_id or "",
        }
        if request.bearer_token:
            headers["Authorization"] = f"Bearer {request.bearer_token}"
        return url, headers, build_agent_body(request.payload)


class ConsoleTransport(_HttpStreamTransport):
    """Invokes the agent through a console's ``/api/invoke-agent`` route."""

    def __init__(
        self,
        console_url: str,
        *,
        client: httpx.AsyncClient | None = None,
        timeout: float = 30.0,
    ) -> None:
        super().__init__(client=client, timeout=timeout)
        self.console_url = console_url.rstrip("/")

    def _build(self, request: InvokeAgentRequest) -> tuple[str, dict[str, str], Any]:
        url = f"{self.console_url}/api/invoke-agent"
        return url, {"Content-Type": "application/json"}, request.model_dump(mode="json")
