"""Shared fixtures for console tests."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import pytest

from loanstream.console.models.api import InvokeAgentRequest


class FakeTransport:
    """In-memory ``StreamTransport`` that replays canned chunks.

    ``open_error`` is raised instead of yielding (e.g. a non-2xx status);
    ``read_error`` is raised after all chunks were delivered;
    ``gate`` (if set) blocks the first read until it is released.
    """

    def __init__(
        self,
        chunks: list[bytes] | None = None,
        *,
        open_error: Exception | None = None,
        read_error: Exception | None = None,
        gate: asyncio.Event | None = None,
    ) -> None:
        self.chunks = chunks or []
        self.open_error = open_error
        self.read_error = read_error
        self.gate = gate
        self.requests: list[InvokeAgentRequest] = []
        self.opened = 0
        self.closed = 0

    @asynccontextmanager
    async def open(self, request: InvokeAgentRequest) -> AsyncIterator[AsyncIterator[bytes]]:
        self.requests.append(request)
        if self.open_error is not None:
            raise self.open_error
        self.opened += 1
        try:
            yield self._read()
        finally:
            self.closed += 1

    async def _read(self) -> AsyncIterator[bytes]:
        if self.gate is not None:
            await self.gate.wait()
        for chunk in self.chunks:
            yield chunk
        if self.read_error is not None:
            raise self.read_error

    async def __aenter__(self) -> FakeTransport:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        return None


@pytest.fixture
def make_transport() -> type[FakeTransport]:
    return FakeTransport
