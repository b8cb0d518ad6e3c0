"""FastAPI dependency injection for the console's shared clients.

Usage in route handlers::

    @router.get("/files/{area}/list")
    async def list_files(area: FileArea, files: FileSvc, token: BearerToken) -> list[StoredFile]:
        ...

The clients are created once in the app lifespan and stored on
``app.state``; dependencies raise HTTP 503 if the lifespan did not set them.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Header, HTTPException, Request, status

from loanstream.console.services.files import FileService
from loanstream.console.streaming.transport import AgentCoreTransport


def get_agent_transport(request: Request) -> AgentCoreTransport:
    transport: AgentCoreTransport | None = request.app.state.agent_transport
    if transport is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Agent transport not initialised.",
        )
    return transport


def get_file_service(request: Request) -> FileService:
    service: FileService | None = request.app.state.file_service
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="File service not initialised.",
        )
    return service


def get_bearer_token(authorization: Annotated[str | None, Header()] = None) -> str | None:
    """Token from an ``Authorization: Bearer <token>`` header, if present."""
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


# -- Annotated type aliases for concise route signatures ---------------------

AgentTransport = Annotated[AgentCoreTransport, Depends(get_agent_transport)]
"""Annotated dependency: shared AgentCore transport."""

FileSvc = Annotated[FileService, Depends(get_file_service)]
"""Annotated dependency: shared remote-file service."""

BearerToken = Annotated[str | None, Depends(get_bearer_token)]
"""Annotated dependency: bearer token from the Authorization header (or None)."""
