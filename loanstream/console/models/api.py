"""API request / response schemas for the console endpoints.

Field names on the request bodies follow the wire format the agent console
has always accepted (``session_id``, ``bearer_token``, ...), so existing HTTP
clients keep working unchanged.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

# ---------------------------------------------------------------------------
# Agent invocation
# ---------------------------------------------------------------------------


class InvokeAgentRequest(BaseModel):
    """Body of ``POST /api/invoke-agent``.

    ``payload`` may be a JSON value or a string; strings are parsed as JSON
    before being forwarded upstream.
    """

    payload: Any = None
    session_id: str | None = None
    bearer_token: str | None = None
    endpoint_name: str = "DEFAULT"


# ---------------------------------------------------------------------------
# Remote file function
# ---------------------------------------------------------------------------


class InvokeLambdaRequest(BaseModel):
    """Body of ``POST /api/invoke-lambda``."""

    tool_name: str | None = None
    arguments: dict[str, Any] = Field(default_factory=dict)
    bearer_token: str | None = None
    lambda_arn: str | None = Field(default=None, description="Defaults to the configured file function.")


class LambdaEnvelope(BaseModel):
    """Decoded remote-function response: ``{statusCode, body}``."""

    statusCode: int  # noqa: N815
    body: Any = None


class StoredFile(BaseModel):
    """One object-store entry as listed by the remote file function."""

    key: str
    last_modified: str | None = None
    size: int = 0
    display_name: str


class FileContent(BaseModel):
    key: str
    content: str


class ErrorResponse(BaseModel):
    error: str
    details: str | None = None
