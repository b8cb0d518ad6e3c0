"""HTTP tests for the console API (ASGITransport, fake upstreams)."""

from __future__ import annotations

import io
import json
from collections.abc import AsyncIterator
from unittest.mock import MagicMock

import pytest
from httpx import ASGITransport, AsyncClient

from loanstream.console.app import app
from loanstream.console.errors import AgentInvocationError
from loanstream.console.models.api import InvokeAgentRequest
from loanstream.console.models.enums import StreamState
from loanstream.console.routers.agent import invoke_agent
from loanstream.console.services.files import FileService
from loanstream.console.streaming.session import StreamSession
from loanstream.console.streaming.transport import ConsoleTransport

_LAMBDA_ARN = "arn:aws:lambda:ap-south-1:123456789012:function:mortgage-files"

_UPSTREAM = [
    b'data: {"type":"agent_start","agent":"VALUER","timestamp":"T1"}\n\n',
    b"event: progress\n: keep-alive\n",
    b'data: {"type":"agent_chunk","agent":"VALUER","data":"Valued at 500k"}'
    b'{"type":"agent_end","agent":"VALUER","timestamp":"T2"}\n\n',
]


def _lambda_response(body: dict, status: int = 200) -> dict:
    result = {"statusCode": status, "body": json.dumps(body)}
    return {"StatusCode": 200, "Payload": io.BytesIO(json.dumps(result).encode())}


@pytest.fixture
def lambda_client() -> MagicMock:
    return MagicMock()


@pytest.fixture
async def client(make_transport, lambda_client: MagicMock) -> AsyncIterator[AsyncClient]:
    """Client wired to the app with fake upstreams.

    The app lifespan does NOT run under ``ASGITransport``, so state fields
    are pre-set here.
    """
    app.state.agent_transport = make_transport(_UPSTREAM)
    app.state.file_service = FileService(_LAMBDA_ARN, region="ap-south-1", client=lambda_client)

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


def _data_lines(text: str) -> list[str]:
    return [line[len("data: ") :] for line in text.splitlines() if line.startswith("data: ")]


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------


async def test_health(client: AsyncClient) -> None:
    resp = await client.get("/api/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}


# ---------------------------------------------------------------------------
# /api/invoke-agent
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    "body",
    [
        {"payload": {"prompt": "x"}},
        {"session_id": "sess-1"},
        {"payload": "", "session_id": "sess-1"},
    ],
)
async def test_invoke_agent_missing_parameters(client: AsyncClient, body: dict) -> None:
    resp = await client.post("/api/invoke-agent", json=body)
    assert resp.status_code == 400
    assert resp.json() == {"error": "Missing required parameters: payload, session_id"}
    assert app.state.agent_transport.requests == []


async def test_invoke_agent_upstream_failure(client: AsyncClient, make_transport) -> None:
    app.state.agent_transport = make_transport(open_error=AgentInvocationError(403, "denied"))

    resp = await client.post("/api/invoke-agent", json={"payload": {"prompt": "x"}, "session_id": "sess-1"})

    assert resp.status_code == 500
    assert resp.json() == {
        "error": "Failed to invoke agent endpoint",
        "details": "HTTP error! status: 403, body: denied",
    }


async def test_invoke_agent_relays_data_lines(client: AsyncClient) -> None:
    resp = await client.post(
        "/api/invoke-agent",
        json={"payload": '{"prompt": "value it"}', "session_id": "sess-1", "bearer_token": "tok"},
    )

    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("text/event-stream")
    assert _data_lines(resp.text) == [
        '{"type":"agent_start","agent":"VALUER","timestamp":"T1"}',
        '{"type":"agent_chunk","agent":"VALUER","data":"Valued at 500k"}'
        '{"type":"agent_end","agent":"VALUER","timestamp":"T2"}',
    ]
    assert "keep-alive" not in resp.text

    [request] = app.state.agent_transport.requests
    assert request.session_id == "sess-1"
    assert request.bearer_token == "tok"
    assert app.state.agent_transport.closed == 1


async def test_session_through_console(client: AsyncClient) -> None:
    transport = ConsoleTransport("http://test", client=client)
    session = StreamSession(transport)

    state = await session.start({"prompt": "value it"}, session_id="sess-1", bearer_token="tok")

    assert state == StreamState.COMPLETED
    assert session.aggregate["VALUER"] == (
        "\n[T1] Agent VALUER started\nValued at 500k\n[T2] Agent VALUER completed\n"
    )


async def test_session_through_console_reports_http_error(client: AsyncClient, make_transport) -> None:
    app.state.agent_transport = make_transport(open_error=AgentInvocationError(502))
    session = StreamSession(ConsoleTransport("http://test", client=client))

    state = await session.start({"prompt": "x"}, session_id="sess-1", bearer_token="tok")

    assert state == StreamState.FAILED
    assert session.error is not None
    assert session.error.startswith("HTTP error! status: 500")


# ---------------------------------------------------------------------------
# /api/invoke-lambda
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    "body",
    [
        {"arguments": {}, "bearer_token": "tok"},
        {"tool_name": "list_s3_files", "arguments": {}},
    ],
)
async def test_invoke_lambda_missing_parameters(client: AsyncClient, lambda_client: MagicMock, body: dict) -> None:
    resp = await client.post("/api/invoke-lambda", json=body)
    assert resp.status_code == 400
    lambda_client.invoke.assert_not_called()


async def test_invoke_lambda_invalid_arn(client: AsyncClient) -> None:
    resp = await client.post(
        "/api/invoke-lambda",
        json={"tool_name": "list_s3_files", "bearer_token": "tok", "lambda_arn": "arn:aws:lambda:x:1:function:"},
    )
    assert resp.status_code == 400
    assert resp.json() == {"error": "Invalid Lambda ARN format"}


async def test_invoke_lambda_returns_envelope(client: AsyncClient, lambda_client: MagicMock) -> None:
    lambda_client.invoke.return_value = _lambda_response({"success": True, "files": []})

    resp = await client.post(
        "/api/invoke-lambda",
        json={"tool_name": "list_s3_files", "arguments": {"prefix": "input"}, "bearer_token": "tok"},
    )

    assert resp.status_code == 200
    envelope = resp.json()
    assert envelope["statusCode"] == 200
    assert json.loads(envelope["body"]["body"]) == {"success": True, "files": []}


async def test_invoke_lambda_remote_failure(client: AsyncClient, lambda_client: MagicMock) -> None:
    lambda_client.invoke.return_value = {"StatusCode": 500, "Payload": io.BytesIO(b"{}")}

    resp = await client.post("/api/invoke-lambda", json={"tool_name": "read_s3_file", "bearer_token": "tok"})

    assert resp.status_code == 500
    assert resp.json()["error"] == "Failed to invoke Lambda function"


# ---------------------------------------------------------------------------
# /api/files
# ---------------------------------------------------------------------------


async def test_list_files_requires_token(client: AsyncClient) -> None:
    resp = await client.get("/api/files/input/list")
    assert resp.status_code == 401


async def test_list_files(client: AsyncClient, lambda_client: MagicMock) -> None:
    lambda_client.invoke.return_value = _lambda_response(
        {"success": True, "files": [{"full_path": "output/app-1-decision.txt", "filename": "app-1-decision.txt"}]}
    )

    resp = await client.get("/api/files/output/list", headers={"Authorization": "Bearer tok"})

    assert resp.status_code == 200
    assert resp.json() == [
        {"key": "output/app-1-decision.txt", "last_modified": None, "size": 0, "display_name": "app-1-decision.txt"}
    ]


async def test_list_files_unknown_area(client: AsyncClient) -> None:
    resp = await client.get("/api/files/archive/list", headers={"Authorization": "Bearer tok"})
    assert resp.status_code == 422


async def test_read_file(client: AsyncClient, lambda_client: MagicMock) -> None:
    lambda_client.invoke.return_value = _lambda_response({"success": True, "content": "APPROVED"})

    resp = await client.get(
        "/api/files/read",
        params={"key": "output/app-1-decision.txt"},
        headers={"Authorization": "Bearer tok"},
    )

    assert resp.status_code == 200
    assert resp.json() == {"key": "output/app-1-decision.txt", "content": "APPROVED"}


async def test_read_file_remote_error(client: AsyncClient, lambda_client: MagicMock) -> None:
    lambda_client.invoke.return_value = _lambda_response({"success": False, "error": "NoSuchKey"})

    resp = await client.get(
        "/api/files/read",
        params={"key": "output/missing.txt"},
        headers={"Authorization": "Bearer tok"},
    )

    assert resp.status_code == 502
    assert resp.json() == {"detail": "NoSuchKey"}


async def test_invoke_agent_releases_upstream_if_body_never_runs(make_transport) -> None:
    upstream = make_transport(_UPSTREAM)
    response = await invoke_agent(InvokeAgentRequest(payload={"prompt": "x"}, session_id="sess-1"), upstream)
    assert (upstream.opened, upstream.closed) == (1, 0)

    # The client disconnected before streaming began: only the background task runs.
    await response.background()

    assert upstream.closed == 1
