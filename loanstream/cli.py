import click


@click.group()
def main() -> None:
    """Loanstream - operator console for the mortgage-application agent pipeline."""


@main.command()
@click.option("--host", default=None, help="Bind host (default: from LOANSTREAM_HOST or 0.0.0.0).")
@click.option("--port", default=None, type=int, help="Bind port (default: from LOANSTREAM_PORT or 8000).")
@click.option("--reload", is_flag=True, default=False, help="Enable auto-reload for development.")
def serve(host: str | None, port: int | None, reload: bool) -> None:
    """Start the console HTTP API."""
    import uvicorn

    from loanstream.console.settings import get_settings

    settings = get_settings()

    uvicorn.run(
        "loanstream.console.app:app",
        host=host or settings.host,
        port=port or settings.port,
        reload=reload,
        log_level="warning",  # uvicorn's own logging is intercepted by loguru
    )


# ---------------------------------------------------------------------------
# Streaming
# ---------------------------------------------------------------------------


class _LivePrinter:
    """Echo agent events to the terminal as they arrive."""

    def __init__(self, *, quiet: bool = False) -> None:
        self.quiet = quiet

    def __call__(self, event) -> None:
        from loanstream.console.models.events import AgentChunk, AgentEnd, AgentStart, StreamError

        if self.quiet:
            return
        if isinstance(event, AgentStart):
            click.secho(f"\n== {event.agent} started [{event.timestamp}] ==", fg="cyan")
        elif isinstance(event, AgentChunk):
            click.echo(event.data or "", nl=False)
        elif isinstance(event, AgentEnd):
            click.secho(f"\n== {event.agent} completed [{event.timestamp}] ==", fg="cyan")
        elif isinstance(event, StreamError):
            click.secho(f"\n!! {event.agent or 'pipeline'} error: {event.data or ''}", fg="red", err=True)


async def _run_stream(
    payload: object,
    *,
    session_id: str,
    endpoint: str,
    via_url: str | None,
    token: str | None,
    carry_partial: bool,
    as_json: bool,
) -> int:
    import json

    from loanstream.console.app import create_agent_transport
    from loanstream.console.errors import MissingCredentialsError
    from loanstream.console.identity import create_token_provider
    from loanstream.console.models.enums import StreamState
    from loanstream.console.settings import get_settings
    from loanstream.console.streaming.session import StreamSession
    from loanstream.console.streaming.transport import ConsoleTransport

    settings = get_settings()
    bearer_token = await create_token_provider(settings, token).get_bearer_token()

    if via_url:
        transport = ConsoleTransport(via_url, timeout=settings.request_timeout)
    else:
        transport = create_agent_transport(settings)

    async with transport:
        session = StreamSession(transport, on_event=_LivePrinter(quiet=as_json), carry_partial=carry_partial)
        try:
            state = await session.start(
                payload,
                session_id=session_id,
                bearer_token=bearer_token,
                endpoint_name=endpoint,
            )
        except MissingCredentialsError as e:
            raise click.ClickException(str(e)) from None

    if as_json:
        click.echo(json.dumps(session.aggregate.snapshot(), indent=2))
    else:
        click.echo()

    if state == StreamState.FAILED:
        click.secho(f"Streaming failed: {session.error}", fg="red", err=True)
        return 1
    return 0


@main.command()
@click.argument("payload", required=False)
@click.option("--session-id", default=None, help="Runtime session id (default: a new uuid4).")
@click.option("--endpoint", default="DEFAULT", show_default=True, help="Agent endpoint (qualifier).")
@click.option("--process-file", "process_file", default=None, metavar="KEY", help="Ask the pipeline to assess a stored file.")
@click.option("--via", "via_url", default=None, help="Stream through a running console at this URL.")
@click.option("--token", default=None, help="Bearer token (default: LOANSTREAM_BEARER_TOKEN or Cognito sign-in).")
@click.option("--carry-partial/--no-carry-partial", default=None, help="Complete objects split across frames.")
@click.option("--json", "as_json", is_flag=True, default=False, help="Print the final per-agent text as JSON.")
@click.pass_context
def stream(
    ctx: click.Context,
    payload: str | None,
    session_id: str | None,
    endpoint: str,
    process_file: str | None,
    via_url: str | None,
    token: str | None,
    carry_partial: bool | None,
    as_json: bool,
) -> None:
    """Send PAYLOAD (JSON or plain text) to the pipeline and stream agent output."""
    import asyncio
    import sys

    from loanstream.console.log import setup_logging
    from loanstream.console.services.prompts import build_processing_prompt, new_session_id, parse_payload_text
    from loanstream.console.settings import get_settings

    settings = get_settings()
    setup_logging(settings.log_level, sink=sys.stderr)

    if process_file:
        body = build_processing_prompt(process_file)
        session_id = new_session_id()
    elif payload is not None:
        body = parse_payload_text(payload)
    else:
        raise click.UsageError("Provide PAYLOAD or --process-file.")

    code = asyncio.run(
        _run_stream(
            body,
            session_id=session_id or new_session_id(),
            endpoint=endpoint,
            via_url=via_url,
            token=token,
            carry_partial=settings.carry_partial_objects if carry_partial is None else carry_partial,
            as_json=as_json,
        )
    )
    ctx.exit(code)


# ---------------------------------------------------------------------------
# Pipeline files
# ---------------------------------------------------------------------------


def _file_service_and_token(token: str | None):
    import asyncio

    from loanstream.console.app import create_file_service
    from loanstream.console.identity import create_token_provider
    from loanstream.console.settings import get_settings

    settings = get_settings()
    bearer_token = asyncio.run(create_token_provider(settings, token).get_bearer_token())
    return create_file_service(settings), bearer_token


@main.group()
def files() -> None:
    """Browse pipeline input and output files."""


@files.command("list")
@click.argument("area", type=click.Choice(["input", "output"]), default="input")
@click.option("--token", default=None, help="Bearer token.")
def list_files(area: str, token: str | None) -> None:
    """List files under AREA."""
    import asyncio

    from loanstream.console.errors import MissingCredentialsError, RemoteFunctionError

    service, bearer_token = _file_service_and_token(token)
    try:
        entries = asyncio.run(service.list_files(area, bearer_token))
    except (MissingCredentialsError, RemoteFunctionError) as e:
        raise click.ClickException(str(e)) from None

    if not entries:
        click.echo(f"No {area} files.")
        return
    for entry in entries:
        click.echo(f"{entry.key}\t{entry.size}\t{entry.last_modified or '-'}")


@files.command("read")
@click.argument("key")
@click.option("--token", default=None, help="Bearer token.")
def read_file(key: str, token: str | None) -> None:
    """Print the content of KEY."""
    import asyncio

    from loanstream.console.errors import MissingCredentialsError, RemoteFunctionError

    service, bearer_token = _file_service_and_token(token)
    try:
        content = asyncio.run(service.read_file(key, bearer_token))
    except (MissingCredentialsError, RemoteFunctionError) as e:
        raise click.ClickException(str(e)) from None
    click.echo(content)


if __name__ == "__main__":
    main()
