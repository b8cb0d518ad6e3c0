from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.routing import APIRouter
from loguru import logger
from pydantic import SecretStr

from loanstream.console.log import setup_logging
from loanstream.console.services.files import FileService
from loanstream.console.settings import ConsoleSettings, get_settings
from loanstream.console.streaming.transport import AgentCoreTransport


def _secret(value: SecretStr | None) -> str | None:
    return value.get_secret_value() if value is not None else None


def create_agent_transport(settings: ConsoleSettings) -> AgentCoreTransport:
    return AgentCoreTransport(
        settings.agent_arn,
        region=settings.aws_region,
        base_url=settings.agentcore_endpoint,
        timeout=settings.request_timeout,
    )


def create_file_service(settings: ConsoleSettings) -> FileService:
    return FileService(
        settings.lambda_arn,
        region=settings.aws_region,
        access_key=settings.aws_access_key_id,
        secret_key=_secret(settings.aws_secret_access_key),
    )


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    # -- Startup ---------------------------------------------------------------
    settings = get_settings()
    setup_logging(settings.log_level)

    logger.info("Console starting (host={}, port={}, region={})", settings.host, settings.port, settings.aws_region)
    if not settings.agent_arn:
        logger.warning("LOANSTREAM_AGENT_ARN not set -- /api/invoke-agent will fail")
    if not settings.lambda_arn:
        logger.warning("LOANSTREAM_LAMBDA_ARN not set -- file endpoints will fail")

    _app.state.agent_transport = create_agent_transport(settings)
    _app.state.file_service = create_file_service(settings)

    yield

    # -- Shutdown --------------------------------------------------------------
    logger.info("Console shutting down")
    await _app.state.agent_transport.aclose()


app = FastAPI(title="Loanstream Console", lifespan=lifespan)

# ---------------------------------------------------------------------------
# API router -- all backend endpoints live under /api
# ---------------------------------------------------------------------------
api = APIRouter(prefix="/api")


@api.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}


from loanstream.console.routers.agent import router as agent_router  # noqa: E402
from loanstream.console.routers.files import router as files_router  # noqa: E402

api.include_router(agent_router)
api.include_router(files_router)

app.include_router(api)
