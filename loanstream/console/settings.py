"""Console configuration loaded from LOANSTREAM_* environment variables."""

from __future__ import annotations

from pydantic import SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConsoleSettings(BaseSettings):
    """Loanstream console settings.

    All fields are read from environment variables with the ``LOANSTREAM_``
    prefix.  For example, ``LOANSTREAM_AGENT_ARN=arn:...`` maps to
    ``agent_arn``.

    AWS credentials may be left unset; boto3 then falls back to its own
    credential chain (profile, instance role, ...).
    """

    model_config = SettingsConfigDict(
        env_prefix="LOANSTREAM_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # -- Logging ---------------------------------------------------------------
    log_level: str = "INFO"

    # -- Server ----------------------------------------------------------------
    host: str = "0.0.0.0"  # noqa: S104
    port: int = 8000

    console_url: str = "http://localhost:8000"
    """Base URL of a running console, used by ``loanstream stream --via``."""

    # -- AWS -------------------------------------------------------------------
    aws_region: str = "ap-south-1"
    aws_access_key_id: str | None = None
    aws_secret_access_key: SecretStr | None = None

    # -- Agent runtime ---------------------------------------------------------
    agent_arn: str | None = None
    """AgentCore runtime ARN.  Required for ``/api/invoke-agent``."""

    agentcore_endpoint: str | None = None
    """Override the AgentCore base URL (defaults to the regional endpoint)."""

    request_timeout: float = 30.0
    """Connect/write timeout in seconds.  Reads between stream chunks are unbounded."""

    carry_partial_objects: bool = False
    """Complete JSON objects that the upstream splits across two ``data:`` frames.

    Off by default: an object left open at the end of a frame is dropped.
    """

    # -- File function ---------------------------------------------------------
    lambda_arn: str | None = None
    """ARN of the remote function that lists and reads pipeline files."""

    # -- Identity --------------------------------------------------------------
    bearer_token: SecretStr | None = None
    """Static bearer token.  Takes precedence over Cognito sign-in."""

    cognito_region: str | None = None
    cognito_client_id: str | None = None
    cognito_username: str | None = None
    cognito_password: SecretStr | None = None

    # -- Helpers ---------------------------------------------------------------

    @property
    def cognito_configured(self) -> bool:
        return bool(self.cognito_client_id and self.cognito_username and self.cognito_password)


def get_settings() -> ConsoleSettings:
    """Return a cached settings instance.

    Reads from environment variables and ``.env`` on first call, then returns
    the same object.  Call ``get_settings.cache_clear()`` in tests to force a
    re-read after overriding env vars.
    """
    return _get_settings_cached()


def _get_settings_cached() -> ConsoleSettings:
    """Inner function wrapped by lru_cache (allows type-safe cache_clear)."""
    return ConsoleSettings()


# Apply lru_cache at runtime so the function is only called once.
from functools import lru_cache  # noqa: E402

_get_settings_cached = lru_cache(maxsize=1)(_get_settings_cached)
