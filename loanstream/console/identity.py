"""Bearer-token providers.

The agent runtime and the file endpoints expect an OAuth access token from
the pipeline's Cognito user pool.  ``get_bearer_token`` returns ``None``
rather than raising when no token can be obtained; callers treat that as a
missing precondition.
"""

from __future__ import annotations

import time
from typing import Any, Protocol, runtime_checkable

import boto3
from anyio import to_thread
from botocore.exceptions import BotoCoreError, ClientError
from loguru import logger

from loanstream.console.settings import ConsoleSettings

# Refresh this many seconds before the token actually expires.
_EXPIRY_MARGIN = 60


@runtime_checkable
class TokenProvider(Protocol):
    async def get_bearer_token(self) -> str | None:
        """Return a bearer token, or None if none is available."""
        ...


class StaticTokenProvider:
    """Hands out a fixed, externally obtained token."""

    def __init__(self, token: str | None) -> None:
        self._token = token or None

    async def get_bearer_token(self) -> str | None:
        return self._token


class CognitoTokenProvider:
    """Signs in with ``USER_PASSWORD_AUTH`` and caches the access token.

    The user pool app client must allow the ``USER_PASSWORD_AUTH`` flow.
    """

    def __init__(
        self,
        *,
        client_id: str,
        username: str,
        password: str,
        region: str,
        client: Any = None,
    ) -> None:
        self.client_id = client_id
        self.username = username
        self._password = password
        self._client = client or boto3.client("cognito-idp", region_name=region)
        self._token: str | None = None
        self._expires_at = 0.0

    async def get_bearer_token(self) -> str | None:
        if self._token and time.monotonic() < self._expires_at:
            return self._token
        try:
            resp = await to_thread.run_sync(self._initiate_auth)
        except (BotoCoreError, ClientError) as e:
            logger.warning("Cognito sign-in failed for {}: {}", self.username, e)
            self.sign_out()
            return None

        result = resp.get("AuthenticationResult") or {}
        token = result.get("AccessToken")
        if not token:
            # A challenge (e.g. NEW_PASSWORD_REQUIRED) cannot be answered here.
            logger.warning("Cognito sign-in for {} returned challenge {}", self.username, resp.get("ChallengeName"))
            return None

        self._token = token
        self._expires_at = time.monotonic() + int(result.get("ExpiresIn", 3600)) - _EXPIRY_MARGIN
        logger.debug("Cognito access token obtained for {}", self.username)
        return token

    def sign_out(self) -> None:
        """Forget the cached token."""
        self._token = None
        self._expires_at = 0.0

    def _initiate_auth(self) -> dict[str, Any]:
        return self._client.initiate_auth(
            ClientId=self.client_id,
            AuthFlow="USER_PASSWORD_AUTH",
            AuthParameters={"USERNAME": self.username, "PASSWORD": self._password},
        )


def create_token_provider(settings: ConsoleSettings, token: str | None = None) -> TokenProvider:
    """Pick a provider: explicit *token*, then the configured static token, then Cognito."""
    if token:
        return StaticTokenProvider(token)
    if settings.bearer_token is not None:
        return StaticTokenProvider(settings.bearer_token.get_secret_value())
    if settings.cognito_configured:
        assert settings.cognito_client_id and settings.cognito_username and settings.cognito_password  # noqa: S101
        return CognitoTokenProvider(
            client_id=settings.cognito_client_id,
            username=settings.cognito_username,
            password=settings.cognito_password.get_secret_value(),
            region=settings.cognito_region or settings.aws_region,
        )
    return StaticTokenProvider(None)
