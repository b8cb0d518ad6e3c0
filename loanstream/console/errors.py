"""Domain exceptions.

Services and the stream session raise these; routers and the CLI translate
them into HTTP responses or exit codes.
"""

from __future__ import annotations


class MissingCredentialsError(ValueError):
    """A session identifier or bearer token was not supplied."""


class StreamBusyError(RuntimeError):
    """Raised when starting a stream while another one is still running."""


class AgentConfigurationError(RuntimeError):
    """The agent runtime ARN (or another required setting) is not configured."""


class AgentInvocationError(RuntimeError):
    """The agent runtime answered with a non-success status."""

    def __init__(self, status_code: int, body: str = "") -> None:
        self.status_code = status_code
        self.body = body
        msg = f"HTTP error! status: {status_code}"
        if body:
            msg = f"{msg}, body: {body}"
        super().__init__(msg)


class RemoteFunctionError(RuntimeError):
    """The remote file function failed or returned ``success: false``."""
