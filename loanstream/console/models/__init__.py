"""Data models for the console."""

from loanstream.console.models.api import (
    ErrorResponse,
    FileContent,
    InvokeAgentRequest,
    InvokeLambdaRequest,
    LambdaEnvelope,
    StoredFile,
)
from loanstream.console.models.enums import AgentName, FileArea, StreamEventType, StreamState
from loanstream.console.models.events import (
    AgentChunk,
    AgentEnd,
    AgentStart,
    StreamError,
    StreamEvent,
    UnknownEvent,
    parse_event,
)

__all__ = [
    # Events
    "AgentChunk",
    "AgentEnd",
    # Enums
    "AgentName",
    "AgentStart",
    # API schemas
    "ErrorResponse",
    "FileArea",
    "FileContent",
    "InvokeAgentRequest",
    "InvokeLambdaRequest",
    "LambdaEnvelope",
    "StoredFile",
    "StreamError",
    "StreamEvent",
    "StreamEventType",
    "StreamState",
    "UnknownEvent",
    "parse_event",
]
