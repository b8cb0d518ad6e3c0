"""Streamed agent event models.

Each JSON object pulled out of an SSE frame becomes exactly one of the
variants below.  ``parse_event`` dispatches on the ``type`` discriminant;
anything it cannot place (unknown or missing type, an agent outside the
closed set, wrong field types) becomes an ``UnknownEvent`` so callers still
see it for diagnostics.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from loanstream.console.models.enums import AgentName, StreamEventType


class _EventBase(BaseModel):
    model_config = ConfigDict(frozen=True)

    raw: dict[str, Any] = Field(default_factory=dict, exclude=True)
    """Source object as decoded from the wire."""


class _TimedEvent(_EventBase):
    timestamp: str = ""

    @field_validator("timestamp", mode="before")
    @classmethod
    def timestamp_as_text(cls, value: Any) -> Any:
        # Some runtimes send epoch numbers or null here.
        if value is None:
            return ""
        if isinstance(value, int | float) and not isinstance(value, bool):
            return str(value)
        return value


class AgentStart(_TimedEvent):
    type: Literal["agent_start"] = "agent_start"
    agent: AgentName


class AgentChunk(_TimedEvent):
    type: Literal["agent_chunk"] = "agent_chunk"
    agent: AgentName
    data: str | None = None


class AgentEnd(_TimedEvent):
    type: Literal["agent_end"] = "agent_end"
    agent: AgentName


class StreamError(_TimedEvent):
    """Error reported in-band by the agent runtime."""

    type: Literal["error"] = "error"
    agent: AgentName | None = None
    data: str | None = None


class UnknownEvent(_EventBase):
    """Catch-all for objects that do not match a known variant."""

    type: str | None = None


StreamEvent = AgentStart | AgentChunk | AgentEnd | StreamError | UnknownEvent

_VARIANTS: dict[str, type[_EventBase]] = {
    StreamEventType.AGENT_START: AgentStart,
    StreamEventType.AGENT_CHUNK: AgentChunk,
    StreamEventType.AGENT_END: AgentEnd,
    StreamEventType.ERROR: StreamError,
}


def parse_event(obj: dict[str, Any]) -> StreamEvent:
    """Build the typed event for one decoded JSON object.  Never raises."""
    event_type = obj.get("type")
    model = _VARIANTS.get(event_type) if isinstance(event_type, str) else None
    if model is not None:
        try:
            return model.model_validate({**obj, "raw": obj})
        except ValidationError:
            pass
    return UnknownEvent(type=event_type if isinstance(event_type, str) else None, raw=obj)
