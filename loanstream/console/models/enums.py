"""Shared enumerations used across the console."""

from __future__ import annotations

from enum import StrEnum

# -- Agents ------------------------------------------------------------------


class AgentName(StrEnum):
    """Pipeline stages that stream output back to the console."""

    COORDINATOR = "COORDINATOR"
    VALIDATION = "VALIDATION"
    CREDIT_RISK = "CREDIT_RISK"
    EXTERNAL_SERVICES = "EXTERNAL_SERVICES"
    DECISIONING = "DECISIONING"
    VALUER = "VALUER"
    LMI = "LMI"


# -- Events ------------------------------------------------------------------


class StreamEventType(StrEnum):
    """Values of the ``type`` discriminant on streamed agent events."""

    AGENT_START = "agent_start"
    AGENT_CHUNK = "agent_chunk"
    AGENT_END = "agent_end"
    ERROR = "error"


# -- Stream lifecycle --------------------------------------------------------


class StreamState(StrEnum):
    IDLE = "idle"
    STREAMING = "streaming"
    COMPLETED = "completed"
    FAILED = "failed"


# -- Files -------------------------------------------------------------------


class FileArea(StrEnum):
    """Top-level prefixes the remote file function exposes."""

    INPUT = "input"
    OUTPUT = "output"
