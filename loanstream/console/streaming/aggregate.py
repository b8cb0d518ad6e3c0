"""Per-agent accumulated text."""

from __future__ import annotations

from collections.abc import Iterator

from loanstream.console.models.enums import AgentName
from loanstream.console.models.events import AgentChunk, AgentEnd, AgentStart, StreamEvent


def start_marker(event: AgentStart) -> str:
    return f"\n[{event.timestamp}] Agent {event.agent} started\n"


def end_marker(event: AgentEnd) -> str:
    return f"\n[{event.timestamp}] Agent {event.agent} completed\n"


class AgentAggregate:
    """Append-only text buffer per agent.

    Every ``AgentName`` is always present.  During a stream buffers only
    grow; ``reset`` empties all of them and is called when a new stream
    starts.
    """

    def __init__(self) -> None:
        self._buffers: dict[AgentName, str] = {}
        self.reset()

    def reset(self) -> None:
        self._buffers = dict.fromkeys(AgentName, "")

    def append(self, agent: AgentName, text: str) -> None:
        self._buffers[agent] += text

    def apply(self, event: StreamEvent) -> bool:
        """Apply one event.  Returns True if a buffer changed."""
        if isinstance(event, AgentStart):
            self.append(event.agent, start_marker(event))
        elif isinstance(event, AgentChunk):
            if not event.data:
                return False
            self.append(event.agent, event.data)
        elif isinstance(event, AgentEnd):
            self.append(event.agent, end_marker(event))
        else:
            # StreamError / UnknownEvent: reported to callbacks only.
            return False
        return True

    def __getitem__(self, agent: AgentName | str) -> str:
        return self._buffers[AgentName(agent)]

    def __iter__(self) -> Iterator[AgentName]:
        return iter(self._buffers)

    def __len__(self) -> int:
        return len(self._buffers)

    def snapshot(self) -> dict[str, str]:
        """Plain-dict copy keyed by agent name."""
        return {str(agent): text for agent, text in self._buffers.items()}

    def is_empty(self) -> bool:
        return not any(self._buffers.values())
