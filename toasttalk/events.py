"""
Event types for the streaming pipeline.

The decoder turns SSE frames into these typed events; the orchestrator
walks through OrchestratorState while it drives a conversation turn.
"""

from dataclasses import dataclass
from enum import Enum, auto
from typing import Optional, Union


class OrchestratorState(Enum):
    """State machine for one conversation."""

    IDLE = auto()               # Waiting for user content
    STREAMING = auto()          # Model response in flight
    EXECUTING_TOOLS = auto()    # Running finalized tool calls
    EXECUTING_CODE = auto()     # Running run_ fenced code blocks


@dataclass(frozen=True)
class TextDelta:
    """Incremental assistant text."""
    text: str


@dataclass(frozen=True)
class ToolCallDelta:
    """Fragment of a tool call, keyed by its position in the response."""
    index: int
    id: Optional[str] = None
    name: Optional[str] = None
    arguments: Optional[str] = None

    @property
    def opens_call(self) -> bool:
        return bool(self.id and self.name)


@dataclass(frozen=True)
class FinishReason:
    """Terminal marker: "stop", "tool_calls", "length", ..."""
    reason: str


StreamEvent = Union[TextDelta, ToolCallDelta, FinishReason]
