"""
Conversation history.

Single source of truth for the turns of one conversation. The
orchestrator owns an instance and is the only writer; the serialised
form is what goes into the "messages" array of every request.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Tuple


ROLES = ("system", "user", "assistant", "tool")


@dataclass(frozen=True)
class ToolCallRecord:
    """A complete tool invocation rebuilt from streamed fragments."""
    id: str
    name: str
    arguments_text: str = ""

    def to_api(self) -> dict:
        return {
            "id": self.id,
            "type": "function",
            "function": {"name": self.name, "arguments": self.arguments_text},
        }


@dataclass(frozen=True)
class ConversationTurn:
    """One role-tagged entry in the history."""
    role: str
    content: str = ""
    tool_calls: Tuple[ToolCallRecord, ...] = ()
    tool_call_id: Optional[str] = None

    def __post_init__(self):
        if self.role not in ROLES:
            raise ValueError(f"Unknown role: {self.role!r}")
        if self.role == "tool" and not self.tool_call_id:
            raise ValueError("tool turns need a tool_call_id")
        if self.tool_call_id and self.role != "tool":
            raise ValueError("tool_call_id is only valid on tool turns")

    def to_api(self) -> dict:
        message = {"role": self.role, "content": self.content}
        if self.tool_calls:
            message["tool_calls"] = [call.to_api() for call in self.tool_calls]
        if self.tool_call_id:
            message["tool_call_id"] = self.tool_call_id
        return message


@dataclass
class ConversationHistory:
    """Append-only turn list; reset() keeps the system turn."""

    system_prompt: str = ""
    turns: List[ConversationTurn] = field(default_factory=list)

    def __post_init__(self):
        if self.system_prompt and not self.turns:
            self.turns.append(ConversationTurn("system", self.system_prompt))

    def __len__(self):
        return len(self.turns)

    def __iter__(self):
        return iter(self.turns)

    @property
    def last(self) -> Optional[ConversationTurn]:
        return self.turns[-1] if self.turns else None

    def append(self, turn: ConversationTurn) -> ConversationTurn:
        self.turns.append(turn)
        return turn

    def add_user(self, content: str) -> ConversationTurn:
        return self.append(ConversationTurn("user", content))

    def add_assistant(self, content: str,
                      tool_calls: Tuple[ToolCallRecord, ...] = ()) -> ConversationTurn:
        return self.append(ConversationTurn("assistant", content, tuple(tool_calls)))

    def add_tool_result(self, call_id: str, content: str) -> ConversationTurn:
        return self.append(ConversationTurn("tool", content, tool_call_id=call_id))

    def to_api(self) -> List[dict]:
        return [turn.to_api() for turn in self.turns]

    def reset(self):
        """Drop everything except the system turn."""
        self.turns = [t for t in self.turns[:1] if t.role == "system"]
