"""
Tool call accumulator.

Rebuilds tool calls from streamed fragments. The first delta for a
position carries id + name; later deltas for the same position carry
pieces of the JSON arguments, which are concatenated verbatim.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

from toasttalk.conversation_state import ToolCallRecord
from toasttalk.events import ToolCallDelta

logger = logging.getLogger("toasttalk.tool_call_accumulator")


@dataclass
class _PendingCall:
    id: str
    name: str
    arguments_text: str = ""

    def freeze(self) -> ToolCallRecord:
        return ToolCallRecord(self.id, self.name, self.arguments_text)


class ToolCallAccumulator:
    """Index -> in-progress tool call, finalized exactly once."""

    def __init__(self):
        self._pending: Dict[int, _PendingCall] = {}

    def __len__(self):
        return len(self._pending)

    def apply(self, delta: ToolCallDelta) -> Optional[ToolCallRecord]:
        """Fold a delta in. Returns a snapshot when it opened a new call."""
        opened = None
        current = self._pending.get(delta.index)

        if delta.opens_call and (current is None or current.id != delta.id):
            if current is not None:
                logger.warning(
                    f"Replacing unfinished tool call {current.id} ({current.name}) "
                    f"at index {delta.index} with {delta.id}"
                )
            current = _PendingCall(delta.id, delta.name)
            self._pending[delta.index] = current
            opened = current.freeze()

        if delta.arguments:
            if current is None:
                logger.warning(
                    f"Ignoring argument fragment for unknown tool call index {delta.index}"
                )
            else:
                current.arguments_text += delta.arguments

        return opened

    def finish(self, reason: str) -> List[ToolCallRecord]:
        """Finalize on finish_reason == "tool_calls"; other reasons are no-ops."""
        if reason != "tool_calls":
            return []
        return self.drain()

    def drain(self) -> List[ToolCallRecord]:
        """Finalize whatever is open, ordered by index, and clear state."""
        records = [self._pending[i].freeze() for i in sorted(self._pending)]
        self._pending.clear()
        return records
