"""
Live-text sink.

Receives what a UI (or the speech layer) needs while a turn is in
progress: text as it streams, tool calls as they appear, tool and code
results as they finish, and inline notices for failures.
"""

from typing import Callable, Optional

from toasttalk.code_runner import ExecutionResult
from toasttalk.conversation_state import ToolCallRecord


class LiveTextSink:
    """No-op base; subclass and override what you need."""

    def on_chunk(self, text: str) -> None:
        pass

    def on_tool_call_observed(self, record: ToolCallRecord) -> None:
        pass

    def on_tool_executed(self, call_id: str, summary: str, success: bool) -> None:
        pass

    def on_code_executed(self, result: ExecutionResult) -> None:
        pass

    def on_notice(self, message: str) -> None:
        pass


class CallbackSink(LiveTextSink):
    """Adapts plain callables to the sink interface."""

    def __init__(self,
                 on_chunk: Optional[Callable[[str], None]] = None,
                 on_tool_call_observed: Optional[Callable[[ToolCallRecord], None]] = None,
                 on_tool_executed: Optional[Callable[[str, str, bool], None]] = None,
                 on_code_executed: Optional[Callable[[ExecutionResult], None]] = None,
                 on_notice: Optional[Callable[[str], None]] = None):
        self._callbacks = {
            "on_chunk": on_chunk,
            "on_tool_call_observed": on_tool_call_observed,
            "on_tool_executed": on_tool_executed,
            "on_code_executed": on_code_executed,
            "on_notice": on_notice,
        }

    def _fire(self, name, *args):
        callback = self._callbacks[name]
        if callback is not None:
            callback(*args)

    def on_chunk(self, text):
        self._fire("on_chunk", text)

    def on_tool_call_observed(self, record):
        self._fire("on_tool_call_observed", record)

    def on_tool_executed(self, call_id, summary, success):
        self._fire("on_tool_executed", call_id, summary, success)

    def on_code_executed(self, result):
        self._fire("on_code_executed", result)

    def on_notice(self, message):
        self._fire("on_notice", message)
