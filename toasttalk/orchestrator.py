"""
Conversation Orchestrator

Drives one conversation: streams a model response, executes the tool
calls or run_ code blocks it asks for, appends the results to the
history and asks again, until a response needs neither.

Per send():
  1. append the user turn, stream a request with full history + tool schemas
  2. text deltas -> sink + accumulated text; tool deltas -> accumulator
  3. finalized tool calls -> assistant turn carrying them, each call run
     serially, one tool turn per call (errors included), loop
  4. otherwise run code blocks; if any ran -> assistant turn + feedback
     user turn, loop
  5. otherwise append the assistant text and return

Only transport failures and the iteration ceiling raise out of send();
tool errors become tool turns so the model can correct itself.
"""

import json
import logging
import queue
import threading
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from toasttalk.code_runner import CodeSandboxRunner, ExecutionResult, format_feedback
from toasttalk.conversation_state import ConversationHistory, ToolCallRecord
from toasttalk.errors import ConversationLoopLimitExceeded, ToolError, ToolExecutionFailed
from toasttalk.events import FinishReason, OrchestratorState, TextDelta, ToolCallDelta
from toasttalk.llm_client import StreamingLLMClient
from toasttalk.location import ConfiguredLocationResolver
from toasttalk.sink import LiveTextSink
from toasttalk.stream_decoder import StreamEventDecoder
from toasttalk.system_prompt import build_system_prompt
from toasttalk.tool_call_accumulator import ToolCallAccumulator
from toasttalk.tool_registry import ToolContext, ToolRegistry, ToolResult
from toasttalk.transit_service import TransitRouteService

logger = logging.getLogger("toasttalk.orchestrator")


@dataclass
class TurnOutcome:
    """What one send() produced."""
    text: str = ""
    iterations: int = 0
    tool_results: List[ToolResult] = field(default_factory=list)
    tool_errors: List[Tuple[ToolCallRecord, str]] = field(default_factory=list)
    executions: List[ExecutionResult] = field(default_factory=list)
    cancelled: bool = False


def summarize_tool_result(content: str, limit: int = 200) -> str:
    """Short description of a tool result for live display."""
    try:
        data = json.loads(content)
    except (json.JSONDecodeError, TypeError):
        data = None
    if isinstance(data, dict) and isinstance(data.get("journeys"), list):
        return f"Found {len(data['journeys'])} routes"
    if len(content) > limit:
        return content[:limit] + "..."
    return content


class ConversationOrchestrator:
    """One conversation's state machine. Not shared between conversations."""

    def __init__(self, client: StreamingLLMClient, registry: Optional[ToolRegistry] = None,
                 runner: Optional[CodeSandboxRunner] = None, system_prompt: str = "",
                 max_iterations: int = 8, tool_timeout: float = 30.0):
        if max_iterations < 1:
            raise ValueError("max_iterations must be at least 1")
        self.client = client
        self.registry = registry or ToolRegistry()
        self.runner = runner
        self.history = ConversationHistory(system_prompt)
        self.max_iterations = max_iterations
        self.tool_timeout = tool_timeout

        # Full tool payloads (e.g. complete route data) for a presentation layer
        self.last_tool_payloads: Dict[str, Any] = {}

        self._state = OrchestratorState.IDLE
        self._stop = threading.Event()
        self._busy = threading.Lock()

    @classmethod
    def from_config(cls, config, registry: Optional[ToolRegistry] = None,
                    client: Optional[StreamingLLMClient] = None,
                    runner: Optional[CodeSandboxRunner] = None,
                    system_prompt: Optional[str] = None) -> "ConversationOrchestrator":
        """Wire a conversation from config, building default collaborators."""
        location = ConfiguredLocationResolver(config)
        if registry is None:
            registry = ToolRegistry()
            registry.discover(ToolContext(
                config=config, location=location, routes=TransitRouteService(config),
            ))
        if runner is None and config.get("code_execution.enabled", True):
            runner = CodeSandboxRunner(config)
        if system_prompt is None:
            system_prompt = build_system_prompt(
                registry, places=location.places, user_name=config.get("assistant.user_name", ""),
            )
        return cls(
            client=client or StreamingLLMClient.from_config(config),
            registry=registry,
            runner=runner,
            system_prompt=system_prompt,
            max_iterations=config.get("conversation.max_iterations", 8),
            tool_timeout=config.get("conversation.tool_timeout", 30),
        )

    @property
    def state(self) -> OrchestratorState:
        return self._state

    # -----------------------------------------------------------------------
    # Public API
    # -----------------------------------------------------------------------

    def send(self, content: str, sink: Optional[LiveTextSink] = None) -> TurnOutcome:
        """Run one user turn to completion.

        Raises:
            StreamTransportError: the model request failed
            ConversationLoopLimitExceeded: no stable answer within max_iterations
        """
        if not self._busy.acquire(blocking=False):
            raise RuntimeError("A turn is already in flight for this conversation")
        sink = sink or LiveTextSink()
        outcome = TurnOutcome()
        self._stop.clear()
        self.client.clear_cancel()
        if self.runner is not None:
            self.runner.clear_cancel()
        try:
            self.history.add_user(content)
            for iteration in range(1, self.max_iterations + 1):
                if self._stop.is_set():
                    return self._finish_cancelled("", outcome)
                outcome.iterations = iteration
                self._state = OrchestratorState.STREAMING
                text, tool_calls = self._stream_response(sink)

                if self._stop.is_set():
                    return self._finish_cancelled(text, outcome)

                if tool_calls:
                    self._state = OrchestratorState.EXECUTING_TOOLS
                    self.history.add_assistant("", tool_calls)
                    self._execute_tools(tool_calls, sink, outcome)
                    if self._stop.is_set():
                        return self._finish_cancelled("", outcome)
                    continue

                if self.runner is not None and self.runner.extract(text):
                    if self._stop.is_set():
                        return self._finish_cancelled(text, outcome)
                    self._state = OrchestratorState.EXECUTING_CODE
                    results = self.runner.process(text, on_result=sink.on_code_executed)
                    outcome.executions.extend(results)
                    if self._stop.is_set():
                        return self._finish_cancelled(text, outcome)
                    self.history.add_assistant(text)
                    logger.info(f"Feeding {len(results)} code results back to the model")
                    self.history.add_user(format_feedback(results))
                    continue

                self.history.add_assistant(text)
                outcome.text = text
                return outcome

            logger.error(f"Conversation loop limit reached ({self.max_iterations})")
            sink.on_notice(f"Stopped after {self.max_iterations} model requests without a final answer.")
            raise ConversationLoopLimitExceeded(self.max_iterations)
        finally:
            self._state = OrchestratorState.IDLE
            self._busy.release()

    def stop(self):
        """User-initiated stop: abort the stream and kill any running code."""
        logger.info("Stop requested")
        self._stop.set()
        self.client.cancel()
        if self.runner is not None:
            self.runner.cancel()

    def reset(self):
        """Clear the conversation, keeping the system turn."""
        self.history.reset()
        self.last_tool_payloads.clear()

    # -----------------------------------------------------------------------
    # Internals
    # -----------------------------------------------------------------------

    def _stream_response(self, sink: LiveTextSink) -> Tuple[str, List[ToolCallRecord]]:
        """One streamed request. Returns (full text, finalized tool calls)."""
        accumulator = ToolCallAccumulator()
        text_parts: List[str] = []
        finalized: List[ToolCallRecord] = []

        lines = self.client.stream_lines(self.history.to_api(), self.registry.describe())
        for event in StreamEventDecoder(lines):
            if isinstance(event, TextDelta):
                text_parts.append(event.text)
                sink.on_chunk(event.text)
            elif isinstance(event, ToolCallDelta):
                opened = accumulator.apply(event)
                if opened is not None:
                    sink.on_tool_call_observed(opened)
            elif isinstance(event, FinishReason):
                finalized.extend(accumulator.finish(event.reason))

        if len(accumulator) and not self._stop.is_set():
            logger.warning("Stream ended without finish_reason=tool_calls; finalizing open tool calls")
            finalized.extend(accumulator.drain())

        return "".join(text_parts), finalized

    def _run_tool(self, record: ToolCallRecord) -> ToolResult:
        """Registry call bounded by tool_timeout.

        The call runs on a daemon thread. A call that times out is left
        running there and cannot hold up interpreter exit.
        """
        results = queue.Queue(maxsize=1)

        def target():
            try:
                results.put((True, self.registry.execute(record)))
            except ToolError as e:
                results.put((False, e))

        worker = threading.Thread(target=target, name=f"tool-{record.name}", daemon=True)
        worker.start()
        try:
            ok, value = results.get(timeout=self.tool_timeout)
        except queue.Empty:
            raise ToolExecutionFailed(record.name, f"timed out after {self.tool_timeout:g}s")
        if not ok:
            raise value
        return value

    def _execute_tools(self, tool_calls: List[ToolCallRecord], sink: LiveTextSink,
                       outcome: TurnOutcome):
        """Serially, in finalization order; every call gets exactly one tool turn."""
        for record in tool_calls:
            if self._stop.is_set():
                self.history.add_tool_result(record.id, "Error: cancelled by user")
                continue

            try:
                result = self._run_tool(record)
            except ToolError as e:
                message = f"Error: {e}"
                logger.warning(f"Tool call {record.id} failed: {e}")
                outcome.tool_errors.append((record, str(e)))
                self.history.add_tool_result(record.id, message)
                sink.on_tool_executed(record.id, message, False)
                sink.on_notice(f"Tool {record.name} failed: {e}")
                continue

            outcome.tool_results.append(result)
            if result.payload is not None:
                self.last_tool_payloads[result.name] = result.payload
            self.history.add_tool_result(record.id, result.content)
            sink.on_tool_executed(record.id, summarize_tool_result(result.content), True)

    def _finish_cancelled(self, text: str, outcome: TurnOutcome) -> TurnOutcome:
        logger.info("Turn cancelled")
        if text:
            self.history.add_assistant(text)
        outcome.text = text
        outcome.cancelled = True
        return outcome
