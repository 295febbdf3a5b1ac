"""
Stream Event Decoder

Parses the Server-Sent-Events body of a streamed chat completion into
typed events. One decoder per request: the underlying line iterator is
consumed as it goes, so a decoder cannot be replayed.

Frame handling:
  - ``data: <json>``  -> text / tool-call / finish-reason events
  - ``data: [DONE]``  -> clean end of stream
  - anything else     -> ignored (comments, keep-alives, event: lines)
  - unparseable JSON  -> skipped (partial writes happen)
"""

import json
import logging
from typing import Iterable, Iterator, List, Union

from toasttalk.errors import MalformedFrame
from toasttalk.events import FinishReason, StreamEvent, TextDelta, ToolCallDelta

logger = logging.getLogger("toasttalk.stream_decoder")

DATA_PREFIX = "data:"
DONE_TOKEN = "[DONE]"


def _parse_payload(data: str) -> dict:
    """Parse one frame payload and return choices[0]."""
    try:
        chunk = json.loads(data)
    except json.JSONDecodeError as e:
        raise MalformedFrame(f"not JSON: {e}") from e
    if not isinstance(chunk, dict):
        raise MalformedFrame("payload is not an object")
    choices = chunk.get("choices")
    if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
        raise MalformedFrame("missing choices[0]")
    return choices[0]


def _tool_call_deltas(raw_calls) -> List[ToolCallDelta]:
    """Validate delta.tool_calls[] into ToolCallDelta values."""
    deltas = []
    if not isinstance(raw_calls, list):
        return deltas
    for position, raw in enumerate(raw_calls):
        if not isinstance(raw, dict):
            continue
        index = raw.get("index", position)
        if not isinstance(index, int):
            index = position
        func = raw.get("function") or {}
        if not isinstance(func, dict):
            func = {}
        deltas.append(ToolCallDelta(
            index=index,
            id=raw.get("id") or None,
            name=func.get("name") or None,
            arguments=func.get("arguments") or None,
        ))
    return deltas


def decode_frame(line: Union[str, bytes]) -> List[StreamEvent]:
    """
    Decode a single SSE line

    Returns:
        Events for the frame, in order: text, tool-call deltas, finish reason.
        Empty list for lines that carry nothing.

    Raises:
        MalformedFrame: payload could not be parsed
    """
    if isinstance(line, bytes):
        line = line.decode("utf-8", errors="replace")
    line = line.strip()
    if not line.startswith(DATA_PREFIX):
        return []
    data = line[len(DATA_PREFIX):].strip()

    choice = _parse_payload(data)
    events: List[StreamEvent] = []

    delta = choice.get("delta") or {}
    if isinstance(delta, dict):
        content = delta.get("content")
        if isinstance(content, str) and content:
            events.append(TextDelta(content))
        events.extend(_tool_call_deltas(delta.get("tool_calls")))

    finish_reason = choice.get("finish_reason")
    if isinstance(finish_reason, str) and finish_reason:
        events.append(FinishReason(finish_reason))

    return events


class StreamEventDecoder:
    """Lazy, single-use iterator of StreamEvents over SSE lines."""

    def __init__(self, lines: Iterable[Union[str, bytes]]):
        self._lines = lines
        self._started = False
        self.finished_cleanly = False
        self.skipped_frames = 0

    def __iter__(self) -> Iterator[StreamEvent]:
        if self._started:
            raise RuntimeError("StreamEventDecoder is single-use; create a new one per request")
        self._started = True
        return self._events()

    def _events(self) -> Iterator[StreamEvent]:
        for line in self._lines:
            if not line:
                continue
            text = line.decode("utf-8", errors="replace") if isinstance(line, bytes) else line
            stripped = text.strip()
            if stripped.startswith(DATA_PREFIX) and stripped[len(DATA_PREFIX):].strip() == DONE_TOKEN:
                self.finished_cleanly = True
                return
            try:
                events = decode_frame(stripped)
            except MalformedFrame as e:
                self.skipped_frames += 1
                logger.debug(f"Skipping malformed SSE frame: {e}")
                continue
            yield from events
