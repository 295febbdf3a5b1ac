"""Builders for SSE frames and a scripted stand-in for the LLM client."""

import json


def frame(delta=None, finish_reason=None):
    """One ``data:`` line shaped like an OpenAI streaming chunk."""
    choice = {"index": 0, "delta": delta or {}, "finish_reason": finish_reason}
    return "data: " + json.dumps({"id": "chatcmpl-test", "choices": [choice]})


def text_frames(*pieces, finish="stop"):
    lines = [frame({"role": "assistant", "content": ""})]
    lines.extend(frame({"content": p}) for p in pieces)
    lines.append(frame({}, finish_reason=finish))
    lines.append("data: [DONE]")
    return lines


def tool_delta(index, call_id=None, name=None, arguments=None):
    function = {}
    if name is not None:
        function["name"] = name
    if arguments is not None:
        function["arguments"] = arguments
    call = {"index": index, "function": function}
    if call_id is not None:
        call["id"] = call_id
        call["type"] = "function"
    return frame({"tool_calls": [call]})


def tool_call_frames(*calls, finish="tool_calls"):
    """calls: (call_id, name, [argument fragments]) tuples, one per index."""
    lines = []
    for index, (call_id, name, fragments) in enumerate(calls):
        lines.append(tool_delta(index, call_id, name))
        lines.extend(tool_delta(index, arguments=f) for f in fragments)
    if finish:
        lines.append(frame({}, finish_reason=finish))
    lines.append("data: [DONE]")
    return lines


class FakeLLMClient:
    """Replays one scripted line list per request and records what was sent."""

    def __init__(self, responses):
        self.responses = list(responses)
        self.requests = []
        self.cancelled = False

    def stream_lines(self, messages, tools):
        self.requests.append({"messages": messages, "tools": tools})
        if not self.responses:
            raise AssertionError("unexpected extra request to the model")
        script = self.responses.pop(0)
        if isinstance(script, Exception):
            raise script
        return self._replay(script)

    def _replay(self, lines):
        for line in lines:
            if self.cancelled:
                return
            yield line

    def cancel(self):
        self.cancelled = True

    def clear_cancel(self):
        self.cancelled = False
