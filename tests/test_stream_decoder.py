import pytest

from toasttalk.errors import MalformedFrame
from toasttalk.events import FinishReason, TextDelta, ToolCallDelta
from toasttalk.stream_decoder import StreamEventDecoder, decode_frame

from sse_helpers import frame, text_frames, tool_delta


@pytest.mark.parametrize("pieces", [
    ["Hello, world!"],
    ["Hel", "lo, ", "world", "!"],
    ["H", "e", "l", "l", "o", ",", " ", "w", "o", "r", "l", "d", "!"],
    ["Grüße ", "aus ", "München 🚊"],
])
def test_text_deltas_concatenate_to_content(pieces):
    events = list(StreamEventDecoder(text_frames(*pieces)))
    text = "".join(e.text for e in events if isinstance(e, TextDelta))
    assert text == "".join(pieces)


def test_events_keep_frame_order():
    lines = [
        frame({"content": "a"}),
        tool_delta(0, "c1", "get_time"),
        frame({"content": "b"}),
        frame({}, finish_reason="stop"),
    ]
    events = list(StreamEventDecoder(lines))
    assert events == [
        TextDelta("a"),
        ToolCallDelta(index=0, id="c1", name="get_time"),
        TextDelta("b"),
        FinishReason("stop"),
    ]


def test_done_token_ends_stream():
    lines = text_frames("one") + [frame({"content": "after done"})]
    decoder = StreamEventDecoder(lines)
    events = list(decoder)
    assert TextDelta("after done") not in events
    assert decoder.finished_cleanly


def test_stream_closure_without_done_is_fine():
    decoder = StreamEventDecoder([frame({"content": "partial"})])
    assert list(decoder) == [TextDelta("partial")]
    assert not decoder.finished_cleanly


def test_malformed_frames_are_skipped():
    lines = [
        frame({"content": "a"}),
        'data: {"choices": [{"delta": {"content": "tru',
        "data: not json at all",
        'data: {"object": "no choices"}',
        frame({"content": "b"}),
    ]
    decoder = StreamEventDecoder(lines)
    events = list(decoder)
    assert events == [TextDelta("a"), TextDelta("b")]
    assert decoder.skipped_frames == 3


def test_non_data_lines_are_ignored():
    lines = [": keep-alive", "", "event: message", frame({"content": "x"}), "id: 7"]
    assert list(StreamEventDecoder(lines)) == [TextDelta("x")]


def test_bytes_lines_are_decoded():
    lines = [frame({"content": "héllo"}).encode("utf-8"), b"data: [DONE]"]
    assert list(StreamEventDecoder(lines)) == [TextDelta("héllo")]


def test_prefix_without_space_is_accepted():
    line = frame({"content": "tight"}).replace("data: ", "data:", 1)
    assert decode_frame(line) == [TextDelta("tight")]


def test_tool_call_delta_fields():
    events = decode_frame(tool_delta(2, "call_9", "search_transit_route", '{"from'))
    assert events == [
        ToolCallDelta(index=2, id="call_9", name="search_transit_route", arguments='{"from'),
    ]
    assert events[0].opens_call


def test_multiple_tool_deltas_in_one_frame():
    line = frame({"tool_calls": [
        {"index": 0, "function": {"arguments": "{}"}},
        {"index": 1, "id": "c2", "function": {"name": "get_time"}},
    ]})
    events = decode_frame(line)
    assert [e.index for e in events] == [0, 1]
    assert not events[0].opens_call
    assert events[1].opens_call


def test_missing_index_defaults_to_position():
    line = frame({"tool_calls": [{"id": "c1", "function": {"name": "get_time"}}]})
    assert decode_frame(line)[0].index == 0


def test_finish_reason_follows_content_in_same_frame():
    events = decode_frame(frame({"content": "bye"}, finish_reason="stop"))
    assert events == [TextDelta("bye"), FinishReason("stop")]


def test_empty_content_emits_nothing():
    assert decode_frame(frame({"role": "assistant", "content": ""})) == []
    assert decode_frame(frame({"content": None})) == []


def test_decode_frame_raises_on_bad_json():
    with pytest.raises(MalformedFrame):
        decode_frame("data: {broken")


def test_decoder_is_single_use():
    decoder = StreamEventDecoder(text_frames("x"))
    list(decoder)
    with pytest.raises(RuntimeError):
        iter(decoder)


def test_decoder_is_lazy():
    consumed = []

    def lines():
        for line in text_frames("a", "b"):
            consumed.append(line)
            yield line

    events = iter(StreamEventDecoder(lines()))
    next(events)  # role frame emits nothing, first content frame emits "a"
    assert len(consumed) == 2
