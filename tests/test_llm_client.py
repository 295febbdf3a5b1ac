from unittest.mock import MagicMock

import pytest
import requests

from toasttalk.config import Config
from toasttalk.errors import StreamTransportError
from toasttalk.llm_client import StreamingLLMClient

MESSAGES = [{"role": "user", "content": "hi"}]
TOOLS = [{"type": "function", "function": {"name": "get_time", "description": "", "parameters": {}}}]


def _response(status=200, lines=(), text=""):
    resp = MagicMock()
    resp.status_code = status
    resp.text = text
    resp.iter_lines.return_value = iter(lines)
    return resp


def _client(response=None, **kwargs):
    session = MagicMock()
    if response is not None:
        session.post.return_value = response
    client = StreamingLLMClient("http://llm.local/v1/chat/completions", "test-model",
                                session=session, **kwargs)
    return client, session


def test_lines_are_yielded():
    resp = _response(lines=[b'data: {"choices": []}', b"", b"data: [DONE]"])
    client, _ = _client(resp)
    assert list(client.stream_lines(MESSAGES, TOOLS)) == [
        b'data: {"choices": []}', b"", b"data: [DONE]",
    ]
    resp.iter_lines.assert_called_once_with(chunk_size=None)
    resp.close.assert_called()


def test_request_shape():
    client, session = _client(_response(), api_key="sk-test", temperature=0.2, max_tokens=50)
    list(client.stream_lines(MESSAGES, TOOLS))

    args, kwargs = session.post.call_args
    assert args[0] == "http://llm.local/v1/chat/completions"
    assert kwargs["stream"] is True
    assert kwargs["headers"]["Authorization"] == "Bearer sk-test"
    assert kwargs["json"] == {
        "model": "test-model",
        "messages": MESSAGES,
        "temperature": 0.2,
        "max_tokens": 50,
        "stream": True,
        "tools": TOOLS,
        "tool_choice": "auto",
    }


def test_no_tools_means_no_tool_choice():
    client, session = _client(_response())
    list(client.stream_lines(MESSAGES, []))
    payload = session.post.call_args.kwargs["json"]
    assert "tools" not in payload
    assert "tool_choice" not in payload
    assert "Authorization" not in session.post.call_args.kwargs["headers"]


def test_non_200_raises_with_status_and_body():
    client, _ = _client(_response(status=401, text='{"error": "bad key"}'))
    with pytest.raises(StreamTransportError) as exc:
        list(client.stream_lines(MESSAGES, TOOLS))
    assert exc.value.status_code == 401
    assert "bad key" in exc.value.body


def test_connection_error():
    client, session = _client()
    session.post.side_effect = requests.ConnectionError("refused")
    with pytest.raises(StreamTransportError) as exc:
        list(client.stream_lines(MESSAGES, TOOLS))
    assert exc.value.status_code is None
    assert "refused" in str(exc.value)


def test_read_error_mid_stream():
    def broken_lines():
        yield b"data: first"
        raise requests.exceptions.ChunkedEncodingError("connection reset")

    resp = _response()
    resp.iter_lines.return_value = broken_lines()
    client, _ = _client(resp)

    received = []
    with pytest.raises(StreamTransportError):
        for line in client.stream_lines(MESSAGES, TOOLS):
            received.append(line)
    assert received == [b"data: first"]


def test_cancel_stops_iteration_and_closes_response():
    resp = _response(lines=[b"data: one", b"data: two", b"data: three"])
    client, _ = _client(resp)

    received = []
    for line in client.stream_lines(MESSAGES, TOOLS):
        received.append(line)
        client.cancel()
    assert received == [b"data: one"]
    assert client.cancelled
    resp.close.assert_called()


def test_from_config(monkeypatch):
    monkeypatch.setenv("TOASTTALK_TEST_KEY", "sk-env")
    config = Config({"llm": {"model": "local-llama", "api_key_env": "TOASTTALK_TEST_KEY",
                             "endpoint": "http://localhost:8080/v1/chat/completions"}})
    client = StreamingLLMClient.from_config(config)
    assert client.model == "local-llama"
    assert client.api_key == "sk-env"
    assert client.timeout == (10, 60)


def test_cancel_before_request_sends_nothing():
    client, session = _client(_response(lines=[b"data: one"]))
    client.cancel()
    assert list(client.stream_lines(MESSAGES, TOOLS)) == []
    session.post.assert_not_called()

    client.clear_cancel()
    assert list(client.stream_lines(MESSAGES, TOOLS)) == [b"data: one"]
