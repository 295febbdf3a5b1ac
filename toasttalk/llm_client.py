import logging
import threading
from typing import Iterator, List, Optional

import requests

from toasttalk.errors import StreamTransportError


class StreamingLLMClient:
    """Client for an OpenAI-compatible /v1/chat/completions endpoint (SSE streaming)"""

    def __init__(self, endpoint: str, model: str, api_key: str = "",
                 temperature: float = 0.7, max_tokens: int = 1000,
                 connect_timeout: float = 10, read_timeout: float = 60,
                 session: Optional[requests.Session] = None):
        self.endpoint = endpoint
        self.model = model
        self.api_key = api_key
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.timeout = (connect_timeout, read_timeout)
        self.session = session or requests.Session()
        self.logger = logging.getLogger("toasttalk.llm_client")
        self._lock = threading.Lock()
        self._response: Optional[requests.Response] = None
        self._cancelled = False

    @classmethod
    def from_config(cls, config) -> "StreamingLLMClient":
        return cls(
            endpoint=config.get("llm.endpoint"),
            model=config.get("llm.model"),
            api_key=config.api_key,
            temperature=config.get("llm.temperature", 0.7),
            max_tokens=config.get("llm.max_tokens", 1000),
            connect_timeout=config.get("llm.connect_timeout", 10),
            read_timeout=config.get("llm.read_timeout", 60),
        )

    def build_payload(self, messages: List[dict], tools: List[dict]) -> dict:
        payload = {
            "model": self.model,
            "messages": messages,
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
            "stream": True,
        }
        if tools:
            payload["tools"] = tools
            payload["tool_choice"] = "auto"
        return payload

    def stream_lines(self, messages: List[dict], tools: List[dict]) -> Iterator[bytes]:
        """POST the request and yield raw SSE lines as they arrive.

        Raises:
            StreamTransportError: non-200 status or connection failure
        """
        if self._cancelled:
            self.logger.info("Stream cancelled before the request was sent")
            return

        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"

        payload = self.build_payload(messages, tools)
        self.logger.info(
            f"Streaming request: {len(messages)} msgs, {len(tools)} tools, model={self.model}"
        )

        try:
            response = self.session.post(
                self.endpoint, json=payload, headers=headers,
                timeout=self.timeout, stream=True,
            )
        except requests.RequestException as e:
            self.logger.error(f"LLM connection error: {e}")
            raise StreamTransportError(f"Connection failed: {e}") from e

        if response.status_code != 200:
            body = response.text
            response.close()
            self.logger.error(f"LLM server rejected request ({response.status_code}): {body[:500]}")
            raise StreamTransportError(
                f"HTTP {response.status_code} from {self.endpoint}",
                status_code=response.status_code, body=body,
            )

        with self._lock:
            self._response = response
        try:
            for line in response.iter_lines(chunk_size=None):
                if self._cancelled:
                    break
                yield line
        except (requests.RequestException, AttributeError, ValueError) as e:
            # Closing the response from stop() surfaces here as a read error
            if not self._cancelled:
                self.logger.error(f"LLM streaming error: {e}")
                raise StreamTransportError(f"Stream interrupted: {e}") from e
        finally:
            with self._lock:
                self._response = None
            response.close()

    def cancel(self):
        """Abort the in-flight stream from another thread."""
        self._cancelled = True
        with self._lock:
            response = self._response
        if response is not None:
            self.logger.info("Cancelling in-flight LLM stream")
            response.close()

    def clear_cancel(self):
        """Re-arm after a cancel. The owner calls this at the start of a turn."""
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled
