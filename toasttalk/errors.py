"""
Error taxonomy.

Transport failures and the loop ceiling escape the orchestrator; tool
errors are converted into tool turns so the model can react to them.
"""

from typing import Optional


class ToastTalkError(Exception):
    """Base class for all toasttalk errors."""


class ConfigError(ToastTalkError):
    """Configuration file missing or unparseable."""


class StreamTransportError(ToastTalkError):
    """HTTP non-200 or connection failure while streaming a completion."""

    def __init__(self, message: str, status_code: Optional[int] = None, body: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class MalformedFrame(ToastTalkError):
    """An SSE payload that is not usable JSON. Always skipped, never fatal."""


class ToolError(ToastTalkError):
    """Base for failures that become tool-role turns."""


class ToolNotFound(ToolError):
    def __init__(self, name: str):
        super().__init__(f"Tool not found: {name}")
        self.name = name


class InvalidToolArguments(ToolError):
    def __init__(self, name: str, detail: str):
        super().__init__(f"Invalid arguments for {name}: {detail}")
        self.name = name
        self.detail = detail


class ToolExecutionFailed(ToolError):
    def __init__(self, name: str, reason: str):
        super().__init__(f"Tool execution failed ({name}): {reason}")
        self.name = name
        self.reason = reason


class LocationUnavailable(ToastTalkError):
    """The location collaborator could not produce a position."""


class RouteSearchError(ToastTalkError):
    """The transit backend failed or found no usable stops/routes."""


class ConversationLoopLimitExceeded(ToastTalkError):
    def __init__(self, max_iterations: int):
        super().__init__(
            f"Conversation did not settle after {max_iterations} model requests"
        )
        self.max_iterations = max_iterations
