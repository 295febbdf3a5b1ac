"""Tool Registry: name-keyed table of tools the model may call.

Built-in tools live in toasttalk/tools/, one module per tool, with
standardized attributes (see toasttalk/tools/__init__.py). A registry is
constructed once at startup, filled via register() or discover(), and
passed to each ConversationOrchestrator. After startup it is only read,
so one registry can serve several conversations.

    - register():                 add a ToolDescriptor (last registration wins)
    - describe():                 tool schemas for the request "tools" array
    - execute():                  parse arguments, dispatch, normalise the result
    - discover():                 import built-in tool modules, bind collaborators
    - build_tool_prompt_rules():  numbered rules for the system prompt
"""

import importlib
import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from toasttalk.conversation_state import ToolCallRecord
from toasttalk.errors import InvalidToolArguments, ToolExecutionFailed, ToolNotFound

logger = logging.getLogger("toasttalk.tool_registry")


@dataclass(frozen=True)
class ToolDescriptor:
    """A callable tool plus the JSON-schema the model sees."""
    name: str
    description: str
    parameters: dict
    executor: Callable[[dict], Any]
    system_prompt_rule: str = ""

    def schema(self) -> dict:
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
            },
        }


@dataclass(frozen=True)
class ToolOutput:
    """What an executor may return when it has more than text to hand back.

    ``content`` goes into the conversation history; ``payload`` is the full
    data for a presentation layer and never reaches the model.
    """
    content: Any
    payload: Any = None


@dataclass(frozen=True)
class ToolResult:
    """Outcome of one successful tool call."""
    call_id: str
    name: str
    content: str
    payload: Any = None


@dataclass
class ToolContext:
    """Collaborators bound into built-in tool handlers by discover()."""
    config: Any = None
    location: Any = None
    routes: Any = None
    extras: Dict[str, Any] = field(default_factory=dict)


def _to_text(value: Any) -> str:
    if isinstance(value, str):
        return value
    return json.dumps(value, ensure_ascii=False, default=str)


class ToolRegistry:
    """Name -> ToolDescriptor."""

    def __init__(self):
        self._tools: Dict[str, ToolDescriptor] = {}

    def __contains__(self, name: str) -> bool:
        return name in self._tools

    def __len__(self):
        return len(self._tools)

    @property
    def names(self) -> List[str]:
        return list(self._tools)

    def get(self, name: str) -> Optional[ToolDescriptor]:
        return self._tools.get(name)

    def register(self, descriptor: ToolDescriptor) -> None:
        if descriptor.name in self._tools:
            logger.info(f"Re-registering tool {descriptor.name}")
        self._tools[descriptor.name] = descriptor

    def describe(self) -> List[dict]:
        """Schemas in registration order, ready for the request body."""
        return [tool.schema() for tool in self._tools.values()]

    def execute(self, record: ToolCallRecord) -> ToolResult:
        """Run one finalized tool call.

        Raises:
            ToolNotFound: no tool registered under record.name
            InvalidToolArguments: arguments_text is not a JSON object
            ToolExecutionFailed: the executor raised
        """
        tool = self._tools.get(record.name)
        if tool is None:
            logger.warning(f"Unknown tool: {record.name}")
            raise ToolNotFound(record.name)

        raw = record.arguments_text.strip()
        try:
            arguments = json.loads(raw)
        except json.JSONDecodeError as e:
            raise InvalidToolArguments(record.name, f"{e.msg} in {raw!r}") from e
        if not isinstance(arguments, dict):
            raise InvalidToolArguments(record.name, "expected a JSON object")

        logger.info(f"Tool call: {record.name}({arguments})")
        try:
            output = tool.executor(arguments)
        except Exception as e:
            logger.error(f"Tool execution error ({record.name}): {e}")
            raise ToolExecutionFailed(record.name, str(e)) from e

        if isinstance(output, ToolOutput):
            return ToolResult(record.id, record.name, _to_text(output.content), output.payload)
        return ToolResult(record.id, record.name, _to_text(output), output)

    def build_tool_prompt_rules(self) -> str:
        """Assemble numbered system prompt rules for the registered tools."""
        rules = [
            "If a tool matches the user's request, call it rather than "
            "answering from memory. Tools return live data.",
        ]
        rules.extend(t.system_prompt_rule for t in self._tools.values() if t.system_prompt_rule)
        rules.append(
            "If a tool returns an error, read it, fix the arguments and try "
            "again, or explain the problem to the user."
        )
        numbered = "\n".join(f"{i + 1}. {r}" for i, r in enumerate(rules))
        return "You have access to tools. RULES:\n" + numbered

    # -----------------------------------------------------------------------
    # Built-in tool discovery
    # -----------------------------------------------------------------------

    def discover(self, context: ToolContext, package: str = "toasttalk.tools") -> int:
        """Import every public module of the tools package and register it.

        Each module provides TOOL_NAME, SCHEMA, SYSTEM_PROMPT_RULE and
        build_handler(context) -> callable(args). Returns the number of
        tools registered.
        """
        pkg = importlib.import_module(package)
        tools_dir = Path(pkg.__file__).parent
        count = 0
        for path in sorted(tools_dir.glob("*.py")):
            if path.name.startswith("_"):
                continue
            mod_name = f"{package}.{path.stem}"
            mod = importlib.import_module(mod_name)
            missing = [a for a in ("TOOL_NAME", "SCHEMA", "build_handler") if not hasattr(mod, a)]
            if missing:
                logger.error(f"Tool module {mod_name} missing required attributes: {missing}")
                continue
            function = mod.SCHEMA["function"]
            self.register(ToolDescriptor(
                name=mod.TOOL_NAME,
                description=function.get("description", ""),
                parameters=function.get("parameters", {"type": "object", "properties": {}}),
                executor=mod.build_handler(context),
                system_prompt_rule=getattr(mod, "SYSTEM_PROMPT_RULE", ""),
            ))
            count += 1

        logger.info(f"Tool registry: {count} built-in tools discovered, {len(self)} registered")
        return count
