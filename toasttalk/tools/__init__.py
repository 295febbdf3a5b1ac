"""Built-in tool definitions.

Each public .py file in this package defines one tool with standardized
attributes, picked up by ToolRegistry.discover():
    TOOL_NAME: str                    -- OpenAI function name
    SCHEMA: dict                      -- OpenAI-compatible tool schema
    SYSTEM_PROMPT_RULE: str           -- Per-tool rule for the system prompt
    build_handler(context) -> handler -- binds collaborators from a ToolContext;
                                         handler(args) returns str, a JSON value
                                         or a ToolOutput, and raises on failure
"""
