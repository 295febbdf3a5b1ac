"""Tool definition: get_time (current local time, optionally in another timezone)."""

from datetime import datetime
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

TOOL_NAME = "get_time"

SCHEMA = {
    "type": "function",
    "function": {
        "name": "get_time",
        "description": (
            "Get the current time and date. Use for any question about the "
            "time, today's date, the weekday, or the time in another city."
        ),
        "parameters": {
            "type": "object",
            "properties": {
                "timezone": {
                    "type": "string",
                    "description": "IANA timezone such as 'Europe/Berlin'. Omit for local time.",
                },
            },
            "required": [],
        },
    },
}

SYSTEM_PROMPT_RULE = "For questions about the current time or date, call get_time."


def build_handler(context):
    def handler(args: dict) -> dict:
        tz_name = args.get("timezone")
        if tz_name:
            try:
                now = datetime.now(ZoneInfo(tz_name))
            except (ZoneInfoNotFoundError, ValueError):
                raise ValueError(f"Unknown timezone '{tz_name}'")
        else:
            now = datetime.now().astimezone()
        return {
            "time": now.strftime("%H:%M"),
            "date": now.strftime("%A, %B %d, %Y"),
            "timezone": tz_name or str(now.tzinfo),
            "iso": now.isoformat(timespec="seconds"),
        }

    return handler
