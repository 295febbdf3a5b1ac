"""System prompt assembly: persona, code execution convention, location hints, tool rules."""

from datetime import datetime

_BASE = (
    "You are a helpful voice assistant{user}. You can execute code to "
    "complete tasks: when a request needs computation, analysis, file or "
    "system work, write code and run it instead of only explaining it."
)

_CODE_EXECUTION = """\
## Executing code

Code blocks whose language tag starts with 'run_' are executed automatically
and the results are sent back to you:

```run_python
print("Hello, World!")
```

```run_bash
uname -a
```

```run_javascript
console.log(new Date());
```

Plain fences (```python, ```bash) are shown to the user and are NOT executed.
If code fails, read the error and try a different approach."""

_LOCATION = (
    "Locations: when the user means their current position, use the "
    "coordinates -999,-999 and the device location will be filled in."
)


def build_system_prompt(registry=None, places=None, user_name: str = "", now=None) -> str:
    """
    Assemble the system turn

    Args:
        registry: ToolRegistry whose tools get numbered rules (optional)
        places: {name: (lat, lon)} the model may refer to by name
        user_name: Name to address the user by
        now: datetime for the date line (defaults to now)
    """
    now = now or datetime.now()
    sections = [
        _BASE.format(user=f" for {user_name}" if user_name else ""),
        f"Today's date is {now.strftime('%B %d, %Y')}. Current time: {now.strftime('%H:%M')}.",
        _CODE_EXECUTION,
    ]

    location = _LOCATION
    for name, (lat, lon) in (places or {}).items():
        location += f"\n- '{name}' is at {lat},{lon}"
    sections.append(location)

    if registry is not None and len(registry):
        sections.append(registry.build_tool_prompt_rules())

    return "\n\n".join(sections)
