"""
Configuration

Nested settings with dotted-key access (``config.get("llm.model")``).
Built-in defaults are deep-merged with an optional YAML file, and the
API key is read lazily from the environment (.env is loaded first).
"""

import copy
import os
from pathlib import Path
from typing import Any, Optional

import yaml
from dotenv import load_dotenv

from toasttalk.errors import ConfigError


DEFAULTS = {
    "llm": {
        "endpoint": "https://api.openai.com/v1/chat/completions",
        "model": "gpt-4o",
        "api_key_env": "OPENAI_API_KEY",
        "temperature": 0.7,
        "max_tokens": 1000,
        "connect_timeout": 10,
        "read_timeout": 60,
    },
    "conversation": {
        "max_iterations": 8,
        "tool_timeout": 30,
    },
    "code_execution": {
        "enabled": True,
        "timeout": 30,
        "kill_grace": 2,
        "interpreters": {
            "python": "python3",
            "bash": "/bin/bash",
            "javascript": "node",
        },
    },
    "transit": {
        "base_url": "https://v6.db.transport.rest",
        "num_results": 3,
        "nearby_radius": 1000,
        "request_timeout": 15,
    },
    "location": {
        "current": None,   # [lat, lon] or None when unknown
        "places": {
            "home": [48.107662, 11.5338275],
            "university": [48.1493705, 11.5690651],
        },
    },
    "assistant": {
        "user_name": "",
    },
    "logging": {
        "level": "INFO",
        "file": None,
        "console": True,
    },
}


def _deep_merge(base: dict, override: dict) -> dict:
    """Merge override into a copy of base, recursing into nested dicts."""
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


class Config:
    """Dotted-key view over a nested settings dict."""

    def __init__(self, data: Optional[dict] = None, source: Optional[Path] = None):
        self._data = _deep_merge(DEFAULTS, data or {})
        self.source = source

    def get(self, key: str, default: Any = None) -> Any:
        """
        Look up a dotted key

        Args:
            key: Dotted path, e.g. "code_execution.timeout"
            default: Returned when any segment is missing or the value is None

        Returns:
            The configured value or default
        """
        node = self._data
        for part in key.split("."):
            if not isinstance(node, dict) or part not in node:
                return default
            node = node[part]
        return default if node is None else node

    def set(self, key: str, value: Any) -> None:
        """Set a dotted key, creating intermediate sections as needed."""
        parts = key.split(".")
        node = self._data
        for part in parts[:-1]:
            node = node.setdefault(part, {})
        node[parts[-1]] = value

    @property
    def api_key(self) -> str:
        """Read lazily; .env may not be loaded at construction time."""
        env_name = self.get("llm.api_key_env", "OPENAI_API_KEY")
        return os.environ.get(env_name, "")

    def as_dict(self) -> dict:
        return copy.deepcopy(self._data)

    def __repr__(self):
        return f"Config(source={str(self.source) if self.source else None!r})"


def load_config(path: Optional[str] = None) -> Config:
    """
    Load configuration from YAML

    Resolution order: explicit path, $TOASTTALK_CONFIG, ./config.yaml.
    A missing default file is fine (defaults only); a missing explicit
    path or an unparseable file raises ConfigError.
    """
    load_dotenv()

    explicit = path or os.environ.get("TOASTTALK_CONFIG")
    config_path = Path(explicit) if explicit else Path.cwd() / "config.yaml"

    if not config_path.exists():
        if explicit:
            raise ConfigError(f"Config file not found: {config_path}")
        return Config()

    try:
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {config_path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"Top level of {config_path} must be a mapping")

    return Config(data, source=config_path)
