"""
Log handler setup for the ``toasttalk`` logger hierarchy.

Library modules only call ``logging.getLogger("toasttalk.<module>")``.
An entry point calls get_logger() with the loaded config, which attaches
handlers to the ``toasttalk`` root once per process.
"""

import logging
import os
import sys
from pathlib import Path


ROOT_LOGGER = "toasttalk"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

_configured = False


def configure(config=None) -> logging.Logger:
    """Attach console/file handlers from ``logging.*`` settings. Idempotent."""
    global _configured
    root = logging.getLogger(ROOT_LOGGER)
    if _configured:
        return root

    get = config.get if config is not None else (lambda key, default=None: default)
    level = getattr(logging, str(get("logging.level", "INFO")).upper(), logging.INFO)
    log_file = get("logging.file")
    to_console = get("logging.console", True)

    # stdout carries the conversation itself
    if os.environ.get("TOASTTALK_LOG_FILE_ONLY"):
        to_console = False
        log_file = log_file or str(Path.cwd() / "logs" / "console.log")

    handlers = []
    if to_console:
        handlers.append(logging.StreamHandler(sys.stdout))
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file))

    formatter = logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")
    for handler in handlers:
        handler.setFormatter(formatter)
        root.addHandler(handler)
    root.setLevel(level)
    root.propagate = False

    _configured = True
    return root


def get_logger(name: str, config=None) -> logging.Logger:
    configure(config)
    return logging.getLogger(name)
