#!/usr/bin/env python3
"""
Text console for toasttalk.

Stands in for the speech front end: each line typed is handed to the
orchestrator as a user turn, and the reply streams back to stdout.

Usage:
    python3 -m toasttalk                      # config.yaml / $TOASTTALK_CONFIG
    python3 -m toasttalk --config my.yaml
    python3 -m toasttalk --no-code            # never execute run_ blocks
    echo "what time is it" | python3 -m toasttalk

Commands: /reset clears the conversation, /quit exits.
Ctrl-C while a reply is streaming stops it (and any running code).
"""

import argparse
import sys
import threading

from toasttalk.code_runner import DISPLAY_NAMES
from toasttalk.config import load_config
from toasttalk.errors import ConfigError, ConversationLoopLimitExceeded, StreamTransportError
from toasttalk.logger import get_logger
from toasttalk.orchestrator import ConversationOrchestrator
from toasttalk.sink import LiveTextSink


class ConsoleSink(LiveTextSink):
    """Writes streamed text and tool/code activity to a terminal."""

    def __init__(self, out=None):
        self.out = out or sys.stdout

    def _write(self, text):
        self.out.write(text)
        self.out.flush()

    def on_chunk(self, text):
        self._write(text)

    def on_tool_call_observed(self, record):
        self._write(f"\n[tool] {record.name} ...\n")

    def on_tool_executed(self, call_id, summary, success):
        if success:
            self._write(f"[tool] {summary}\n")

    def on_code_executed(self, result):
        status = "ok" if result.succeeded else f"exit {result.exit_code}"
        self._write(
            f"\n[{DISPLAY_NAMES.get(result.language, result.language)}] {status} "
            f"({result.duration:.2f}s)\n"
        )
        if result.stdout:
            self._write(result.stdout + "\n")

    def on_notice(self, message):
        self._write(f"\n! {message}\n")


def _run_turn(orchestrator, text, sink):
    """Run send() on a worker so Ctrl-C on the main thread can stop it."""
    errors = []

    def target():
        try:
            orchestrator.send(text, sink)
        except (StreamTransportError, ConversationLoopLimitExceeded) as e:
            errors.append(e)

    worker = threading.Thread(target=target, name="toasttalk-turn", daemon=True)
    worker.start()
    try:
        while worker.is_alive():
            worker.join(timeout=0.2)
    except KeyboardInterrupt:
        orchestrator.stop()
        worker.join()
        sink.on_notice("stopped")
    for e in errors:
        sink.on_notice(str(e))


def main(argv=None):
    parser = argparse.ArgumentParser(description="toasttalk text console")
    parser.add_argument("--config", help="Path to a YAML config file")
    parser.add_argument("--no-code", action="store_true", help="Do not execute run_ code blocks")
    parser.add_argument("--model", help="Override llm.model")
    args = parser.parse_args(argv)

    try:
        config = load_config(args.config)
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2
    if args.no_code:
        config.set("code_execution.enabled", False)
    if args.model:
        config.set("llm.model", args.model)

    logger = get_logger("toasttalk.console", config)
    orchestrator = ConversationOrchestrator.from_config(config)
    logger.info(f"Console ready: model={config.get('llm.model')}, tools={orchestrator.registry.names}")

    sink = ConsoleSink()
    interactive = sys.stdin.isatty()
    while True:
        if interactive:
            sys.stdout.write("\n> ")
            sys.stdout.flush()
        line = sys.stdin.readline()
        if not line:
            break
        text = line.strip()
        if not text:
            continue
        if text == "/quit":
            break
        if text == "/reset":
            orchestrator.reset()
            sink.on_notice("conversation cleared")
            continue
        _run_turn(orchestrator, text, sink)
        sys.stdout.write("\n")
    return 0


if __name__ == "__main__":
    sys.exit(main())
