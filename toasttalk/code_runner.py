"""
Code Sandbox Runner

Finds ```run_<language> fenced blocks in assistant text and executes
them as subprocesses. Plain fences (```python) are illustrative and
never executed.

"Sandbox" is a best-effort label only: code runs with the user's full
environment and permissions. SafetyChecker exists as the hook point for
filtering, and currently reports every block as safe.
"""

import ast
import logging
import os
import re
import shutil
import signal
import subprocess
import sys
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, List, Optional

logger = logging.getLogger("toasttalk.code_runner")


LANGUAGE_ALIASES = {
    "python": "python", "py": "python", "python3": "python",
    "bash": "bash", "sh": "bash", "shell": "bash",
    "javascript": "javascript", "js": "javascript", "node": "javascript",
}

DISPLAY_NAMES = {"python": "Python", "bash": "Bash", "javascript": "JavaScript"}

# Opening fence must carry the run_ marker; the closing fence ends the block.
_RUN_FENCE = re.compile(r"```run_([A-Za-z0-9_+-]+)[ \t]*\r?\n(.*?)```", re.DOTALL)


@dataclass(frozen=True)
class CodeBlock:
    language: str
    source_code: str
    line_number: int = 1


@dataclass(frozen=True)
class ExecutionResult:
    language: str
    source_code: str
    stdout: str
    stderr: Optional[str]
    exit_code: int
    duration: float
    started_at: datetime = field(default_factory=datetime.now)
    timed_out: bool = False

    @property
    def succeeded(self) -> bool:
        return self.exit_code == 0

    def formatted(self) -> str:
        """Result block fed back to the model."""
        body = self.stdout
        if self.stderr:
            body += ("\n" if body else "") + f"Error: {self.stderr}"
        return (
            f"{DISPLAY_NAMES.get(self.language, self.language)} result:\n```\n{body}\n```\n"
            f"Exit code: {self.exit_code}, duration: {self.duration:.2f}s"
        )


@dataclass(frozen=True)
class SafetyCheckResult:
    is_safe: bool
    violations: List[str] = field(default_factory=list)


class SafetyChecker:
    """Static checks on code before it runs. Arbitrary execution is accepted, so nothing is flagged."""

    def check(self, code: str, language: str) -> SafetyCheckResult:
        return SafetyCheckResult(is_safe=True)


# ---------------------------------------------------------------------------
# Extraction
# ---------------------------------------------------------------------------

def extract_code_blocks(text: str) -> List[CodeBlock]:
    """Return run_ fenced blocks in order of appearance."""
    blocks = []
    for match in _RUN_FENCE.finditer(text):
        tag = match.group(1).lower()
        language = LANGUAGE_ALIASES.get(tag)
        if language is None:
            logger.warning(f"Unrecognized run_ language tag: {tag}")
            continue
        line_number = text.count("\n", 0, match.start()) + 1
        blocks.append(CodeBlock(language, match.group(2), line_number))
    logger.debug(f"Extracted {len(blocks)} runnable code blocks")
    return blocks


def add_implicit_print(code: str) -> str:
    """Print a trailing bare expression the way an interactive shell would.

    Only a top-level expression statement that is not a call is rewritten;
    code that does not parse is returned unchanged.
    """
    source = code.strip()
    try:
        tree = ast.parse(source)
    except SyntaxError:
        return source
    if not tree.body:
        return source

    last = tree.body[-1]
    if not isinstance(last, ast.Expr) or last.col_offset != 0:
        return source
    if isinstance(last.value, (ast.Call, ast.Await, ast.Yield, ast.YieldFrom)):
        return source

    expression = ast.get_source_segment(source, last)
    if expression is None:
        return source
    lines = source.splitlines()
    rewritten = lines[:last.lineno - 1] + [f"print({expression})"] + lines[last.end_lineno:]
    return "\n".join(rewritten)


# ---------------------------------------------------------------------------
# Execution
# ---------------------------------------------------------------------------

class CodeSandboxRunner:
    """Runs extracted blocks one at a time, keeping a session history."""

    def __init__(self, config=None, safety_checker: Optional[SafetyChecker] = None):
        get = config.get if config is not None else (lambda key, default=None: default)
        self.timeout = float(get("code_execution.timeout", 30))
        self.kill_grace = float(get("code_execution.kill_grace", 2))
        self.interpreters = {
            "python": get("code_execution.interpreters.python", "python3"),
            "bash": get("code_execution.interpreters.bash", "/bin/bash"),
            "javascript": get("code_execution.interpreters.javascript", "node"),
        }
        self.safety_checker = safety_checker or SafetyChecker()
        self.history: List[ExecutionResult] = []
        self._lock = threading.Lock()
        self._process: Optional[subprocess.Popen] = None
        self._cancelled = False

    def extract(self, text: str) -> List[CodeBlock]:
        return extract_code_blocks(text)

    def _executable(self, language: str) -> str:
        configured = self.interpreters[language]
        resolved = shutil.which(configured)
        if resolved:
            return resolved
        if language == "python":
            return sys.executable
        return configured

    def _command(self, block: CodeBlock) -> List[str]:
        executable = self._executable(block.language)
        if block.language == "python":
            return [executable, "-c", add_implicit_print(block.source_code)]
        if block.language == "javascript":
            return [executable, "-e", block.source_code]
        return [executable, "-c", block.source_code]

    def _kill(self, proc: subprocess.Popen):
        """Forced termination of the process and everything it spawned."""
        try:
            if os.name == "posix":
                os.killpg(proc.pid, signal.SIGKILL)
            else:
                proc.kill()
        except (ProcessLookupError, PermissionError):
            pass

    def run(self, block: CodeBlock, timeout: Optional[float] = None) -> ExecutionResult:
        """Execute one block. Never raises for code failures; see exit_code."""
        timeout = self.timeout if timeout is None else timeout
        safety = self.safety_checker.check(block.source_code, block.language)
        if not safety.is_safe:
            logger.warning(f"Safety check flagged {block.language} block: {safety.violations}")

        argv = self._command(block)
        env = dict(os.environ)
        if block.language == "python":
            env.setdefault("MPLBACKEND", "Agg")

        started_at = datetime.now()
        start = time.monotonic()
        try:
            proc = subprocess.Popen(
                argv,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                stdin=subprocess.DEVNULL,
                text=True,
                env=env,
                start_new_session=(os.name == "posix"),
            )
        except OSError as e:
            logger.error(f"Could not start {argv[0]}: {e}")
            return ExecutionResult(
                block.language, block.source_code, "", f"Failed to start {argv[0]}: {e}",
                -1, time.monotonic() - start, started_at,
            )

        with self._lock:
            self._process = proc

        timed_out = False
        try:
            stdout, stderr = proc.communicate(timeout=timeout)
        except subprocess.TimeoutExpired:
            timed_out = True
            logger.warning(f"{block.language} block exceeded {timeout}s, killing pid {proc.pid}")
            self._kill(proc)
            try:
                stdout, stderr = proc.communicate(timeout=self.kill_grace)
            except subprocess.TimeoutExpired:
                proc.kill()
                proc.wait()
                stdout, stderr = "", ""
        finally:
            with self._lock:
                self._process = None

        stderr = (stderr or "").strip()
        if timed_out:
            note = f"Timed out after {timeout:g}s"
            stderr = f"{stderr}\n{note}" if stderr else note

        result = ExecutionResult(
            language=block.language,
            source_code=block.source_code,
            stdout=(stdout or "").strip(),
            stderr=stderr or None,
            exit_code=proc.returncode if proc.returncode is not None else -1,
            duration=time.monotonic() - start,
            started_at=started_at,
            timed_out=timed_out,
        )
        logger.info(
            f"Executed {block.language} block (line {block.line_number}): "
            f"exit={result.exit_code}, {result.duration:.2f}s"
        )
        return result

    def process(self, text: str,
                on_result: Optional[Callable[[ExecutionResult], None]] = None) -> List[ExecutionResult]:
        """Extract and run every run_ block in text, in order."""
        results = []
        for block in self.extract(text):
            if self._cancelled:
                logger.info("Code execution cancelled, skipping remaining blocks")
                break
            result = self.run(block)
            results.append(result)
            self.history.append(result)
            if on_result is not None:
                on_result(result)
        return results

    def cancel(self):
        """Kill the in-flight process (if any) and skip queued blocks."""
        self._cancelled = True
        with self._lock:
            proc = self._process
        if proc is not None and proc.poll() is None:
            logger.info(f"Cancelling code execution (pid {proc.pid})")
            self._kill(proc)

    def clear_cancel(self):
        """Re-arm after a cancel. The owner calls this at the start of a turn."""
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled


def format_feedback(results: List[ExecutionResult]) -> str:
    """Single feedback message describing every result."""
    parts = ["Code execution results:"]
    parts.extend(result.formatted() for result in results)
    return "\n\n".join(parts)
