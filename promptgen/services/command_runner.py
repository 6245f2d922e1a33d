# promptgen/services/command_runner.py
import json
import os
import re
import shlex
import signal
import subprocess
import sys
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from loguru import logger
from pydantic import ValidationError

from ..config.paths import get_terminal_history_file
from ..config.schema import TerminalConfig, TerminalHistory
from ..core.exceptions import CommandSpawnError, EmptyCommandError
from ..core.models import CommandResult

TRUNCATION_LINE = "[... output truncated ...]"
TIMEOUT_NOTE = "[Command timed out after {secs:g}s and was killed]"
_ENV_KEY = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")
_IS_WINDOWS = sys.platform == "win32"

def parse_command_line(command_line: str) -> Tuple[Dict[str, str], List[str]]:
    """Splits leading KEY=VALUE tokens off a shell-like command line."""
    tokens = shlex.split(command_line)
    env: Dict[str, str] = {}
    while tokens:
        key, sep, value = tokens[0].partition("=")
        if not sep or not _ENV_KEY.fullmatch(key):
            break
        env[key] = value
        tokens.pop(0)
    if not tokens:
        raise EmptyCommandError(command=command_line)
    return env, tokens

def split_lines(text: str) -> List[str]:
    """Splits on "\\n" only; a trailing "\\r" is dropped and a final empty line is not counted."""
    lines = text.split("\n")
    if lines[-1] == "":
        lines.pop()
    return [line[:-1] if line.endswith("\r") else line for line in lines]

def head_and_tail(text: str, head: int, tail: int) -> str:
    """Keeps the first `head` and last `tail` lines; each kept line ends with a newline."""
    lines = split_lines(text)
    if len(lines) <= head + tail:
        kept = lines
    else:
        kept = lines[:head] + [TRUNCATION_LINE] + (lines[len(lines) - tail:] if tail else [])
    return "".join(f"{line}\n" for line in kept)

def _spawn_options() -> dict:
    # The child leads its own process group so a timeout can take down its descendants too
    if _IS_WINDOWS:
        return {"creationflags": subprocess.CREATE_NEW_PROCESS_GROUP}
    return {"start_new_session": True}

def _kill_process_tree(proc: subprocess.Popen) -> None:
    if _IS_WINDOWS:
        subprocess.run(["taskkill", "/T", "/F", "/PID", str(proc.pid)],
                       stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL, check=False)
    else:
        try:
            os.killpg(proc.pid, signal.SIGKILL)
        except ProcessLookupError:
            logger.debug(f"Process group {proc.pid} already gone")
    proc.kill()

def run_command(working_dir: Path, command_line: str, head: int = 1000, tail: int = 1000,
                timeout: Optional[float] = 25) -> CommandResult:
    """
    Runs a command in `working_dir` and returns its combined stdout+stderr, capped by lines.

    With a timeout, the child and every process it started are killed when it
    expires and the pipes are drained, so nothing is left behind; whatever was
    printed so far is returned.
    Raises CommandSpawnError if the program cannot be started.
    """
    env_overrides, argv = parse_command_line(command_line)
    env = {**os.environ, **env_overrides}
    logger.info(f"Starting command {argv} in {working_dir} (env overrides: {list(env_overrides)})")
    try:
        proc = subprocess.Popen(argv, cwd=working_dir, env=env,
                                stdin=subprocess.DEVNULL, stdout=subprocess.PIPE, stderr=subprocess.PIPE,
                                **_spawn_options())
    except OSError as e:
        logger.error(f"Failed to spawn {argv[0]}: {e}")
        raise CommandSpawnError(command=command_line, reason=str(e)) from e

    timed_out = False
    try:
        stdout, stderr = proc.communicate(timeout=timeout)
    except subprocess.TimeoutExpired:
        logger.warning(f"Timeout reached after {timeout}s, killing {argv[0]} (pid {proc.pid}) and its children")
        timed_out = True
        _kill_process_tree(proc)
        stdout, stderr = proc.communicate() # Drain and reap

    combined = stdout.decode("utf-8", errors="replace") + stderr.decode("utf-8", errors="replace")
    output = head_and_tail(combined, head, tail)
    if timed_out:
        output += TIMEOUT_NOTE.format(secs=timeout) + "\n"
    logger.info(f"Command finished: returncode={proc.returncode} timed_out={timed_out}")
    return CommandResult(output=output, returncode=proc.returncode, timed_out=timed_out)


class TerminalSession:
    """Last command, its captured output and a per-project command history."""

    def __init__(self, config: Optional[TerminalConfig] = None):
        config = config or TerminalConfig()
        self.command: str = ""
        self.output: str = ""
        self.last_command: str = "" # Set once a run has finished, even with no output
        self.head_lines = config.head_lines
        self.tail_lines = config.tail_lines
        self.timeout_secs = config.timeout_secs
        self.timeout_enabled = config.timeout_enabled
        self.max_history = config.max_history
        self.history: List[str] = []
        self.is_running = False
        self.history_file: Optional[Path] = None

    @property
    def effective_timeout(self) -> Optional[float]:
        return self.timeout_secs if self.timeout_enabled else None

    def load_history(self, root: Path) -> None:
        """Reads <root>/.prompt/terminal_history.json; missing or corrupt files yield an empty history."""
        self.history_file = get_terminal_history_file(root)
        self.history = []
        if not self.history_file.is_file():
            return
        try:
            data = TerminalHistory.model_validate_json(self.history_file.read_text(encoding="utf-8"))
        except (OSError, ValidationError) as e:
            logger.warning(f"Ignoring unreadable terminal history {self.history_file}: {e}")
            return
        self.max_history = data.max_history
        self.history = data.history[: self.max_history]
        logger.debug(f"Loaded {len(self.history)} history entries from {self.history_file}")

    def save_history(self) -> None:
        if self.history_file is None:
            return
        data = TerminalHistory(history=self.history, max_history=self.max_history)
        try:
            self.history_file.parent.mkdir(parents=True, exist_ok=True)
            self.history_file.write_text(json.dumps(data.model_dump(), indent=2), encoding="utf-8")
        except OSError as e:
            logger.error(f"Failed to write terminal history {self.history_file}: {e}")

    def push_history(self, command: str) -> None:
        """Most-recent-first, exact de-duplication, capped at max_history."""
        command = command.strip()
        if not command:
            return
        self.history = [command] + [c for c in self.history if c != command]
        del self.history[self.max_history:]
        self.save_history()

    def run(self, working_dir: Path, command_line: Optional[str] = None) -> CommandResult:
        """Runs synchronously and records the result."""
        if command_line is not None:
            self.command = command_line
        self.is_running = True
        try:
            result = run_command(working_dir, self.command, self.head_lines,
                                 self.tail_lines, self.effective_timeout)
        finally:
            self.is_running = False
        self.record(self.command, result)
        return result

    def record(self, command_line: str, result: CommandResult) -> None:
        self.command = command_line
        self.last_command = command_line
        self.output = result.output
        self.push_history(command_line)

    def record_failure(self, command_line: str, error: BaseException) -> None:
        """Spawn failures end this one action; the error text stands in for the output."""
        self.command = command_line
        self.last_command = command_line
        self.output = f"[Error: {error}]\n"
