# tests/services/test_command_runner.py
import shlex
import sys
import time
from pathlib import Path

import pytest

from promptgen.config.schema import TerminalConfig
from promptgen.core.exceptions import CommandSpawnError, EmptyCommandError
from promptgen.services.command_runner import (
    TIMEOUT_NOTE, TRUNCATION_LINE, TerminalSession, head_and_tail, parse_command_line, run_command,
    split_lines,
)

PY = shlex.quote(sys.executable)


def _py(code: str) -> str:
    return f"{PY} -c {shlex.quote(code)}"


def test_parse_command_line_peels_env_assignments():
    env, argv = parse_command_line("FOO=1 BAR='a b' make test --verbose")
    assert env == {"FOO": "1", "BAR": "a b"}
    assert argv == ["make", "test", "--verbose"]


def test_parse_command_line_keeps_later_assignments_as_arguments():
    env, argv = parse_command_line("make CFLAGS=-O2")
    assert env == {}
    assert argv == ["make", "CFLAGS=-O2"]


@pytest.mark.parametrize("line", ["", "   ", "FOO=1", "A=1 B=2"])
def test_parse_command_line_without_program(line):
    with pytest.raises(EmptyCommandError):
        parse_command_line(line)


def test_head_and_tail_short_output_untouched():
    assert head_and_tail("a\nb\nc", 2, 2) == "a\nb\nc\n"


def test_head_and_tail_caps_long_output():
    text = "\n".join(str(i) for i in range(1, 11))
    assert head_and_tail(text, 2, 2) == f"1\n2\n{TRUNCATION_LINE}\n9\n10\n"
    assert head_and_tail(text, 1, 0) == f"1\n{TRUNCATION_LINE}\n"


def test_run_command_env_override(tmp_path):
    result = run_command(tmp_path, "GREETING=hello " + _py("import os; print(os.environ['GREETING'])"))
    assert result.output == "hello\n"
    assert result.returncode == 0
    assert not result.timed_out


def test_run_command_uses_working_dir(tmp_path):
    result = run_command(tmp_path, _py("import os; print(os.getcwd())"))
    assert Path(result.output.strip()).resolve() == tmp_path.resolve()


def test_run_command_captures_stderr_and_returncode(tmp_path):
    result = run_command(tmp_path, _py("import sys; sys.stderr.write('oops\\n'); sys.exit(3)"))
    assert "oops" in result.output
    assert result.returncode == 3


def test_run_command_applies_line_caps(tmp_path):
    result = run_command(tmp_path, _py("for i in range(50): print(i)"), head=3, tail=2)
    assert result.output == f"0\n1\n2\n{TRUNCATION_LINE}\n48\n49\n"


def test_run_command_timeout_kills_and_keeps_partial_output(tmp_path):
    code = "import time; print('started', flush=True); time.sleep(30)"
    result = run_command(tmp_path, _py(code), timeout=1)
    assert result.timed_out
    assert "started" in result.output
    assert result.output.endswith(TIMEOUT_NOTE.format(secs=1) + "\n")


def test_run_command_spawn_failure(tmp_path):
    with pytest.raises(CommandSpawnError) as excinfo:
        run_command(tmp_path, "definitely-not-a-real-program-4711 --flag")
    assert "definitely-not-a-real-program-4711" in str(excinfo.value)


def test_history_dedup_cap_and_persist(tmp_path):
    session = TerminalSession(TerminalConfig(max_history=3))
    session.load_history(tmp_path)
    for command in ["a", "b", "a", "c", "d"]:
        session.push_history(command)
    assert session.history == ["d", "c", "a"]

    reloaded = TerminalSession(TerminalConfig(max_history=3))
    reloaded.load_history(tmp_path)
    assert reloaded.history == ["d", "c", "a"]


def test_blank_commands_are_not_recorded(tmp_path):
    session = TerminalSession()
    session.load_history(tmp_path)
    session.push_history("   ")
    assert session.history == []


def test_corrupt_history_is_ignored(make_files, tmp_path):
    make_files({".prompt/terminal_history.json": "{not json"})
    session = TerminalSession()
    session.load_history(tmp_path)
    assert session.history == []


def test_session_run_records_output(tmp_path):
    session = TerminalSession()
    session.load_history(tmp_path)
    command = _py("print('hi')")
    result = session.run(tmp_path, command)
    assert session.output == result.output == "hi\n"
    assert session.history == [command]
    assert not session.is_running


def test_effective_timeout_respects_toggle():
    session = TerminalSession(TerminalConfig(timeout_secs=5))
    assert session.effective_timeout == 5
    session.timeout_enabled = False
    assert session.effective_timeout is None


def test_split_lines_only_breaks_on_newline():
    assert split_lines("a\x0cb\x0bc\r\nd e\n") == ["a\x0cb\x0bc", "d e"]
    assert split_lines("") == []
    assert split_lines("a\n\n") == ["a", ""]


def test_head_and_tail_counts_newline_separated_lines():
    text = "one\x0cstill one\r\ntwo\nthree\n"
    assert head_and_tail(text, 1, 1) == f"one\x0cstill one\n{TRUNCATION_LINE}\nthree\n"


@pytest.mark.skipif(sys.platform == "win32", reason="uses a POSIX shell")
def test_timeout_also_kills_background_children(tmp_path):
    started = time.monotonic()
    result = run_command(tmp_path, "sh -c 'sleep 8 & echo started; wait'", timeout=1)
    elapsed = time.monotonic() - started

    assert result.timed_out
    assert "started" in result.output
    assert elapsed < 5
