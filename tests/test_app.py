# tests/test_app.py
import shlex
import sys

import pytest

from promptgen.app import TERMINAL_KIND, PromptApp
from promptgen.config.schema import AppConfig
from promptgen.core.document import parse_document
from promptgen.core.exceptions import InvalidRootError
from promptgen.core.models import BuildState
from promptgen.core.tree import CheckState
from promptgen.services.remote import REMOTE_KIND


@pytest.fixture
def project(make_files, tmp_path):
    return make_files({
        "proj/README.md": "readme",
        "proj/src/app.py": "print('app')\n",
        "proj/src/util.py": "def util(): pass\n",
        "proj/build/out.o": "object",
        "proj/.prompt/.promptignore": "build/\n",
        "proj/.prompt/system_prompt.txt": "You are a reviewer.",
    }) / "proj"


@pytest.fixture
def prompt_app(project, tmp_path, monkeypatch, no_encoder):
    monkeypatch.delenv("PROMPTGEN_SYSTEM_PROMPT", raising=False)
    config = AppConfig(default_system_prompt_path=str(tmp_path / "default_prompt.txt"))
    app = PromptApp(config)
    app.open_folder(project)
    return app


def _rel_paths(app):
    return [e.rel_path for e in app.entries]


def test_open_folder_rejects_non_directory(tmp_path):
    with pytest.raises(InvalidRootError):
        PromptApp(AppConfig()).open_folder(tmp_path / "missing")


def test_open_folder_applies_project_rules(prompt_app):
    paths = _rel_paths(prompt_app)
    assert "build/out.o" not in paths
    assert {"README.md", "src/app.py", "src/util.py"} <= set(paths)


def test_folder_selection_and_states(prompt_app):
    assert prompt_app.folder_state("src") == CheckState.UNCHECKED
    assert prompt_app.set_folder_selected("src", True)
    assert prompt_app.folder_state("src") == CheckState.CHECKED
    assert prompt_app.folder_state("") == CheckState.PARTIAL

    assert not prompt_app.toggle("src/app.py")
    assert prompt_app.folder_state("src") == CheckState.PARTIAL
    assert not prompt_app.set_folder_selected("nope", True)


def test_refresh_keeps_selection(prompt_app, project):
    prompt_app.set_selected("src/app.py", True)
    (project / "src" / "new.py").write_text("x = 1\n", encoding="utf-8")
    prompt_app.refresh()
    assert prompt_app.catalog.find("src/app.py").selected
    assert not prompt_app.catalog.find("src/new.py").selected


def test_build_assembles_selected_files(prompt_app):
    prompt_app.set_selected("src/util.py", True)
    prompt_app.set_selected("README.md", True)

    result = prompt_app.build("Review this", copy=False)

    doc = parse_document(result.text)
    assert doc.find("system_prompt").text == "You are a reviewer."
    assert [f.get("path") for f in doc.find("code")] == ["README.md", "src/util.py"]
    assert doc.find("code/file").text == "readme"
    assert doc.find("file_tree").text.startswith("proj/\n")
    assert [i.text for i in doc.findall("instruction")] == ["Review this", "Review this"]
    assert doc.find("terminal_output") is None
    assert prompt_app.state == BuildState.BUILT
    assert result.token_count == result.estimated_tokens


def test_build_without_tree(prompt_app):
    prompt_app.include_file_tree = False
    result = prompt_app.build("x", copy=False)
    assert parse_document(result.text).find("file_tree") is None


def test_build_copies_to_clipboard(prompt_app, mocker):
    copy = mocker.patch("promptgen.app.copy_to_clipboard", return_value=True)
    result = prompt_app.build("x")
    copy.assert_called_once_with(result.text)


def test_build_failure_resets_state(prompt_app, mocker):
    mocker.patch.object(prompt_app.assembler, "assemble", side_effect=RuntimeError("boom"))
    with pytest.raises(RuntimeError):
        prompt_app.build("x", copy=False)
    assert prompt_app.state == BuildState.IDLE


def test_missing_system_prompt_placeholder(prompt_app, project):
    (project / ".prompt" / "system_prompt.txt").unlink()
    result = prompt_app.build("x", copy=False)
    assert parse_document(result.text).find("system_prompt").text.startswith("[WARNING")


def test_background_terminal_result_is_merged(prompt_app):
    command = f"{shlex.quote(sys.executable)} -c {shlex.quote('print(42)')}"
    prompt_app.run_terminal(command)
    assert prompt_app.terminal.is_running

    message = prompt_app.channel.wait(timeout=10)
    assert message.kind == TERMINAL_KIND
    prompt_app.handle(message)

    assert not prompt_app.terminal.is_running
    assert prompt_app.terminal.output == "42\n"
    assert prompt_app.terminal.history == [command]

    doc = parse_document(prompt_app.build("x", copy=False).text)
    assert doc.find("terminal_command").text == command
    assert doc.find("terminal_output").text == "42\n"


def test_background_terminal_spawn_failure(prompt_app):
    prompt_app.run_terminal("definitely-not-a-real-program-4711")
    prompt_app.handle(prompt_app.channel.wait(timeout=10))
    assert prompt_app.terminal.output.startswith("[Error:")
    assert not prompt_app.terminal.is_running
    assert prompt_app.terminal.history == []

    doc = parse_document(prompt_app.build("x", copy=False).text)
    assert doc.find("terminal_command").text == "definitely-not-a-real-program-4711"
    assert doc.find("terminal_output").text.startswith("[Error:")


def test_remote_fetch_is_merged_by_poll(prompt_app, mocker):
    mocker.patch("promptgen.services.remote.fetch_remote_text", return_value="remote body")
    prompt_app.add_url("https://example.com")

    message = prompt_app.channel.wait(timeout=5)
    assert message.kind == REMOTE_KIND
    prompt_app.channel.post(message)
    assert prompt_app.poll() == 1

    doc = parse_document(prompt_app.build("x", copy=False).text)
    source = doc.find("remote/source")
    assert source.get("url") == "https://example.com"
    assert source.text == "remote body"


def test_token_status(prompt_app):
    prompt_app.set_selected("README.md", True)
    assert prompt_app.token_status().startswith("Token count: 2 / 200,000")
    result = prompt_app.build("x", copy=False)
    assert prompt_app.token_status().startswith(f"Token count: {result.token_count:,} /")


def test_silent_command_still_appears_in_document(prompt_app):
    command = f"{shlex.quote(sys.executable)} -c pass"
    prompt_app.run_terminal_sync(command)
    assert prompt_app.terminal.output == ""

    doc = parse_document(prompt_app.build("x", copy=False).text)
    assert doc.find("terminal_command").text == command
    assert doc.find("terminal_output") is not None
    assert not doc.find("terminal_output").text


def test_open_folder_records_last_folder(prompt_app, project):
    assert prompt_app.config.last_folder == str(project.resolve())
