# promptgen/cli.py

import fnmatch
import queue
from pathlib import Path
from typing import Optional, List

import typer
from loguru import logger

from .services.logging import setup_logging
from .config.loader import get_config, save_config
from .app import PromptApp
from .core.exceptions import PromptGenError
from .core.token_counter import format_token_status
from .services.async_utils import shutdown_global_thread_pool
from .services.remote import REMOTE_KIND
from . import __version__

app = typer.Typer(help="PromptGen CLI - assemble project files into an LLM prompt headlessly.")

RootArg = typer.Argument(..., help="Project root folder.", exists=True, file_okay=False,
                         dir_okay=True, readable=True, resolve_path=True)
OptionalRootArg = typer.Argument(None, help="Project root folder. Defaults to the last folder opened.",
                                 exists=True, file_okay=False, dir_okay=True, readable=True, resolve_path=True)

def version_callback(value: bool):
    if value:
        print(f"PromptGen CLI Version: {__version__}")
        raise typer.Exit()

@app.callback()
def main_options(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging."),
    version: Optional[bool] = typer.Option(None, "--version", callback=version_callback, is_eager=True, help="Show version and exit."),
):
    """ Main callback to set up logging """
    log_level = "DEBUG" if verbose else "WARNING"
    setup_logging(level=log_level, verbose=verbose)
    ctx.call_on_close(shutdown_global_thread_pool)
    ctx.ensure_object(dict)
    ctx.obj["VERBOSE"] = verbose


def _open(root: Optional[Path]) -> PromptApp:
    config = get_config()
    if root is None:
        if not config.last_folder:
            typer.secho("No folder given and no previous folder recorded.", fg=typer.colors.RED, err=True)
            raise typer.Exit(code=1)
        root = Path(config.last_folder)
    prompt_app = PromptApp(config, warning_callback=lambda msg: typer.secho(msg, fg=typer.colors.YELLOW, err=True))
    try:
        prompt_app.open_folder(root)
    except PromptGenError as e:
        typer.secho(str(e), fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)
    save_config(config)
    return prompt_app


def _select(prompt_app: PromptApp, patterns: Optional[List[str]], select_all: bool) -> int:
    count = 0
    for entry in prompt_app.entries:
        if select_all or any(fnmatch.fnmatch(entry.rel_path, p) for p in patterns or []):
            entry.selected = True
            count += 1
    return count


def _wait_for_remotes(prompt_app: PromptApp, pending: int, timeout: float) -> None:
    """Blocks until every queued fetch reported back (headless only)."""
    while pending > 0:
        try:
            message = prompt_app.channel.wait(timeout=timeout)
        except queue.Empty:
            logger.warning("Timed out waiting for remote fetches.")
            return
        prompt_app.handle(message)
        if message.kind == REMOTE_KIND:
            pending -= 1


@app.command()
def tree(root: Optional[Path] = OptionalRootArg):
    """Prints the file tree of ROOT after applying ignore rules."""
    prompt_app = _open(root)
    typer.echo(prompt_app.render_tree(), nl=False)
    scan = prompt_app.catalog.last_scan
    if scan:
        typer.echo(
            f"\n{len(prompt_app.entries)} files ({scan.scanned_files} scanned, "
            f"{scan.ignored_files} ignored files, {scan.ignored_dirs} ignored dirs, "
            f"{scan.symlinks_skipped} symlinks skipped), ~{prompt_app.folder_tokens()} tokens"
        )


@app.command()
def build(
    root: Optional[Path] = OptionalRootArg,
    select: Optional[List[str]] = typer.Option(None, "--select", "-s", help="Glob on relative paths to select (repeatable), e.g. 'src/*.py'."),
    select_all: bool = typer.Option(False, "--all", "-a", help="Select every discovered file."),
    instruction: str = typer.Option("", "--instruction", "-i", help="Instruction text for the model."),
    url: Optional[List[str]] = typer.Option(None, "--url", "-u", help="Remote page to include (repeatable)."),
    command: Optional[str] = typer.Option(None, "--command", "-c", help="Command to run in ROOT; its output is included."),
    no_tree: bool = typer.Option(False, "--no-tree", help="Leave the file tree out of the document."),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Write the document to this file.", resolve_path=True),
    copy: bool = typer.Option(True, "--copy/--no-copy", help="Copy the document to the clipboard."),
):
    """Builds a prompt document from ROOT and copies and/or writes it."""
    prompt_app = _open(root)
    selected = _select(prompt_app, select, select_all)
    logger.info(f"Selected {selected} files for the document.")
    if not selected:
        typer.secho("Warning: no files selected.", fg=typer.colors.YELLOW, err=True)

    if no_tree:
        prompt_app.include_file_tree = False

    for u in url or []:
        prompt_app.add_url(u)
    if url:
        _wait_for_remotes(prompt_app, len(url), prompt_app.config.fetch_timeout_secs + 5)
        for source in prompt_app.remotes.sources:
            if source.content is None:
                typer.secho(f"Warning: could not fetch {source.url}", fg=typer.colors.YELLOW, err=True)

    if command:
        try:
            prompt_app.run_terminal_sync(command)
        except (PromptGenError, ValueError) as e:
            typer.secho(str(e), fg=typer.colors.RED, err=True)
            raise typer.Exit(code=1)

    result = prompt_app.build(instruction=instruction, copy=copy)

    if output:
        try:
            output.parent.mkdir(parents=True, exist_ok=True)
            output.write_text(result.text, encoding="utf-8")
        except OSError as e:
            typer.secho(f"Error writing output file: {e}", fg=typer.colors.RED, err=True)
            raise typer.Exit(code=1)
        typer.echo(f"Prompt written to: {output}")
    elif not copy:
        typer.echo(result.text, nl=False)

    typer.echo(format_token_status(result.token_count, prompt_app.config.token_limit), err=True)


@app.command()
def run(
    root: Path = RootArg,
    command: str = typer.Argument(..., help="Command line, optionally prefixed with KEY=VALUE pairs."),
    no_timeout: bool = typer.Option(False, "--no-timeout", help="Wait for the command however long it takes."),
):
    """Runs COMMAND in ROOT, prints the captured output and records it in the history."""
    prompt_app = _open(root)
    if no_timeout:
        prompt_app.terminal.timeout_enabled = False
    try:
        result = prompt_app.run_terminal_sync(command)
    except (PromptGenError, ValueError) as e:
        typer.secho(str(e), fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)
    typer.echo(result.output, nl=False)
    if result.timed_out:
        raise typer.Exit(code=124)


@app.command()
def history(root: Optional[Path] = OptionalRootArg):
    """Lists the terminal command history of ROOT, most recent first."""
    prompt_app = _open(root)
    for item in prompt_app.terminal.history:
        typer.echo(item)


if __name__ == "__main__":
    app()
