# promptgen/app.py
from pathlib import Path
from typing import Callable, List, Optional

from loguru import logger

from .config.schema import AppConfig
from .core.catalog import FileCatalog, build_tree, find_subtree, sort_tree
from .core.content_loader import load_selected
from .core.document import DocumentAssembler
from .core.exceptions import InvalidRootError
from .core.ignore_rules import IgnoreRuleSet, default_rules, load_ignore_rules
from .core.models import BuildState, CommandResult, DocumentResult, FileEntry, FileTree
from .core.prompt_engine import PromptEngine
from .core.token_counter import format_token_status
from .core.tree import CheckState, check_state, generate_file_tree_string, set_selection, token_sum
from .services.async_utils import ResultChannel, TaskMessage, run_in_background
from .services.clipboard import copy_to_clipboard
from .services.command_runner import TerminalSession, run_command
from .services.remote import REMOTE_KIND, RemoteSources

TERMINAL_KIND = "terminal"

class PromptApp:
    """
    Application state owned by the control thread.

    Front-ends call the query/mutate methods below and call `poll()` once per
    tick; background results only ever arrive through the result channel.
    """

    def __init__(self, config: Optional[AppConfig] = None,
                 warning_callback: Optional[Callable[[str], None]] = None):
        self.config = config or AppConfig()
        self.root: Optional[Path] = None
        self.rules: IgnoreRuleSet = default_rules()
        self.catalog = FileCatalog(max_files=self.config.max_files, warning_callback=warning_callback)
        self.channel = ResultChannel()
        self.remotes = RemoteSources(self.channel, timeout=self.config.fetch_timeout_secs)
        self.terminal = TerminalSession(self.config.terminal)
        self.prompt_engine = PromptEngine(
            env_var=self.config.system_prompt_env_var,
            default_path=Path(self.config.default_system_prompt_path),
        )
        self.assembler = DocumentAssembler()
        self.instruction: str = ""
        self.include_file_tree = self.config.include_file_tree
        self.state = BuildState.IDLE
        self.last_document: Optional[DocumentResult] = None

    # --- Folder / catalog ---

    @property
    def entries(self) -> List[FileEntry]:
        return self.catalog.entries

    def open_folder(self, root: Path) -> List[FileEntry]:
        root = Path(root).expanduser()
        if not root.is_dir():
            raise InvalidRootError(path=root)
        self.root = root.resolve()
        self.config.last_folder = str(self.root)
        self.catalog.entries = [] # Selection does not carry across projects
        self.terminal.load_history(self.root)
        logger.info(f"Opened folder: {self.root}")
        return self.reload_rules()

    def reload_rules(self) -> List[FileEntry]:
        """Rebuilds the ignore rules (e.g. after the ignore file was edited) and rescans."""
        if self.root is None:
            return []
        self.rules = load_ignore_rules(self.root)
        return self.refresh()

    def refresh(self) -> List[FileEntry]:
        if self.root is None:
            logger.warning("Refresh requested but no folder is open.")
            return []
        self.state = BuildState.IDLE
        return self.catalog.refresh(self.root, self.rules)

    def tree(self) -> FileTree:
        return sort_tree(build_tree(self.entries), self.entries)

    def toggle(self, rel_path: str) -> bool:
        entry = self.catalog.find(rel_path)
        if entry is None:
            return False
        entry.selected = not entry.selected
        return entry.selected

    def set_selected(self, rel_path: str, value: bool) -> bool:
        return self.catalog.set_selected(rel_path, value)

    def set_folder_selected(self, folder_rel_path: str, value: bool) -> bool:
        node = find_subtree(self.tree(), folder_rel_path)
        if node is None:
            logger.warning(f"No folder {folder_rel_path!r} in the current tree")
            return False
        set_selection(node, self.entries, value)
        return True

    def folder_state(self, folder_rel_path: str) -> CheckState:
        node = find_subtree(self.tree(), folder_rel_path)
        return check_state(node, self.entries) if node else CheckState.UNCHECKED

    def folder_tokens(self, folder_rel_path: str = "") -> int:
        node = find_subtree(self.tree(), folder_rel_path)
        return token_sum(node, self.entries) if node else 0

    def render_tree(self) -> str:
        if self.root is None:
            return ""
        return generate_file_tree_string(self.entries, self.root)

    # --- Remote sources ---

    def add_url(self, url: str) -> Optional[int]:
        return self.remotes.add_url(url)

    # --- Terminal ---

    def run_terminal(self, command_line: str) -> None:
        """Starts the command in the background; the result is merged by poll()."""
        if self.root is None:
            logger.warning("Cannot run a command without an open folder.")
            return
        self.terminal.command = command_line
        self.terminal.is_running = True
        run_in_background(self.channel, TERMINAL_KIND, command_line, run_command,
                          self.root, command_line, self.terminal.head_lines,
                          self.terminal.tail_lines, self.terminal.effective_timeout)

    def run_terminal_sync(self, command_line: str) -> CommandResult:
        if self.root is None:
            raise InvalidRootError(path=Path("."), message="No folder is open.")
        return self.terminal.run(self.root, command_line)

    def _apply_terminal(self, message: TaskMessage) -> None:
        self.terminal.is_running = False
        if not message.ok:
            self.terminal.record_failure(message.key, message.error)
            return
        self.terminal.record(message.key, message.payload)

    # --- Control loop ---

    def poll(self) -> int:
        """Drains the result channel without blocking. Returns messages handled."""
        messages = self.channel.drain()
        for message in messages:
            self.handle(message)
        return len(messages)

    def handle(self, message: TaskMessage) -> None:
        if message.kind == REMOTE_KIND:
            self.remotes.apply(message)
        elif message.kind == TERMINAL_KIND:
            self._apply_terminal(message)
        else:
            logger.warning(f"Unknown background message kind: {message.kind}")

    # --- Build ---

    def build(self, instruction: Optional[str] = None, copy: bool = True) -> DocumentResult:
        """Loads selected contents in parallel, assembles the document and optionally copies it."""
        if instruction is not None:
            self.instruction = instruction
        self.state = BuildState.BUILDING
        try:
            load_selected(self.entries, self.config.max_file_bytes,
                          workers=self.config.load_workers, sniff_bytes=self.config.sniff_bytes)
            result = self.assembler.assemble(
                system_prompt=self.prompt_engine.load_system_prompt(self.root),
                instruction=self.instruction,
                files=self.catalog.selected(),
                file_tree=self.render_tree() if self.include_file_tree else None,
                remotes=self.remotes.included(),
                terminal_command=self.terminal.last_command,
                terminal_output=self.terminal.output if self.terminal.last_command else "",
            )
        except Exception:
            self.state = BuildState.IDLE
            raise
        self.last_document = result
        self.state = BuildState.BUILT
        if copy:
            copy_to_clipboard(result.text)
        return result

    def token_status(self) -> str:
        count = self.last_document.token_count if self.last_document else self.catalog.total_tokens()
        return format_token_status(count, self.config.token_limit)
