# promptgen/core/catalog.py
from pathlib import Path
from typing import Callable, Dict, List, Optional

from loguru import logger

from .fs_scanner import FileWalker
from .ignore_rules import IgnoreRuleSet
from .models import FileEntry, FileTree, ScanResult
from .token_counter import estimate_tokens_from_size

def to_rel_path(path: Path, root: Path) -> str:
    try:
        return path.relative_to(root).as_posix()
    except ValueError:
        return path.as_posix()

class FileCatalog:
    """
    Flat list of FileEntry objects for the active root.

    The list is the single source of truth for selection; trees built over it
    only hold indices. A refresh replaces the list wholesale.
    """

    def __init__(self, max_files: int = 10_000,
                 warning_callback: Optional[Callable[[str], None]] = None):
        self.max_files = max_files
        self.warning_callback = warning_callback
        self.entries: List[FileEntry] = []
        self.last_scan: Optional[ScanResult] = None

    def refresh(self, root: Path, rules: IgnoreRuleSet) -> List[FileEntry]:
        """Rescans `root`. Selection carries over by absolute path; content is dropped."""
        root = root.resolve()
        previous: Dict[Path, bool] = {e.path: e.selected for e in self.entries}

        scan = FileWalker(rules, warning_callback=self.warning_callback).walk(root, self.max_files)
        entries: List[FileEntry] = []
        for path in scan.files:
            try:
                size = path.stat().st_size
            except OSError as e:
                logger.warning(f"Could not stat file {path}: {e}")
                size = 0
            entries.append(FileEntry(
                path=path,
                rel_path=to_rel_path(path, root),
                selected=previous.get(path, False),
                token_count=estimate_tokens_from_size(size),
            ))
        entries.sort(key=lambda e: e.rel_path)

        self.entries = entries
        self.last_scan = scan
        kept = sum(1 for e in entries if e.selected)
        logger.info(f"Catalog refreshed: {len(entries)} files, {kept} selection(s) carried over.")
        return self.entries

    def selected(self) -> List[FileEntry]:
        """Selected entries ordered by relative path."""
        return sorted((e for e in self.entries if e.selected), key=lambda e: e.rel_path)

    def find(self, rel_path: str) -> Optional[FileEntry]:
        for entry in self.entries:
            if entry.rel_path == rel_path:
                return entry
        return None

    def set_selected(self, rel_path: str, value: bool) -> bool:
        entry = self.find(rel_path)
        if entry is None:
            logger.warning(f"No catalog entry for {rel_path!r}")
            return False
        entry.selected = value
        return True

    def clear_selection(self) -> None:
        for entry in self.entries:
            entry.selected = False

    def total_tokens(self, selected_only: bool = True) -> int:
        return sum(e.token_count for e in self.entries if e.selected or not selected_only)


def build_tree(entries: List[FileEntry]) -> FileTree:
    """Groups entries by folder. Every entry lands in exactly one node."""
    root = FileTree()
    for index, entry in enumerate(entries):
        parts = [p for p in entry.rel_path.replace("\\", "/").split("/") if p]
        if not parts:
            continue
        node = root
        for part in parts[:-1]:
            node = node.folders.setdefault(part, FileTree())
        node.files.append(index)
    return root


def sort_tree(tree: FileTree, entries: List[FileEntry]) -> FileTree:
    """Alphabetizes files by name and folders by key, recursively. Sorts in place."""
    tree.files.sort(key=lambda i: entries[i].name)
    tree.folders = {name: tree.folders[name] for name in sorted(tree.folders)}
    for subtree in tree.folders.values():
        sort_tree(subtree, entries)
    return tree


def find_subtree(tree: FileTree, folder_rel_path: str) -> Optional[FileTree]:
    """Returns the node for a root-relative folder path ('' is the root)."""
    node = tree
    for part in (p for p in folder_rel_path.split("/") if p):
        node = node.folders.get(part)
        if node is None:
            return None
    return node
