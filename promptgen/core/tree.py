# promptgen/core/tree.py
from enum import Enum
from pathlib import Path
from typing import List, Tuple

from .catalog import build_tree, sort_tree
from .models import FileEntry, FileTree

BRANCH = "├─ "
LAST_BRANCH = "└─ "
PIPE_PREFIX = "│   "
SPACE_PREFIX = "    "

class CheckState(str, Enum):
    UNCHECKED = "unchecked"
    PARTIAL = "partial"
    CHECKED = "checked"

def selection_counts(tree: FileTree, entries: List[FileEntry]) -> Tuple[int, int]:
    """(total_files, selected_files) for the node and all descendants."""
    total = len(tree.files)
    selected = sum(1 for i in tree.files if entries[i].selected)
    for subtree in tree.folders.values():
        sub_total, sub_selected = selection_counts(subtree, entries)
        total += sub_total
        selected += sub_selected
    return total, selected

def check_state(tree: FileTree, entries: List[FileEntry]) -> CheckState:
    total, selected = selection_counts(tree, entries)
    if total and selected == total:
        return CheckState.CHECKED
    if selected:
        return CheckState.PARTIAL
    return CheckState.UNCHECKED

def token_sum(tree: FileTree, entries: List[FileEntry]) -> int:
    total = sum(entries[i].token_count for i in tree.files)
    for subtree in tree.folders.values():
        total += token_sum(subtree, entries)
    return total

def set_selection(tree: FileTree, entries: List[FileEntry], value: bool) -> None:
    """Forces every entry under the node to `value`."""
    for i in tree.files:
        entries[i].selected = value
    for subtree in tree.folders.values():
        set_selection(subtree, entries, value)

def render(tree: FileTree, entries: List[FileEntry], root_name: str) -> str:
    """Box-drawing listing; folders before files, each group alphabetized."""
    return f"{root_name}/\n" + _render_level(tree, entries, "")

def _render_level(tree: FileTree, entries: List[FileEntry], prefix: str) -> str:
    items = [(name, subtree) for name, subtree in sorted(tree.folders.items())]
    items += sorted(((entries[i].name, None) for i in tree.files), key=lambda item: item[0])

    lines = []
    for position, (name, subtree) in enumerate(items):
        is_last = position == len(items) - 1
        lines.append(f"{prefix}{LAST_BRANCH if is_last else BRANCH}{name}\n")
        if subtree is not None:
            child_prefix = prefix + (SPACE_PREFIX if is_last else PIPE_PREFIX)
            lines.append(_render_level(subtree, entries, child_prefix))
    return "".join(lines)

def generate_file_tree_string(entries: List[FileEntry], root: Path) -> str:
    """Builds, sorts and renders the tree for a whole catalog."""
    tree = sort_tree(build_tree(entries), entries)
    return render(tree, entries, root.name or "root")
