# promptgen/core/ignore_rules.py
"""
Compiles `.promptignore` files into immutable rule sets.

Every rule line is expanded into one or more gitwildmatch patterns anchored
at any depth (`**/`). Directories are matched with a trailing slash, which is
what lets `build/` match the directory but not a file called `build`.
"""
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, List, Optional, Tuple

from loguru import logger
from pathspec import PathSpec
from pathspec.patterns import GitWildMatchPattern

from ..config.paths import get_project_ignore_file, get_legacy_ignore_file

DEFAULT_RULES: Tuple[str, ...] = ("target/", ".git/", "node_modules/", "*.tmp")
GLOB_CHARS = ("*", "?", "[")


def expand_rule(rule: str) -> List[str]:
    """Expands one rule line into the patterns it stands for."""
    rule = rule.strip()
    if not rule or rule.startswith("#"):
        return []

    if rule.endswith("/"):
        name = rule.strip("/")
        return [f"**/{name}/"] if name else []
    if "/" in rule:
        return [f"**/{rule.lstrip('/')}"]
    if any(ch in rule for ch in GLOB_CHARS):
        return [f"**/{rule}"]
    # Bare name: the file or directory itself, and everything beneath it
    return [f"**/{rule}", f"**/{rule}/**"]


@dataclass(frozen=True)
class IgnoreRuleSet:
    """Compiled, immutable set of ignore patterns."""
    patterns: Tuple[str, ...]
    source: Optional[Path] = None # None when the defaults are in effect
    _spec: PathSpec = field(default=None, repr=False, compare=False) # type: ignore[assignment]

    def matches(self, rel_path: str, is_dir: bool = False) -> bool:
        """True if the root-relative path is ignored. The root itself never is."""
        rel_path = rel_path.replace("\\", "/").strip("/")
        if not rel_path or self._spec is None:
            return False
        if is_dir:
            rel_path += "/"
        return self._spec.match_file(rel_path)

    def __len__(self) -> int:
        return len(self.patterns)


def compile_rules(lines: Iterable[str], source: Optional[Path] = None) -> IgnoreRuleSet:
    """Parses rule lines; malformed patterns are skipped one by one."""
    compiled: List[GitWildMatchPattern] = []
    kept: List[str] = []
    for line_no, line in enumerate(lines, start=1):
        for pattern in expand_rule(line):
            try:
                compiled.append(GitWildMatchPattern(pattern))
                kept.append(pattern)
            except (ValueError, TypeError) as e:
                logger.warning(f"Skipping invalid ignore pattern {line.strip()!r} (line {line_no}): {e}")
    logger.debug(f"Compiled {len(kept)} ignore patterns from {source or 'defaults'}")
    return IgnoreRuleSet(patterns=tuple(kept), source=source, _spec=PathSpec(compiled))


def find_ignore_file(root: Path) -> Optional[Path]:
    """
    Locates the ignore file for `root`, searching the root and then each parent.
    At every level `.prompt/.promptignore` wins over the legacy `.promptignore`.
    """
    root = root.resolve()
    for directory in (root, *root.parents):
        for candidate in (get_project_ignore_file(directory), get_legacy_ignore_file(directory)):
            if candidate.is_file():
                return candidate
    return None


def default_rules() -> IgnoreRuleSet:
    return compile_rules(DEFAULT_RULES)


def load_ignore_rules(root: Path) -> IgnoreRuleSet:
    """Builds the rule set in effect for `root`. Always returns a fresh object."""
    ignore_file = find_ignore_file(root)
    if ignore_file is None:
        logger.info(f"No ignore file found for {root}; using default rules.")
        return default_rules()
    try:
        text = ignore_file.read_text(encoding="utf-8", errors="replace")
    except OSError as e:
        logger.warning(f"Could not read ignore file {ignore_file}: {e}. Using default rules.")
        return default_rules()
    logger.info(f"Loading ignore rules from: {ignore_file}")
    return compile_rules(text.splitlines(), source=ignore_file)
