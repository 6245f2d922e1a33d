# promptgen/core/fs_scanner.py
import os
from pathlib import Path
from typing import List, Optional, Callable
from loguru import logger

from .ignore_rules import IgnoreRuleSet
from .models import ScanResult

class FileWalker:
    """
    Bounded directory walk over an explicit stack of pending directories.

    Symlinks are never followed. Ignored directories are pruned whole and
    counted once. The walk stops as soon as `cap` kept files are collected;
    truncation is reported through `warning_callback`, not raised.
    """

    def __init__(self,
                 rules: IgnoreRuleSet,
                 warning_callback: Optional[Callable[[str], None]] = None):
        self.rules = rules
        self.warning_callback = warning_callback

    def _emit_warning(self, message: str):
        if self.warning_callback:
            try: self.warning_callback(message)
            except Exception as e: logger.error(f"Error in warning callback: {e}")

    def walk(self, root: Path, cap: int) -> ScanResult:
        root = root.resolve()
        logger.info(f"[Walk] Starting for: {root} (cap={cap})")
        result = ScanResult(files=[])
        pending: List[Path] = [root]

        while pending:
            current = pending.pop()
            rel_dir = current.relative_to(root).as_posix() if current != root else ""
            if rel_dir and self.rules.matches(rel_dir, is_dir=True):
                logger.trace(f"Pruning ignored directory: {rel_dir}")
                result.ignored_dirs += 1
                continue

            try:
                entries = list(os.scandir(current))
            except OSError as scandir_err:
                logger.warning(f"Could not scan directory contents {current}: {scandir_err}")
                continue

            for entry in entries:
                rel_path = f"{rel_dir}/{entry.name}" if rel_dir else entry.name
                try:
                    if entry.is_symlink():
                        logger.trace(f"Skipping symlink: {rel_path}")
                        result.symlinks_skipped += 1
                        continue
                    is_dir = entry.is_dir(follow_symlinks=False)
                    is_file = not is_dir and entry.is_file(follow_symlinks=False)
                except OSError as e:
                    logger.warning(f"Could not stat entry {entry.path}: {e}. Skipping.")
                    continue

                if is_file:
                    result.scanned_files += 1
                    if self.rules.matches(rel_path):
                        result.ignored_files += 1
                        continue
                    result.files.append(Path(entry.path))
                    if len(result.files) >= cap:
                        break
                elif is_dir:
                    if self.rules.matches(rel_path, is_dir=True):
                        logger.trace(f"Pruning ignored directory: {rel_path}")
                        result.ignored_dirs += 1
                        continue
                    pending.append(Path(entry.path))
                # Sockets, fifos and devices are neither kept nor counted

            if len(result.files) >= cap:
                break

        result.truncated = len(result.files) >= cap
        del result.files[cap:]
        if result.truncated:
            message = f"More than {cap} files detected. Only the first {cap} files will be loaded."
            logger.warning(message)
            self._emit_warning(message)

        logger.info(
            f"[Walk] Finished for {root}: kept={len(result.files)} scanned={result.scanned_files} "
            f"ignored_files={result.ignored_files} ignored_dirs={result.ignored_dirs} "
            f"symlinks={result.symlinks_skipped}"
        )
        return result


def walk(root: Path, cap: int, rules: IgnoreRuleSet,
         warning_callback: Optional[Callable[[str], None]] = None) -> ScanResult:
    """Convenience wrapper around FileWalker.walk."""
    return FileWalker(rules, warning_callback=warning_callback).walk(root, cap)
