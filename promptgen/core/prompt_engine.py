# promptgen/core/prompt_engine.py
import os
from pathlib import Path
from typing import List, Optional, Tuple
from loguru import logger

from ..config.paths import get_project_system_prompt, get_project_system_prompt_addon

MISSING_PROMPT_PLACEHOLDER = (
    "[WARNING: No system prompt found. Looked in: {locations}. "
    "Create one of these files to silence this warning.]"
)
UNREADABLE_PLACEHOLDER = "[WARNING: Could not read system prompt file {path}: {error}]"

class PromptEngine:
    """Resolves the system prompt text for a project root."""

    def __init__(self, env_var: str = "PROMPTGEN_SYSTEM_PROMPT",
                 default_path: Optional[Path] = None):
        self.env_var = env_var
        self.default_path = default_path
        logger.debug("PromptEngine initialized.")

    def candidate_paths(self, root: Optional[Path]) -> List[Path]:
        """Lookup order: project file, environment variable, fixed default."""
        candidates: List[Path] = []
        if root is not None:
            candidates.append(get_project_system_prompt(root))
        env_path = os.environ.get(self.env_var)
        if env_path:
            candidates.append(Path(env_path).expanduser())
        if self.default_path is not None:
            candidates.append(self.default_path)
        return candidates

    def resolve_system_prompt_path(self, root: Optional[Path]) -> Tuple[Optional[Path], List[Path]]:
        candidates = self.candidate_paths(root)
        for candidate in candidates:
            if candidate.is_file():
                return candidate, candidates
        return None, candidates

    def load_system_prompt(self, root: Optional[Path]) -> str:
        """
        Returns the system prompt with the project addon appended.
        Missing or unreadable files produce a visible warning placeholder instead.
        """
        path, candidates = self.resolve_system_prompt_path(root)
        if path is None:
            locations = ", ".join(str(c) for c in candidates) or "(no locations configured)"
            logger.warning(f"No system prompt found. Looked in: {locations}")
            text = MISSING_PROMPT_PLACEHOLDER.format(locations=locations)
        else:
            try:
                text = path.read_text(encoding="utf-8", errors="replace")
                logger.debug(f"Loaded system prompt from {path}")
            except OSError as e:
                logger.warning(f"Could not read system prompt {path}: {e}")
                text = UNREADABLE_PLACEHOLDER.format(path=path, error=e)

        if root is not None:
            addon_path = get_project_system_prompt_addon(root)
            if addon_path.is_file():
                try:
                    addon = addon_path.read_text(encoding="utf-8", errors="replace")
                    text = f"{text.rstrip()}\n\n{addon}"
                    logger.debug(f"Appended system prompt addon from {addon_path}")
                except OSError as e:
                    logger.warning(f"Could not read system prompt addon {addon_path}: {e}")
                    text = f"{text.rstrip()}\n\n{UNREADABLE_PLACEHOLDER.format(path=addon_path, error=e)}"
        return text
