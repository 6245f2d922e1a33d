# promptgen/config/paths.py
from pathlib import Path

from platformdirs import user_data_dir, user_log_dir

PROJECT_DIR_NAME = ".prompt"
IGNORE_FILE_NAME = ".promptignore"
SYSTEM_PROMPT_FILE_NAME = "system_prompt.txt"
SYSTEM_PROMPT_ADDON_FILE_NAME = "system_prompt_addon.txt"
TERMINAL_HISTORY_FILE_NAME = "terminal_history.json"

def _get_app_name() -> str:
    # Centralize the app name
    return "PromptGen"

def get_user_data_dir() -> Path:
    """Get the per-user application data directory (created on demand)."""
    path = Path(user_data_dir(_get_app_name(), appauthor=False))
    path.mkdir(parents=True, exist_ok=True)
    return path

def get_user_config_file() -> Path:
    """Get the path to the user's config.json file."""
    return get_user_data_dir() / "config.json"

def get_user_log_dir() -> Path:
    """Get the path to the user's log directory."""
    path = Path(user_log_dir(_get_app_name(), appauthor=False))
    path.mkdir(parents=True, exist_ok=True)
    return path

def get_default_system_prompt_path() -> Path:
    # Not created here; the file is optional
    return Path(user_data_dir(_get_app_name(), appauthor=False)) / SYSTEM_PROMPT_FILE_NAME

# --- Project-scoped files (<root>/.prompt/...) ---

def get_project_dir(root: Path) -> Path:
    return root / PROJECT_DIR_NAME

def get_project_ignore_file(root: Path) -> Path:
    return get_project_dir(root) / IGNORE_FILE_NAME

def get_legacy_ignore_file(root: Path) -> Path:
    """Root-level ignore file used before rules moved into .prompt/."""
    return root / IGNORE_FILE_NAME

def get_project_system_prompt(root: Path) -> Path:
    return get_project_dir(root) / SYSTEM_PROMPT_FILE_NAME

def get_project_system_prompt_addon(root: Path) -> Path:
    return get_project_dir(root) / SYSTEM_PROMPT_ADDON_FILE_NAME

def get_terminal_history_file(root: Path) -> Path:
    return get_project_dir(root) / TERMINAL_HISTORY_FILE_NAME
