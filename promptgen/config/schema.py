# promptgen/config/schema.py
from pydantic import BaseModel, Field
from typing import List, Optional

from .paths import get_default_system_prompt_path

class TerminalConfig(BaseModel):
    head_lines: int = Field(default=1000, ge=0)
    tail_lines: int = Field(default=1000, ge=0)
    timeout_secs: float = Field(default=25, gt=0)
    timeout_enabled: bool = True
    max_history: int = Field(default=50, ge=1)

class TerminalHistory(BaseModel):
    """On-disk shape of <root>/.prompt/terminal_history.json."""
    history: List[str] = Field(default_factory=list) # Most recent first
    max_history: int = Field(default=50, ge=1)

class AppConfig(BaseModel):
    last_folder: Optional[str] = None
    max_files: int = Field(default=10_000, ge=1) # Walker cap
    max_file_bytes: int = Field(default=512_000, ge=2) # Head/tail cap per file
    sniff_bytes: int = Field(default=8192, ge=1) # Prefix scanned for NUL bytes
    load_workers: Optional[int] = Field(default=None, ge=1) # None -> os.cpu_count()
    include_file_tree: bool = True
    token_limit: int = 200_000 # Display only
    fetch_timeout_secs: float = Field(default=20, gt=0)
    system_prompt_env_var: str = "PROMPTGEN_SYSTEM_PROMPT"
    default_system_prompt_path: str = Field(default_factory=lambda: str(get_default_system_prompt_path()))
    terminal: TerminalConfig = Field(default_factory=TerminalConfig)
