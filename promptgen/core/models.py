# promptgen/core/models.py
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional, List, Dict

@dataclass
class FileEntry:
    """One on-disk file discovered under the active root."""
    path: Path # Absolute
    rel_path: str # Root-relative, forward slashes; unique within a catalog
    selected: bool = False
    content: Optional[str] = None # Filled lazily by the content loader
    token_count: int = 0 # Size-based estimate until content is loaded

    @property
    def name(self) -> str:
        return self.rel_path.rsplit('/', 1)[-1]

@dataclass
class FileTree:
    """Folder-keyed grouping of catalog entries. Holds indices, never entries."""
    folders: Dict[str, 'FileTree'] = field(default_factory=dict)
    files: List[int] = field(default_factory=list)

@dataclass
class ScanResult:
    """Result of a bounded directory walk."""
    files: List[Path]
    scanned_files: int = 0
    ignored_files: int = 0
    ignored_dirs: int = 0
    symlinks_skipped: int = 0
    truncated: bool = False

@dataclass
class RemoteSource:
    url: str
    content: Optional[str] = None # None until a fetch succeeds
    include: bool = True

@dataclass
class CommandResult:
    output: str
    returncode: Optional[int] = None
    timed_out: bool = False

@dataclass
class DocumentResult:
    """Output of one build action."""
    text: str
    token_count: int # Authoritative count
    estimated_tokens: int # Cheap preview
    file_count: int = 0
    remote_count: int = 0

class BuildState(str, Enum):
    IDLE = "idle"
    BUILDING = "building"
    BUILT = "built"
