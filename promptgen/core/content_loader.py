# promptgen/core/content_loader.py
import os
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import List, Optional, Tuple

from loguru import logger

from .models import FileEntry
from .token_counter import estimate_tokens

BINARY_SENTINEL = "[Binary file omitted]"
TRUNCATION_MARKER = "\n\n[... truncated {omitted} bytes ...]\n\n"
SNIFF_BYTES = 8192

def read_error_marker(err: Exception) -> str:
    return f"[Error reading file: {err}]"

def load_capped(path: Path, max_bytes: int, sniff_bytes: int = SNIFF_BYTES) -> str:
    """
    Reads a file as text, bounded to roughly `max_bytes`.

    Files with a NUL byte in their first `sniff_bytes` are reported as binary.
    Oversized files keep a head and a tail block of max_bytes // 2 each,
    joined by a truncation marker. Decoding never fails (invalid bytes are replaced).
    Raises OSError when the file cannot be opened or read.
    """
    with open(path, "rb") as f:
        prefix = f.read(sniff_bytes)
        if b"\x00" in prefix:
            logger.debug(f"Binary content detected in {path.name}")
            return BINARY_SENTINEL

        size = os.fstat(f.fileno()).st_size
        if size <= max_bytes:
            f.seek(0)
            return f.read().decode("utf-8", errors="replace")

        half = max_bytes // 2
        f.seek(0)
        head = f.read(half)
        f.seek(-half, os.SEEK_END)
        tail = f.read(half)

    omitted = size - len(head) - len(tail)
    logger.debug(f"Truncating {path.name}: {size} bytes, omitting {omitted}")
    return (
        head.decode("utf-8", errors="replace")
        + TRUNCATION_MARKER.format(omitted=omitted)
        + tail.decode("utf-8", errors="replace")
    )

def _load_one(index: int, path: Path, max_bytes: int, sniff_bytes: int) -> Tuple[int, str]:
    # Worker body: touches only its own path and returns its own result
    try:
        return index, load_capped(path, max_bytes, sniff_bytes)
    except OSError as e:
        logger.warning(f"Error reading file {path}: {e}")
        return index, read_error_marker(e)

def load_selected(entries: List[FileEntry], max_bytes: int,
                  workers: Optional[int] = None, sniff_bytes: int = SNIFF_BYTES) -> int:
    """
    Loads content for every selected entry in parallel and blocks until all
    reads finish. Results are written back only after the pool is joined.
    Returns the number of entries loaded.
    """
    jobs = [(i, e.path) for i, e in enumerate(entries) if e.selected]
    if not jobs:
        return 0

    max_workers = workers or os.cpu_count() or 1
    logger.info(f"Loading {len(jobs)} selected files with {max_workers} workers (cap {max_bytes} bytes)")
    with ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="content-load") as pool:
        futures = [pool.submit(_load_one, i, path, max_bytes, sniff_bytes) for i, path in jobs]
        results = [future.result() for future in futures]

    for index, text in results:
        entry = entries[index]
        entry.content = text
        entry.token_count = estimate_tokens(text)
    return len(results)
