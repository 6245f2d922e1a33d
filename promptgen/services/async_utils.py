# promptgen/services/async_utils.py
"""
Background task dispatch with a single result channel.

Tasks own everything they need and post one TaskMessage when they finish.
The control thread drains the channel on its own schedule and never blocks.
"""
import os
import queue
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Callable, Hashable, List, Optional
from loguru import logger

_thread_pool: Optional[ThreadPoolExecutor] = None

@dataclass
class TaskMessage:
    kind: str # e.g. "remote", "terminal"
    key: Hashable # Identifies the item the result belongs to
    payload: Any = None
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None

def get_global_thread_pool() -> ThreadPoolExecutor:
    """Gets the process-wide background executor, creating it if necessary."""
    global _thread_pool
    if _thread_pool is None:
        max_workers = min(32, (os.cpu_count() or 1) + 4)
        _thread_pool = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="promptgen-bg")
        logger.info(f"Initialized background thread pool. Max threads: {max_workers}")
    return _thread_pool

def shutdown_global_thread_pool(wait: bool = True) -> None:
    """Shuts the pool down; the next submit creates a new one."""
    global _thread_pool
    if _thread_pool is not None:
        _thread_pool.shutdown(wait=wait)
        _thread_pool = None

class ResultChannel:
    """Single-consumer mailbox for background results."""

    def __init__(self):
        self._queue: "queue.SimpleQueue[TaskMessage]" = queue.SimpleQueue()

    def post(self, message: TaskMessage) -> None:
        self._queue.put(message)

    def drain(self) -> List[TaskMessage]:
        """Returns everything posted so far without waiting."""
        messages: List[TaskMessage] = []
        while True:
            try:
                messages.append(self._queue.get_nowait())
            except queue.Empty:
                return messages

    def wait(self, timeout: Optional[float] = None) -> TaskMessage:
        """Blocks for the next message. For headless callers and tests only."""
        return self._queue.get(timeout=timeout)

def run_in_background(channel: ResultChannel, kind: str, key: Hashable,
                      func: Callable[..., Any], *args, **kwargs) -> None:
    """Runs `func` on the background pool and posts its outcome to `channel`."""
    def task():
        try:
            payload = func(*args, **kwargs)
        except Exception as e:
            logger.warning(f"Background task {kind}:{key!r} failed: {e}")
            channel.post(TaskMessage(kind=kind, key=key, error=e))
        else:
            channel.post(TaskMessage(kind=kind, key=key, payload=payload))

    pool = get_global_thread_pool()
    logger.debug(f"Submitting background task {kind}:{key!r}")
    pool.submit(task)
