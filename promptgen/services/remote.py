# promptgen/services/remote.py
import re
from typing import List, Optional

import httpx
from bs4 import BeautifulSoup
from loguru import logger

from ..core.models import RemoteSource
from .async_utils import ResultChannel, TaskMessage, run_in_background

REMOTE_KIND = "remote"
_BLANK_RUNS = re.compile(r"\n{3,}")

def extract_text(html_text: str) -> str:
    """Visible text of an HTML page, one block per line."""
    soup = BeautifulSoup(html_text, "html.parser")
    for tag in soup(["script", "style", "noscript", "template"]):
        tag.decompose()
    text = soup.get_text(separator="\n")
    lines = [line.rstrip() for line in text.splitlines()]
    return _BLANK_RUNS.sub("\n\n", "\n".join(lines)).strip() + "\n"

def fetch_remote_text(url: str, timeout: float = 20) -> str:
    """Single blocking GET. HTML is reduced to text, other bodies are returned as-is."""
    logger.info(f"Fetching remote source: {url}")
    response = httpx.get(url, timeout=timeout, follow_redirects=True)
    response.raise_for_status()
    content_type = response.headers.get("content-type", "")
    if "html" in content_type.lower():
        return extract_text(response.text)
    return response.text

class RemoteSources:
    """
    URLs whose text can be included in the document.

    Fetches run in the background; results arrive through `channel` and are
    merged by `apply()` on the control thread. A failed fetch leaves the
    content empty until `refetch()` is called.
    """

    def __init__(self, channel: ResultChannel, timeout: float = 20):
        self.channel = channel
        self.timeout = timeout
        self.sources: List[RemoteSource] = []

    def add_url(self, url: str, fetch: bool = True) -> Optional[int]:
        url = url.strip()
        if not url:
            return None
        self.sources.append(RemoteSource(url=url))
        index = len(self.sources) - 1
        if fetch:
            self.refetch(index)
        return index

    def refetch(self, index: int) -> None:
        source = self.sources[index]
        # Key on index and URL so a result for a removed entry is not misapplied
        run_in_background(self.channel, REMOTE_KIND, (index, source.url),
                          fetch_remote_text, source.url, self.timeout)

    def set_included(self, index: int, include: bool) -> None:
        self.sources[index].include = include

    def remove(self, index: int) -> RemoteSource:
        return self.sources.pop(index)

    def apply(self, message: TaskMessage) -> bool:
        """Merges one fetch result. Returns False if it no longer matches an entry."""
        index, url = message.key
        if index >= len(self.sources) or self.sources[index].url != url:
            logger.debug(f"Dropping stale fetch result for {url}")
            return False
        if not message.ok:
            logger.warning(f"Fetch failed for {url}: {message.error}")
            return False
        self.sources[index].content = message.payload
        logger.info(f"Fetched {len(message.payload)} characters from {url}")
        return True

    def included(self) -> List[RemoteSource]:
        return [s for s in self.sources if s.include and s.content is not None]
