# promptgen/core/token_counter.py
import math
from functools import lru_cache
from typing import Optional, Any

import tiktoken
from loguru import logger

DEFAULT_ENCODING = "cl100k_base" # Common for GPT-3.5/4
FALLBACK_ENCODING = "gpt2"
CHARS_PER_TOKEN = 4

def estimate_tokens(text: str) -> int:
    """Cheap preview count: ceil(characters / 4). Never used for reporting."""
    return math.ceil(len(text) / CHARS_PER_TOKEN)

def estimate_tokens_from_size(size_bytes: int) -> int:
    """Scan-time estimate from the on-disk size, avoids reading the file."""
    return math.ceil(size_bytes / CHARS_PER_TOKEN)

@lru_cache(maxsize=4) # Cache a few loaded encoder objects
def _get_cached_encoder(encoding_name: str) -> Optional[Any]:
    """Internal helper to load and cache encoder objects."""
    try:
        logger.debug(f"Attempting to load tiktoken encoder: {encoding_name}")
        encoder = tiktoken.get_encoding(encoding_name)
        logger.debug(f"Successfully loaded encoder '{encoding_name}'.")
        return encoder
    except Exception as e:
        # Encoding files are fetched on first use; offline machines land here
        logger.warning(f"Failed to get tiktoken encoder '{encoding_name}': {e}. Trying fallback '{FALLBACK_ENCODING}'.")
        if encoding_name == FALLBACK_ENCODING:
             logger.error(f"Fallback encoder '{FALLBACK_ENCODING}' also failed. No encoder available.")
             return None
        return _get_cached_encoder(FALLBACK_ENCODING)

def count_tokens(text: str, encoding_name: str = DEFAULT_ENCODING) -> int:
    """
    Authoritative token count for an assembled document.
    Degrades to estimate_tokens() if no tiktoken encoder can be loaded.
    """
    if not text:
        return 0

    encoder = _get_cached_encoder(encoding_name)
    if encoder is None:
        return estimate_tokens(text)
    try:
        # Special-token text inside file contents is counted as plain text
        return len(encoder.encode(text, disallowed_special=()))
    except Exception as e:
        logger.error(f"Error encoding text for token count with '{encoding_name}': {e}")
        estimated = estimate_tokens(text)
        logger.warning(f"Falling back to character-based estimation: {estimated} tokens.")
        return estimated

def format_token_status(count: int, limit: int) -> str:
    """Status line shown next to the build button."""
    percent = (count / limit) * 100 if limit else 0.0
    return f"Token count: {count:,} / {limit:,} ({percent:.2f}%)"
