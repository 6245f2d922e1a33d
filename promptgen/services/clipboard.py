# promptgen/services/clipboard.py
import pyperclip
from loguru import logger

def copy_to_clipboard(text: str) -> bool:
    """Copies text to the system clipboard. Returns False instead of raising."""
    try:
        pyperclip.copy(text)
    except pyperclip.PyperclipException as e:
        logger.error(f"Could not copy to clipboard: {e}")
        return False
    logger.info(f"Copied {len(text)} characters to clipboard.")
    return True
