"""
Clipboard access for the copy action
"""

import pyperclip

from qx.errors import ClipboardError


def copy_to_clipboard(text: str) -> None:
    """Copy text to the system clipboard"""
    try:
        pyperclip.copy(text)
    except pyperclip.PyperclipException as e:
        raise ClipboardError(f"clipboard copy failed: {e}") from e
