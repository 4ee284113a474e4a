"""
Accumulated output text driven by committed gestures.
"""

import logging

from asl_tracker.core.types import TextEdit, TextEditKind

logger = logging.getLogger(__name__)


class TextBuffer:
    """Append / space / delete-last-character text surface."""

    def __init__(self, initial: str = ""):
        self._text = initial

    def apply(self, edit: TextEdit) -> str:
        """Apply a text edit and return the resulting text."""
        if edit.kind is TextEditKind.SPACE:
            self.append_space()
        elif edit.kind is TextEditKind.DELETE:
            self.delete_last()
        else:
            self.append(edit.text)
        return self._text

    def append(self, text: str):
        self._text += text

    def append_space(self):
        self._text += " "

    def delete_last(self):
        # No-op on empty text
        self._text = self._text[:-1]

    def clear(self):
        logger.debug("Output text cleared (%d chars)", len(self._text))
        self._text = ""

    @property
    def text(self) -> str:
        return self._text

    def __len__(self):
        return len(self._text)
