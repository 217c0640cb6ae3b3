"""Exception classes for tgrelabel.

File system failures are not wrapped: they surface as the built-in
``OSError`` family so callers can tell a missing file from a corrupt one.
"""

from __future__ import annotations


class RelabelError(Exception):
    """Base exception for all tgrelabel errors."""


class DecodeError(RelabelError):
    """Raised when an annotation file cannot be decoded."""


class ParseError(DecodeError):
    """Raised when decoded text does not follow the TextGrid grammar.

    Attributes:
        fragment: The offending piece of input (may be empty at end of input)
        line: 1-based line number where the fragment starts, if known
    """

    def __init__(self, message: str, fragment: str = "", line: int | None = None):
        self.message = message
        self.fragment = fragment
        self.line = line
        super().__init__(self._format())

    def _format(self) -> str:
        text = self.message
        if self.line is not None:
            text = f"line {self.line}: {text}"
        if self.fragment:
            text = f"{text} (at {self.fragment!r})"
        return text


class ValidationError(RelabelError):
    """Raised for invalid rules, token counts, or unserializable annotations."""


class SelectionError(RelabelError):
    """Raised when an item, match, or option index is out of range."""


class AudioError(RelabelError):
    """Raised when an output device, audio file, or playback fails."""
