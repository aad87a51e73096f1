from __future__ import annotations


class SrcEmbedError(Exception):
    """Base class for errors raised while embedding declaration sources."""


class DeclarationError(SrcEmbedError):
    """An error tied to a position in the processed source."""

    def __init__(self, message: str, line: int = 1, column: int = 1) -> None:
        super().__init__(f"{line}:{column}: {message}")
        self.reason = message
        self.line = line
        self.column = column


class MalformedDeclarationError(DeclarationError, ValueError):
    """Raised when the input is not a single syntactically valid item."""


class MarkerPlacementError(DeclarationError):
    """Raised when the activation marker is attached to something that is not an item."""
