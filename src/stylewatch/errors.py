"""Error types reported through a session's ``error`` event."""

from pathlib import Path


class StylewatchError(Exception):
    """Base class for errors surfaced to session subscribers.

    Carries a human-readable message and, where known, the source location
    the error refers to.
    """

    def __init__(
        self,
        message: str,
        filename: str | Path | None = None,
        line: int | None = None,
        column: int | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.filename = str(filename) if filename is not None else None
        self.line = line
        self.column = column

    @property
    def location(self) -> str | None:
        """Location as ``file:line:column``, or None if unknown."""
        if self.filename is None:
            return None
        parts = [self.filename]
        if self.line is not None:
            parts.append(str(self.line))
            if self.column is not None:
                parts.append(str(self.column))
        return ":".join(parts)

    def __str__(self) -> str:
        location = self.location
        return f"{location}: {self.message}" if location else self.message


class ReadError(StylewatchError):
    """Raised when the entry file cannot be read."""

    pass


class CompileError(StylewatchError):
    """Raised when the stylesheet compiler rejects the source."""

    pass


class WatcherError(StylewatchError):
    """Raised for file system observation failures."""

    pass
