"""Exceptions raised by git backends."""

from __future__ import annotations


class GitError(Exception):
    """Exception raised when a git operation fails."""

    def __init__(self, message: str, command: list[str] | None = None, stderr: str = ""):
        super().__init__(message)
        self.command = command
        self.stderr = stderr

    @property
    def detail(self) -> str:
        """The most specific description available: git's stderr, else the message."""
        return self.stderr or str(self)

    def mentions(self, *needles: str) -> bool:
        """Check whether the message or stderr contains any of the given fragments."""
        haystack = f"{self}\n{self.stderr}".lower()
        return any(needle.lower() in haystack for needle in needles)
