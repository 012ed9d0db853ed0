"""Errors raised while sampling a species tree."""
from __future__ import annotations

from typing import Optional


class SamplerError(Exception):
    """Base class for errors reported to the user."""


class GrammarError(SamplerError):
    """Raised when the Newick text is syntactically malformed."""

    def __init__(self, message: str, position: int, fragment: str = "") -> None:
        self.position = position
        self.fragment = fragment
        detail = f"{message} at position {position}"
        if fragment:
            detail += f" near {fragment!r}"
        super().__init__(detail)


class StructureError(SamplerError):
    """Raised when a well-formed tree cannot be used (non-binary, trailing data...)."""


class EmptySampleError(StructureError):
    """Raised when zero leaves are requested."""


class TreeIOError(SamplerError):
    """Wraps an OSError raised while reading or writing tree files."""

    def __init__(self, message: str, path: Optional[str] = None) -> None:
        self.path = path
        super().__init__(message)


class InvariantViolation(RuntimeError):
    """A flat tree or depth annotation is internally inconsistent.

    This signals a bug or corrupted state rather than bad user input, so it is
    not a SamplerError and is never reported as a normal failure.
    """
