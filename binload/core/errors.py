"""
Loader Error Kinds
===================

Every failure of a build aborts the whole build and surfaces as exactly one
:class:`LoadError` subclass.  The subclass identifies the failing stage; the
optional ``diagnostic`` carries the message reported by the underlying
format-parsing library.
"""

from __future__ import annotations

import enum
from typing import Optional


class LoadStage(str, enum.Enum):
    """Pipeline stage at which a build failed."""
    OPEN = "open"
    FORMAT = "format"
    ARCHITECTURE = "architecture"
    SYMBOLS = "symbols"
    SECTIONS = "sections"


class LoadError(Exception):
    """Base class of all binary loading failures.

    Attributes:
        stage: Failing pipeline stage.
        path: Path of the binary being loaded (may be empty).
        diagnostic: Underlying adapter/library message, if any.
    """

    stage: LoadStage = LoadStage.OPEN

    def __init__(
        self,
        message: str,
        *,
        path: str = "",
        diagnostic: Optional[str] = None,
    ) -> None:
        self.message = message
        self.path = path
        self.diagnostic = diagnostic
        super().__init__(str(self))

    def __str__(self) -> str:
        if self.diagnostic:
            return f"{self.message} ({self.diagnostic})"
        return self.message

    @property
    def kind(self) -> str:
        """Name of the error kind, e.g. ``"OpenError"``."""
        return type(self).__name__


class OpenError(LoadError):
    """File missing, unreadable, or not a recognised executable container."""
    stage = LoadStage.OPEN


class UnsupportedFormat(LoadError):
    """Container recognised but neither ELF nor PE (or not the requested one)."""
    stage = LoadStage.FORMAT


class UnsupportedArchitecture(LoadError):
    """Machine type other than 32-bit or 64-bit x86."""
    stage = LoadStage.ARCHITECTURE


class SymbolSizeError(LoadError):
    """The adapter reported an invalid symbol table size."""
    stage = LoadStage.SYMBOLS


class SymbolReadError(LoadError):
    """A present symbol table could not be read."""
    stage = LoadStage.SYMBOLS


class SectionReadError(LoadError):
    """Section contents could not be read."""
    stage = LoadStage.SECTIONS


class OutOfMemory(LoadError):
    """A section buffer could not be allocated."""
    stage = LoadStage.SECTIONS
