"""
Format Adapter Contract
========================

Abstract interface between the binary model builder and the third-party
libraries that decode container formats.  An adapter opens one file, reports
its flavour, machine and entry point, and exposes raw sections and raw
symbol table entries with format-independent flag sets.

Adapters keep a sticky ``error`` string in the manner of classic object
file libraries: probing may leave a pessimistic message behind even when the
file was accepted, so callers clear it before trusting the flavour.
"""

from __future__ import annotations

import abc
import enum
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, ClassVar, Iterator, Optional


class AdapterError(Exception):
    """Raised by adapters when the underlying library cannot decode a file."""


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------

class AdapterFlavor(str, enum.Enum):
    """Container family as reported by an adapter."""
    UNKNOWN = "unknown"
    ELF = "elf"
    COFF = "coff"
    MACH_O = "mach-o"


class MachineCode(str, enum.Enum):
    """Normalized machine type.  Values are printable architecture names."""
    UNKNOWN = "unknown"
    I386 = "i386"
    X86_64 = "i386:x86-64"
    X86_64_X32 = "i386:x64-32"
    ARM = "arm"
    AARCH64 = "aarch64"
    MIPS = "mips"
    POWERPC = "powerpc"
    POWERPC64 = "powerpc:common64"
    RISCV = "riscv"
    SPARC = "sparc"
    IA64 = "ia64"


class SymbolTableKind(str, enum.Enum):
    """Which symbol table to read."""
    STATIC = "static"
    DYNAMIC = "dynamic"


class SectionFlags(enum.IntFlag):
    """Format-independent section attributes."""
    NONE = 0
    ALLOC = 0x01
    LOAD = 0x02
    CODE = 0x08
    DATA = 0x10
    HAS_CONTENTS = 0x20


class SymbolFlags(enum.IntFlag):
    """Format-independent symbol attributes."""
    NONE = 0
    LOCAL = 0x001
    GLOBAL = 0x002
    WEAK = 0x004
    FUNCTION = 0x008
    OBJECT = 0x010
    SECTION = 0x020
    FILE = 0x040
    UNDEFINED = 0x080


# ---------------------------------------------------------------------------
# Raw records
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class RawSection:
    """A section descriptor as reported by an adapter.

    Attributes:
        index: Position in the container's section table.
        name: Section name, or ``None`` when the container has none.
        vma: Virtual memory address.
        size: Size in bytes.
        flags: Reconciled :class:`SectionFlags`.
        native: Library object backing this section (adapter private).
    """
    index: int
    name: Optional[str]
    vma: int
    size: int
    flags: SectionFlags
    native: Any = field(default=None, repr=False, compare=False)


@dataclass(frozen=True, slots=True)
class RawSymbol:
    """A symbol table entry as reported by an adapter."""
    name: str
    value: int
    flags: SymbolFlags


# ---------------------------------------------------------------------------
# FormatAdapter
# ---------------------------------------------------------------------------

class FormatAdapter(abc.ABC):
    """Base class for container format adapters.

    Subclasses implement :meth:`open` as a classmethod that raises
    :class:`AdapterError` when the file is not in their format.  Handles are
    context managers; :meth:`close` may be called any number of times.
    """

    #: Short format name, used for explicit format requests.
    format_name: ClassVar[str] = ""

    def __init__(self, path: str | Path) -> None:
        self._path = str(path)
        self._error: Optional[str] = None
        self._closed = False

    # ------------------------------------------------------------------ #
    #  Construction / teardown
    # ------------------------------------------------------------------ #

    @classmethod
    @abc.abstractmethod
    def open(cls, path: str | Path) -> FormatAdapter:
        """Open *path*; raise :class:`AdapterError` if it is not this format."""

    @classmethod
    def matches(cls, header: bytes) -> bool:
        """Return ``True`` if *header* carries this format's magic number."""
        return False

    def close(self) -> None:
        """Release the file handle held by the adapter."""
        if self._closed:
            return
        self._closed = True
        self._close()

    @abc.abstractmethod
    def _close(self) -> None: ...

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def path(self) -> str:
        return self._path

    def __enter__(self) -> FormatAdapter:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    # ------------------------------------------------------------------ #
    #  Sticky error state
    # ------------------------------------------------------------------ #

    @property
    def error(self) -> Optional[str]:
        """Last error message recorded on this handle."""
        return self._error

    def set_error(self, message: str) -> None:
        self._error = message

    def clear_error(self) -> None:
        self._error = None

    # ------------------------------------------------------------------ #
    #  Header information
    # ------------------------------------------------------------------ #

    @abc.abstractmethod
    def flavor(self) -> AdapterFlavor: ...

    @abc.abstractmethod
    def machine(self) -> MachineCode: ...

    @abc.abstractmethod
    def entry_point(self) -> int: ...

    @abc.abstractmethod
    def target_name(self) -> str:
        """Target name such as ``elf64-x86-64`` or ``pei-i386``."""

    def printable_arch(self) -> str:
        """Printable machine name such as ``i386:x86-64``."""
        return self.machine().value

    # ------------------------------------------------------------------ #
    #  Sections
    # ------------------------------------------------------------------ #

    @abc.abstractmethod
    def iter_sections(self) -> Iterator[RawSection]:
        """Yield raw sections in the container's native order."""

    @abc.abstractmethod
    def _read_section(self, raw: RawSection, offset: int, count: int) -> bytes:
        """Return up to *count* content bytes of *raw* starting at *offset*."""

    def get_section_contents(
        self,
        raw: RawSection,
        buffer: memoryview,
        offset: int,
        count: int,
    ) -> None:
        """Copy *count* bytes of section contents into *buffer*.

        Raises:
            AdapterError: If the library fails or returns fewer bytes than
                requested.
        """
        if count == 0:
            return
        if offset < 0 or offset + count > raw.size:
            raise AdapterError(
                f"range {offset:#x}+{count:#x} is outside section of "
                f"size {raw.size:#x}"
            )
        data = self._read_section(raw, offset, count)
        if len(data) < count:
            raise AdapterError(
                f"file truncated: got {len(data):#x} of {count:#x} bytes"
            )
        buffer[:count] = data[:count]

    # ------------------------------------------------------------------ #
    #  Symbols
    # ------------------------------------------------------------------ #

    @abc.abstractmethod
    def symtab_upper_bound(self, kind: SymbolTableKind) -> int:
        """Number of raw entries in the table; 0 if absent, negative on error."""

    @abc.abstractmethod
    def canonicalize_symtab(self, kind: SymbolTableKind) -> list[RawSymbol]:
        """Return the raw entries of the table.

        Raises:
            AdapterError: If the table is present but cannot be read.
        """
