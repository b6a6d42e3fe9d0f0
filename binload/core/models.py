"""
binload Data Models
====================

Pydantic-based models for the normalized, format-agnostic view of an
executable image: one :class:`Binary` owning an ordered list of
:class:`Section` records and an ordered list of function :class:`Symbol`
records.

Sections refer to their owner through ``binary_id`` only; lookups always
go through the :class:`Binary`.  Sections and symbols are immutable once
constructed.

References:
    - TIS Committee. (1995). Executable and Linkable Format (ELF) Specification.
    - Microsoft. (2024). PE Format. Microsoft Learn.
"""

from __future__ import annotations

import enum
from typing import Iterator, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr, model_validator

from binload.core.buffers import SectionBuffer

U64_MAX: int = 0xFFFF_FFFF_FFFF_FFFF

UNNAMED_SECTION: str = "<unnamed>"


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------

class BinaryType(str, enum.Enum):
    """Executable container type.

    ``AUTO`` is the request sentinel for format autodetection.  ``UNKNOWN``
    is an alias of the same member and reads better where it means
    "not resolved".
    """
    AUTO = "auto"
    ELF = "elf"
    PE = "pe"
    UNKNOWN = "auto"


class BinaryArch(str, enum.Enum):
    """Target architecture (``UNKNOWN`` aliases ``NONE``)."""
    NONE = "none"
    X86 = "x86"
    UNKNOWN = "none"


class SectionType(str, enum.Enum):
    """Purpose of a section; code takes precedence over data."""
    NONE = "none"
    CODE = "code"
    DATA = "data"


class SymbolType(str, enum.Enum):
    """Symbol kind.  Only functions are ever materialized."""
    UNKNOWN = "unknown"
    FUNCTION = "function"


# ---------------------------------------------------------------------------
# Section
# ---------------------------------------------------------------------------

class Section(BaseModel):
    """One code or data region of the binary with its own byte buffer.

    Attributes:
        name: Section name (``"<unnamed>"`` when the container has none).
        type: Code or data.
        vma: Base virtual address.
        size: Size in bytes; may be zero.
        binary_id: Identifier of the owning :class:`Binary`.
        buffer: Owned contents, exactly ``size`` bytes long.
    """
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    name: str = Field(min_length=1)
    type: SectionType
    vma: int = Field(ge=0, le=U64_MAX)
    size: int = Field(ge=0, le=U64_MAX)
    binary_id: UUID
    buffer: SectionBuffer = Field(exclude=True, repr=False)

    @model_validator(mode="after")
    def _check_buffer(self) -> Section:
        if not self.buffer.released and len(self.buffer) != self.size:
            raise ValueError(
                f"section {self.name!r}: buffer holds {len(self.buffer)} bytes, "
                f"expected {self.size}"
            )
        return self

    @property
    def end(self) -> int:
        """First address past the section."""
        return self.vma + self.size

    @property
    def data(self) -> memoryview:
        """Read-only view over the section contents."""
        return self.buffer.view()

    def contains(self, addr: int) -> bool:
        """Return ``True`` iff ``vma <= addr < vma + size``."""
        return self.vma <= addr < self.vma + self.size


# ---------------------------------------------------------------------------
# Symbol
# ---------------------------------------------------------------------------

class Symbol(BaseModel):
    """A function symbol from the static or dynamic symbol table."""
    model_config = ConfigDict(frozen=True)

    type: SymbolType = SymbolType.FUNCTION
    name: str
    addr: int = Field(ge=0, le=U64_MAX)


# ---------------------------------------------------------------------------
# Binary
# ---------------------------------------------------------------------------

class Binary(BaseModel):
    """Normalized executable image.

    A ``Binary`` is only ever constructed with a resolved container type
    and architecture.  It owns the buffers of its sections: :meth:`release`
    frees them exactly once, after which the binary holds no sections.
    It can be used as a context manager to release on exit.

    Attributes:
        id: Owner identifier referenced by every section.
        filename: Path the binary was loaded from.
        type: Container type (ELF or PE).
        type_str: Target name reported by the format adapter.
        arch: Architecture (x86).
        arch_str: Printable machine name reported by the format adapter.
        bits: Address width, 32 or 64.
        entry: Entry point virtual address.
        sections: Code and data sections in container order.
        symbols: Function symbols, static table first then dynamic.
    """
    model_config = ConfigDict(frozen=True)

    id: UUID = Field(default_factory=uuid4)
    filename: str
    type: BinaryType
    type_str: str = ""
    arch: BinaryArch
    arch_str: str = ""
    bits: int
    entry: int = Field(default=0, ge=0, le=U64_MAX)
    sections: list[Section] = Field(default_factory=list)
    symbols: list[Symbol] = Field(default_factory=list)

    _released: bool = PrivateAttr(default=False)

    @model_validator(mode="after")
    def _check_resolved(self) -> Binary:
        if self.type is BinaryType.AUTO:
            raise ValueError("binary type must be resolved")
        if self.arch is BinaryArch.NONE:
            raise ValueError("binary architecture must be resolved")
        if self.bits not in (32, 64):
            raise ValueError(f"unsupported address width {self.bits}")
        for sec in self.sections:
            if sec.binary_id != self.id:
                raise ValueError(
                    f"section {sec.name!r} belongs to another binary"
                )
        return self

    # ------------------------------------------------------------------ #
    #  Queries
    # ------------------------------------------------------------------ #

    def get_section(self, name: str) -> Optional[Section]:
        """Return the first section called *name*, in container order."""
        for sec in self.sections:
            if sec.name == name:
                return sec
        return None

    def get_text_section(self) -> Optional[Section]:
        """Return the first ``.text`` section, if any."""
        return self.get_section(".text")

    def section_for_address(self, addr: int) -> Optional[Section]:
        """Return the first section whose range contains *addr*."""
        for sec in self.sections:
            if sec.contains(addr):
                return sec
        return None

    def get_symbol(self, name: str) -> Optional[Symbol]:
        """Return the first symbol called *name* (static table wins)."""
        for sym in self.symbols:
            if sym.name == name:
                return sym
        return None

    def iter_code_sections(self) -> Iterator[Section]:
        """Yield code sections in container order."""
        return (sec for sec in self.sections if sec.type is SectionType.CODE)

    def function_symbols(self) -> list[Symbol]:
        return [sym for sym in self.symbols if sym.type is SymbolType.FUNCTION]

    # ------------------------------------------------------------------ #
    #  Lifecycle
    # ------------------------------------------------------------------ #

    @property
    def released(self) -> bool:
        """``True`` once :meth:`release` has run."""
        return self._released

    def release(self) -> None:
        """Release every section buffer and drop the sections.

        The binary gives up its sections on the first call, so a second
        call has nothing left to release.
        """
        if self._released:
            return
        self._released = True
        sections = list(self.sections)
        self.sections.clear()
        for sec in sections:
            sec.buffer.release()

    def __enter__(self) -> Binary:
        return self

    def __exit__(self, *exc: object) -> None:
        self.release()
