"""
ELF Format Adapter
===================

:class:`FormatAdapter` implementation backed by ``pyelftools``.

Section flags follow the usual object-file-library reading of ELF section
headers: an executable section is code; any other allocated section that
occupies file space is data; ``.bss``, debug information, symbol/string
tables and relocations are neither.

The static symbol table is ``SHT_SYMTAB``, the dynamic one ``SHT_DYNSYM``.
Both ``STT_FUNC`` and ``STT_GNU_IFUNC`` entries are reported as functions.

References:
    - TIS Committee. (1995). Tool Interface Standard (TIS) Executable and
      Linkable Format (ELF) Specification, Version 1.2.
    - pyelftools: https://github.com/eliben/pyelftools
"""

from __future__ import annotations

from pathlib import Path
from typing import BinaryIO, Iterator, Optional

from elftools.common.exceptions import ELFError
from elftools.elf.constants import SH_FLAGS
from elftools.elf.elffile import ELFFile
from elftools.elf.sections import Section as ELFSection
from elftools.elf.sections import SymbolTableSection

from binload.parsers.base import (
    AdapterError,
    AdapterFlavor,
    FormatAdapter,
    MachineCode,
    RawSection,
    RawSymbol,
    SectionFlags,
    SymbolFlags,
    SymbolTableKind,
)


# ---------------------------------------------------------------------------
# ELF Constants
# ---------------------------------------------------------------------------

ELF_MAGIC: bytes = b"\x7fELF"

_EM_MACHINES: dict[str, MachineCode] = {
    "EM_386": MachineCode.I386,
    "EM_X86_64": MachineCode.X86_64,
    "EM_ARM": MachineCode.ARM,
    "EM_AARCH64": MachineCode.AARCH64,
    "EM_MIPS": MachineCode.MIPS,
    "EM_PPC": MachineCode.POWERPC,
    "EM_PPC64": MachineCode.POWERPC64,
    "EM_RISCV": MachineCode.RISCV,
    "EM_SPARC": MachineCode.SPARC,
    "EM_SPARCV9": MachineCode.SPARC,
    "EM_IA_64": MachineCode.IA64,
}

_TARGET_NAMES: dict[tuple[int, MachineCode], str] = {
    (32, MachineCode.I386): "elf32-i386",
    (64, MachineCode.X86_64): "elf64-x86-64",
    (32, MachineCode.X86_64_X32): "elf32-x86-64",
}

_SYMTAB_TYPES: dict[SymbolTableKind, str] = {
    SymbolTableKind.STATIC: "SHT_SYMTAB",
    SymbolTableKind.DYNAMIC: "SHT_DYNSYM",
}

# Library exceptions that mean "this file cannot be decoded"
_DECODE_ERRORS = (ELFError, ValueError, IndexError, KeyError, OSError)


class ELFAdapter(FormatAdapter):
    """ELF32/ELF64 adapter over :class:`elftools.elf.elffile.ELFFile`.

    The adapter owns the open file object for its lifetime; pyelftools
    reads lazily from it.
    """

    format_name = "elf"

    def __init__(self, path: str | Path, stream: BinaryIO, elffile: ELFFile) -> None:
        super().__init__(path)
        self._stream = stream
        self._elf = elffile

    @classmethod
    def open(cls, path: str | Path) -> ELFAdapter:
        try:
            stream = open(path, "rb")
        except OSError as exc:
            raise AdapterError(f"cannot open file: {exc.strerror or exc}") from exc

        try:
            elffile = ELFFile(stream)
            # Decode the section header table up front so truncated headers
            # are rejected at open time.
            elffile.num_sections()
        except _DECODE_ERRORS as exc:
            stream.close()
            raise AdapterError(f"file format not recognized as ELF: {exc}") from exc

        return cls(path, stream, elffile)

    @classmethod
    def matches(cls, header: bytes) -> bool:
        return header[:4] == ELF_MAGIC

    def _close(self) -> None:
        self._stream.close()

    # ------------------------------------------------------------------ #
    #  Header information
    # ------------------------------------------------------------------ #

    def flavor(self) -> AdapterFlavor:
        return AdapterFlavor.ELF

    def machine(self) -> MachineCode:
        code = _EM_MACHINES.get(self._elf.header["e_machine"], MachineCode.UNKNOWN)
        if code is MachineCode.X86_64 and self._elf.elfclass == 32:
            return MachineCode.X86_64_X32
        return code

    def entry_point(self) -> int:
        return int(self._elf.header["e_entry"])

    def target_name(self) -> str:
        bits = self._elf.elfclass
        machine = self.machine()
        name = _TARGET_NAMES.get((bits, machine))
        if name is not None:
            return name
        endian = "little" if self._elf.little_endian else "big"
        suffix = "" if machine is MachineCode.UNKNOWN else machine.name.lower()
        return f"elf{bits}-{endian}{suffix}"

    # ------------------------------------------------------------------ #
    #  Sections
    # ------------------------------------------------------------------ #

    def iter_sections(self) -> Iterator[RawSection]:
        for index in range(self._elf.num_sections()):
            sec = self._get_section(index)
            if sec["sh_type"] == "SHT_NULL":
                continue
            yield RawSection(
                index=index,
                name=sec.name or None,
                vma=int(sec["sh_addr"]),
                size=int(sec["sh_size"]),
                flags=self._section_flags(sec),
                native=sec,
            )

    def _read_section(self, raw: RawSection, offset: int, count: int) -> bytes:
        if not raw.flags & SectionFlags.HAS_CONTENTS:
            return bytes(count)
        try:
            data = raw.native.data()
        except _DECODE_ERRORS as exc:
            raise AdapterError(f"cannot read section contents: {exc}") from exc
        return data[offset:offset + count]

    def _get_section(self, index: int) -> ELFSection:
        try:
            return self._elf.get_section(index)
        except _DECODE_ERRORS as exc:
            raise AdapterError(f"bad section header {index}: {exc}") from exc

    @staticmethod
    def _section_flags(sec: ELFSection) -> SectionFlags:
        """Reconcile ELF section type and flags into :class:`SectionFlags`."""
        sh_flags = sec["sh_flags"]
        has_bits = sec["sh_type"] != "SHT_NOBITS"

        flags = SectionFlags.NONE
        if has_bits:
            flags |= SectionFlags.HAS_CONTENTS
        if sh_flags & SH_FLAGS.SHF_ALLOC:
            flags |= SectionFlags.ALLOC
            if has_bits:
                flags |= SectionFlags.LOAD
        if sh_flags & SH_FLAGS.SHF_EXECINSTR:
            flags |= SectionFlags.CODE
        elif flags & SectionFlags.LOAD:
            flags |= SectionFlags.DATA
        return flags

    # ------------------------------------------------------------------ #
    #  Symbols
    # ------------------------------------------------------------------ #

    def symtab_upper_bound(self, kind: SymbolTableKind) -> int:
        try:
            table = self._find_symbol_table(kind)
        except AdapterError as exc:
            self.set_error(str(exc))
            return -1
        if table is None:
            return 0
        if not table["sh_entsize"]:
            self.set_error(f"{table.name}: zero symbol entry size")
            return -1
        # Entry 0 is the reserved null symbol.
        return max(table.num_symbols() - 1, 0)

    def canonicalize_symtab(self, kind: SymbolTableKind) -> list[RawSymbol]:
        table = self._find_symbol_table(kind)
        if table is None:
            return []

        relocatable = self._elf.header["e_type"] == "ET_REL"
        symbols: list[RawSymbol] = []
        try:
            for idx, sym in enumerate(table.iter_symbols()):
                if idx == 0:
                    continue
                symbols.append(RawSymbol(
                    name=sym.name,
                    value=self._symbol_value(sym, relocatable),
                    flags=self._symbol_flags(sym),
                ))
        except _DECODE_ERRORS as exc:
            self.set_error(str(exc))
            raise AdapterError(f"failed to read {kind.value} symbol table: {exc}") from exc
        return symbols

    def _find_symbol_table(self, kind: SymbolTableKind) -> Optional[SymbolTableSection]:
        wanted = _SYMTAB_TYPES[kind]
        for index in range(self._elf.num_sections()):
            sec = self._get_section(index)
            if sec["sh_type"] == wanted and isinstance(sec, SymbolTableSection):
                return sec
        return None

    def _symbol_value(self, sym: object, relocatable: bool) -> int:
        value = int(sym["st_value"])  # type: ignore[index]
        shndx = sym["st_shndx"]  # type: ignore[index]
        # Symbols of relocatable objects are section-relative.
        if relocatable and isinstance(shndx, int) and 0 < shndx < self._elf.num_sections():
            value += int(self._get_section(shndx)["sh_addr"])
        return value & 0xFFFF_FFFF_FFFF_FFFF

    @staticmethod
    def _symbol_flags(sym: object) -> SymbolFlags:
        """Reconcile ELF symbol binding and type into :class:`SymbolFlags`."""
        info = sym["st_info"]  # type: ignore[index]
        bind = info["bind"]
        stype = info["type"]

        flags = SymbolFlags.NONE
        if bind == "STB_LOCAL":
            flags |= SymbolFlags.LOCAL
        elif bind == "STB_WEAK":
            flags |= SymbolFlags.WEAK
        else:
            flags |= SymbolFlags.GLOBAL

        if stype == "STT_FUNC":
            flags |= SymbolFlags.FUNCTION
        elif stype in ("STT_GNU_IFUNC", "STT_LOOS"):
            flags |= SymbolFlags.FUNCTION
        elif stype in ("STT_OBJECT", "STT_COMMON", "STT_TLS"):
            flags |= SymbolFlags.OBJECT
        elif stype == "STT_SECTION":
            flags |= SymbolFlags.SECTION
        elif stype == "STT_FILE":
            flags |= SymbolFlags.FILE

        if sym["st_shndx"] == "SHN_UNDEF":  # type: ignore[index]
            flags |= SymbolFlags.UNDEFINED
        return flags
