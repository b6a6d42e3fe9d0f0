"""
PE/COFF Format Adapter
=======================

:class:`FormatAdapter` implementation backed by ``pefile``.

Sections are reported with ``vma = ImageBase + VirtualAddress``.  Their size
is the raw (on-disk) size, clipped to the virtual size when the latter is
non-zero and smaller, so contents never include file-alignment padding.

Symbol tables:

* static -- the COFF symbol table referenced by the file header (present in
  images produced by MinGW and in unstripped objects).  An entry is a
  function when its derived type is ``DT_FCN`` (``(Type & 0x30) == 0x20``).
* dynamic -- the export directory.  An export is a function when it is not a
  forwarder and its RVA lies inside an executable section.

References:
    - Microsoft. (2024). PE Format. Microsoft Learn.
      https://learn.microsoft.com/en-us/windows/win32/debug/pe-format
    - pefile: https://github.com/erocarrera/pefile
"""

from __future__ import annotations

import struct
from pathlib import Path
from typing import Iterator, Optional

import pefile

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
# PE Constants
# ---------------------------------------------------------------------------

MZ_MAGIC: bytes = b"MZ"

IMAGE_FILE_MACHINE_I386: int = 0x14C
IMAGE_FILE_MACHINE_AMD64: int = 0x8664

_MACHINES: dict[int, MachineCode] = {
    IMAGE_FILE_MACHINE_I386: MachineCode.I386,
    IMAGE_FILE_MACHINE_AMD64: MachineCode.X86_64,
    0x1C0: MachineCode.ARM,
    0x1C2: MachineCode.ARM,
    0x1C4: MachineCode.ARM,
    0xAA64: MachineCode.AARCH64,
    0x166: MachineCode.MIPS,
    0x169: MachineCode.MIPS,
    0x1F0: MachineCode.POWERPC,
    0x1F1: MachineCode.POWERPC,
    0x200: MachineCode.IA64,
    0x5032: MachineCode.RISCV,
    0x5064: MachineCode.RISCV,
}

_TARGET_NAMES: dict[MachineCode, str] = {
    MachineCode.I386: "pei-i386",
    MachineCode.X86_64: "pei-x86-64",
}

# Section characteristics
IMAGE_SCN_CNT_CODE: int = 0x00000020
IMAGE_SCN_CNT_INITIALIZED_DATA: int = 0x00000040
IMAGE_SCN_CNT_UNINITIALIZED_DATA: int = 0x00000080
IMAGE_SCN_MEM_EXECUTE: int = 0x20000000

# COFF symbol records
_COFF_SYMBOL = struct.Struct("<8sIhHBB")
COFF_SYMBOL_SIZE: int = _COFF_SYMBOL.size  # 18
IMAGE_SYM_DTYPE_MASK: int = 0x30
IMAGE_SYM_DTYPE_FUNCTION: int = 0x20
IMAGE_SYM_CLASS_STATIC: int = 3
IMAGE_SYM_CLASS_FILE: int = 103
IMAGE_SYM_CLASS_SECTION: int = 104
IMAGE_SYM_CLASS_WEAK_EXTERNAL: int = 105

_EXPORT_DIRECTORY: int = pefile.DIRECTORY_ENTRY["IMAGE_DIRECTORY_ENTRY_EXPORT"]


class PEAdapter(FormatAdapter):
    """PE32/PE32+ image adapter over :class:`pefile.PE`."""

    format_name = "pe"

    def __init__(self, path: str | Path, pe: pefile.PE) -> None:
        super().__init__(path)
        self._pe = pe
        self._coff_symbols: Optional[list[RawSymbol]] = None
        self._exports: Optional[list[RawSymbol]] = None

    @classmethod
    def open(cls, path: str | Path) -> PEAdapter:
        try:
            pe = pefile.PE(str(path), fast_load=True)
        except pefile.PEFormatError as exc:
            raise AdapterError(f"file format not recognized as PE: {exc.value}") from exc
        except (OSError, ValueError) as exc:
            raise AdapterError(f"cannot open file: {exc}") from exc

        adapter = cls(path, pe)
        # pefile tolerates many malformations and records them as warnings.
        warnings = pe.get_warnings()
        if warnings:
            adapter.set_error(warnings[0])
        return adapter

    @classmethod
    def matches(cls, header: bytes) -> bool:
        return header[:2] == MZ_MAGIC

    def _close(self) -> None:
        self._pe.close()

    # ------------------------------------------------------------------ #
    #  Header information
    # ------------------------------------------------------------------ #

    def flavor(self) -> AdapterFlavor:
        return AdapterFlavor.COFF

    def machine(self) -> MachineCode:
        return _MACHINES.get(self._pe.FILE_HEADER.Machine, MachineCode.UNKNOWN)

    def entry_point(self) -> int:
        rva = self._pe.OPTIONAL_HEADER.AddressOfEntryPoint
        if not rva:
            return 0
        return (self._image_base + rva) & 0xFFFF_FFFF_FFFF_FFFF

    def target_name(self) -> str:
        machine = self.machine()
        return _TARGET_NAMES.get(machine, f"pei-{machine.name.lower()}")

    @property
    def _image_base(self) -> int:
        return int(self._pe.OPTIONAL_HEADER.ImageBase)

    # ------------------------------------------------------------------ #
    #  Sections
    # ------------------------------------------------------------------ #

    def iter_sections(self) -> Iterator[RawSection]:
        for index, sec in enumerate(self._pe.sections, start=1):
            size = sec.SizeOfRawData
            if sec.Misc_VirtualSize and sec.Misc_VirtualSize < size:
                size = sec.Misc_VirtualSize
            name = self._section_name(sec.Name)
            yield RawSection(
                index=index,
                name=name or None,
                vma=(self._image_base + sec.VirtualAddress) & 0xFFFF_FFFF_FFFF_FFFF,
                size=size,
                flags=self._section_flags(sec.Characteristics, sec.SizeOfRawData),
                native=sec,
            )

    def _read_section(self, raw: RawSection, offset: int, count: int) -> bytes:
        sec = raw.native
        try:
            return sec.get_data(sec.VirtualAddress + offset, count)
        except (pefile.PEFormatError, ValueError, IndexError) as exc:
            raise AdapterError(f"cannot read section contents: {exc}") from exc

    def _section_name(self, raw_name: bytes) -> str:
        name = raw_name.rstrip(b"\x00").decode("utf-8", errors="replace")
        # "/N" names live in the COFF string table at offset N.
        if name.startswith("/") and name[1:].isdigit():
            resolved = self._string_at(int(name[1:]))
            if resolved:
                return resolved
        return name

    @staticmethod
    def _section_flags(characteristics: int, raw_size: int) -> SectionFlags:
        """Reconcile PE section characteristics into :class:`SectionFlags`."""
        flags = SectionFlags.ALLOC
        if raw_size and not characteristics & IMAGE_SCN_CNT_UNINITIALIZED_DATA:
            flags |= SectionFlags.HAS_CONTENTS | SectionFlags.LOAD
        if characteristics & (IMAGE_SCN_CNT_CODE | IMAGE_SCN_MEM_EXECUTE):
            flags |= SectionFlags.CODE | SectionFlags.LOAD
        if characteristics & IMAGE_SCN_CNT_INITIALIZED_DATA:
            flags |= SectionFlags.DATA | SectionFlags.LOAD
        return flags

    # ------------------------------------------------------------------ #
    #  Symbols
    # ------------------------------------------------------------------ #

    def symtab_upper_bound(self, kind: SymbolTableKind) -> int:
        try:
            return len(self._load_table(kind))
        except AdapterError as exc:
            self.set_error(str(exc))
            return -1

    def canonicalize_symtab(self, kind: SymbolTableKind) -> list[RawSymbol]:
        return list(self._load_table(kind))

    def _load_table(self, kind: SymbolTableKind) -> list[RawSymbol]:
        if kind is SymbolTableKind.STATIC:
            if self._coff_symbols is None:
                self._coff_symbols = self._parse_coff_symbols()
            return self._coff_symbols
        if self._exports is None:
            self._exports = self._parse_exports()
        return self._exports

    # -- COFF symbol table ------------------------------------------------

    def _parse_coff_symbols(self) -> list[RawSymbol]:
        header = self._pe.FILE_HEADER
        pointer, count = header.PointerToSymbolTable, header.NumberOfSymbols
        if not pointer or not count:
            return []

        data = self._pe.__data__
        end = pointer + count * COFF_SYMBOL_SIZE
        if end > len(data):
            raise AdapterError(
                f"COFF symbol table ({count} entries at {pointer:#x}) "
                f"extends past end of file"
            )

        sections = self._pe.sections
        symbols: list[RawSymbol] = []
        idx = 0
        while idx < count:
            raw_name, value, section_number, sym_type, storage, aux = (
                _COFF_SYMBOL.unpack_from(data, pointer + idx * COFF_SYMBOL_SIZE)
            )
            idx += 1 + aux

            if raw_name[:4] == b"\x00\x00\x00\x00":
                (str_offset,) = struct.unpack_from("<I", raw_name, 4)
                name = self._string_at(str_offset)
            else:
                name = raw_name.rstrip(b"\x00").decode("utf-8", errors="replace")

            if 0 < section_number <= len(sections):
                value += self._image_base + sections[section_number - 1].VirtualAddress

            symbols.append(RawSymbol(
                name=name,
                value=value & 0xFFFF_FFFF_FFFF_FFFF,
                flags=self._coff_symbol_flags(section_number, sym_type, storage),
            ))
        return symbols

    @staticmethod
    def _coff_symbol_flags(section_number: int, sym_type: int, storage: int) -> SymbolFlags:
        flags = SymbolFlags.NONE
        if storage == IMAGE_SYM_CLASS_STATIC:
            flags |= SymbolFlags.LOCAL
        elif storage == IMAGE_SYM_CLASS_WEAK_EXTERNAL:
            flags |= SymbolFlags.WEAK
        elif storage == IMAGE_SYM_CLASS_FILE:
            flags |= SymbolFlags.FILE
        elif storage == IMAGE_SYM_CLASS_SECTION:
            flags |= SymbolFlags.SECTION
        else:
            flags |= SymbolFlags.GLOBAL

        if section_number == 0:
            flags |= SymbolFlags.UNDEFINED
        elif section_number > 0 and sym_type & IMAGE_SYM_DTYPE_MASK == IMAGE_SYM_DTYPE_FUNCTION:
            flags |= SymbolFlags.FUNCTION
        return flags

    def _string_at(self, offset: int) -> str:
        """Read a NUL-terminated name from the COFF string table."""
        header = self._pe.FILE_HEADER
        if not header.PointerToSymbolTable or offset < 4:
            return ""
        data = self._pe.__data__
        start = header.PointerToSymbolTable + header.NumberOfSymbols * COFF_SYMBOL_SIZE + offset
        if start >= len(data):
            return ""
        stop = data.find(b"\x00", start)
        if stop < 0:
            stop = len(data)
        return bytes(data[start:stop]).decode("utf-8", errors="replace")

    # -- Export directory -------------------------------------------------

    def _parse_exports(self) -> list[RawSymbol]:
        try:
            self._pe.parse_data_directories(directories=[_EXPORT_DIRECTORY])
        except pefile.PEFormatError as exc:
            raise AdapterError(f"cannot parse export directory: {exc.value}") from exc

        directory = getattr(self._pe, "DIRECTORY_ENTRY_EXPORT", None)
        if directory is None:
            return []

        exports: list[RawSymbol] = []
        for exp in directory.symbols:
            if exp.name:
                name = exp.name.decode("utf-8", errors="replace")
            else:
                name = f"#{exp.ordinal}"

            # Forwarded exports resolve in another module
            flags = SymbolFlags.GLOBAL
            if exp.forwarder:
                pass
            elif self._is_executable_rva(exp.address):
                flags |= SymbolFlags.FUNCTION
            else:
                flags |= SymbolFlags.OBJECT

            exports.append(RawSymbol(
                name=name,
                value=(self._image_base + exp.address) & 0xFFFF_FFFF_FFFF_FFFF,
                flags=flags,
            ))
        return exports

    def _is_executable_rva(self, rva: int) -> bool:
        for sec in self._pe.sections:
            if not sec.Characteristics & (IMAGE_SCN_CNT_CODE | IMAGE_SCN_MEM_EXECUTE):
                continue
            extent = max(sec.Misc_VirtualSize, sec.SizeOfRawData)
            if sec.VirtualAddress <= rva < sec.VirtualAddress + extent:
                return True
        return False
