"""Shared fixtures: a scriptable fake adapter and crafted ELF/PE images."""

from __future__ import annotations

from pathlib import Path
from typing import Iterator, Optional

import pytest

from binload.core.buffers import BufferLedger
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
from binload.parsers.registry import AdapterRegistry

import images


CODE = SectionFlags.ALLOC | SectionFlags.LOAD | SectionFlags.HAS_CONTENTS | SectionFlags.CODE
DATA = SectionFlags.ALLOC | SectionFlags.LOAD | SectionFlags.HAS_CONTENTS | SectionFlags.DATA


def raw_section(index: int, name: Optional[str], vma: int, size: int, flags: SectionFlags) -> RawSection:
    return RawSection(index=index, name=name, vma=vma, size=size, flags=flags)


def func(name: str, value: int) -> RawSymbol:
    return RawSymbol(name=name, value=value, flags=SymbolFlags.GLOBAL | SymbolFlags.FUNCTION)


def obj(name: str, value: int) -> RawSymbol:
    return RawSymbol(name=name, value=value, flags=SymbolFlags.GLOBAL | SymbolFlags.OBJECT)


class FakeAdapter(FormatAdapter):
    """In-memory adapter with injectable failures."""

    format_name = "fake"

    def __init__(
        self,
        path: str = "fake.bin",
        *,
        flavor: AdapterFlavor = AdapterFlavor.ELF,
        machine: MachineCode = MachineCode.X86_64,
        entry: int = 0x401000,
        sections: Optional[list[RawSection]] = None,
        contents: Optional[dict[str, bytes]] = None,
        static: Optional[list[RawSymbol]] = None,
        dynamic: Optional[list[RawSymbol]] = None,
        bounds: Optional[dict[SymbolTableKind, int]] = None,
        fail_tables: tuple[SymbolTableKind, ...] = (),
        fail_sections: tuple[str, ...] = (),
        short_sections: tuple[str, ...] = (),
        error: Optional[str] = None,
    ) -> None:
        super().__init__(path)
        self._flavor = flavor
        self._machine = machine
        self._entry = entry
        self._sections = sections or []
        self._contents = contents or {}
        self._tables = {SymbolTableKind.STATIC: static, SymbolTableKind.DYNAMIC: dynamic}
        self._bounds = bounds or {}
        self._fail_tables = fail_tables
        self._fail_sections = fail_sections
        self._short_sections = short_sections
        if error is not None:
            self.set_error(error)

    @classmethod
    def open(cls, path):
        raise AdapterError("fake adapter does not open files")

    def _close(self) -> None:
        pass

    def flavor(self) -> AdapterFlavor:
        return self._flavor

    def machine(self) -> MachineCode:
        return self._machine

    def entry_point(self) -> int:
        return self._entry

    def target_name(self) -> str:
        return f"fake-{self._machine.name.lower()}"

    def iter_sections(self) -> Iterator[RawSection]:
        return iter(self._sections)

    def _read_section(self, raw: RawSection, offset: int, count: int) -> bytes:
        if raw.name in self._fail_sections:
            raise AdapterError(f"I/O error reading {raw.name}")
        data = self._contents.get(raw.name or "", bytes(raw.size))
        data = data[offset:offset + count]
        if raw.name in self._short_sections:
            return data[:-1]
        return data

    def symtab_upper_bound(self, kind: SymbolTableKind) -> int:
        if kind in self._bounds:
            return self._bounds[kind]
        table = self._tables[kind]
        return len(table) if table else 0

    def canonicalize_symtab(self, kind: SymbolTableKind) -> list[RawSymbol]:
        if kind in self._fail_tables:
            raise AdapterError(f"corrupt {kind.value} symbol table")
        return list(self._tables[kind] or [])


def registry_for(handle: FormatAdapter) -> AdapterRegistry:
    """Registry whose only adapter hands out *handle*."""

    class _Opener(FakeAdapter):
        @classmethod
        def open(cls, path):
            return handle

    registry = AdapterRegistry()
    registry.register(_Opener)
    return registry


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def ledger() -> BufferLedger:
    return BufferLedger()


@pytest.fixture
def dummy_file(tmp_path: Path) -> Path:
    path = tmp_path / "dummy.bin"
    path.write_bytes(b"\x00" * 64)
    return path


@pytest.fixture
def elf64_path(tmp_path: Path) -> Path:
    path = tmp_path / "hello64"
    path.write_bytes(images.build_elf64_x86_64())
    return path


@pytest.fixture
def elf32_path(tmp_path: Path) -> Path:
    path = tmp_path / "hello32"
    path.write_bytes(images.build_elf32_i386())
    return path


@pytest.fixture
def pe64_path(tmp_path: Path) -> Path:
    path = tmp_path / "test64.dll"
    path.write_bytes(images.build_pe(bits=64, coff_symbols=images.default_coff_symbols()))
    return path


@pytest.fixture
def pe32_path(tmp_path: Path) -> Path:
    path = tmp_path / "test32.exe"
    path.write_bytes(images.build_pe(bits=32, code=images.I386_CODE, exports=False))
    return path


@pytest.fixture
def text_path(tmp_path: Path) -> Path:
    path = tmp_path / "notes.txt"
    path.write_text("this is not an executable\n" * 8)
    return path
