from concurrent.futures import ThreadPoolExecutor

import pytest

from binload.core.buffers import BufferLedger
from binload.core.builder import BinaryBuilder, load_binary, unload_binary
from binload.core.errors import (
    LoadStage,
    OutOfMemory,
    OpenError,
    SectionReadError,
    SymbolReadError,
    SymbolSizeError,
    UnsupportedArchitecture,
    UnsupportedFormat,
)
from binload.core.models import BinaryArch, BinaryType, SectionType
from binload.parsers.base import AdapterFlavor, MachineCode, SymbolTableKind
from shared.config import BinloadConfig, LoaderConfig

from conftest import CODE, DATA, FakeAdapter, func, obj, raw_section, registry_for


def _sections():
    return [
        raw_section(1, ".text", 0x401000, 3, CODE),
        raw_section(2, ".data", 0x402000, 2, DATA),
    ]


def _builder(handle, ledger=None, config=None):
    return BinaryBuilder(config=config, registry=registry_for(handle), ledger=ledger)


def test_build_from_fake_handle(dummy_file, ledger):
    handle = FakeAdapter(
        sections=_sections(),
        contents={".text": b"\x90\x90\xc3", ".data": b"\x01\x02"},
        static=[func("main", 0x401000), obj("counter", 0x402000)],
        dynamic=[func("puts", 0)],
    )
    binary = _builder(handle, ledger).build(dummy_file)

    assert binary.filename == str(dummy_file)
    assert binary.type is BinaryType.ELF
    assert binary.type_str == "fake-x86_64"
    assert binary.arch is BinaryArch.X86
    assert binary.arch_str == "i386:x86-64"
    assert binary.bits == 64
    assert binary.entry == 0x401000
    assert [s.name for s in binary.symbols] == ["main", "puts"]
    assert [s.type for s in binary.sections] == [SectionType.CODE, SectionType.DATA]
    assert all(s.binary_id == binary.id for s in binary.sections)
    assert handle.closed

    unload_binary(binary)
    assert ledger.outstanding == 0


def test_i386_maps_to_32_bits(dummy_file):
    handle = FakeAdapter(flavor=AdapterFlavor.COFF, machine=MachineCode.I386)
    binary = _builder(handle).build(dummy_file)
    assert binary.type is BinaryType.PE
    assert binary.bits == 32
    assert binary.arch_str == "i386"


def test_each_build_gets_a_fresh_identity(dummy_file):
    first = _builder(FakeAdapter()).build(dummy_file)
    second = _builder(FakeAdapter()).build(dummy_file)
    assert first.id != second.id


def test_stale_adapter_error_is_cleared(dummy_file):
    handle = FakeAdapter(error="file format not recognized")
    binary = _builder(handle).build(dummy_file)
    assert binary.type is BinaryType.ELF
    assert handle.error is None


def test_unknown_flavor_is_open_error(dummy_file):
    handle = FakeAdapter(flavor=AdapterFlavor.UNKNOWN)
    with pytest.raises(OpenError):
        _builder(handle).build(dummy_file)
    assert handle.closed


def test_mach_o_is_unsupported_format(dummy_file):
    handle = FakeAdapter(flavor=AdapterFlavor.MACH_O)
    with pytest.raises(UnsupportedFormat) as excinfo:
        _builder(handle).build(dummy_file)
    assert excinfo.value.stage is LoadStage.FORMAT
    assert handle.closed


@pytest.mark.parametrize("machine", [MachineCode.ARM, MachineCode.AARCH64, MachineCode.X86_64_X32])
def test_non_x86_machine_is_unsupported(dummy_file, machine):
    handle = FakeAdapter(machine=machine)
    with pytest.raises(UnsupportedArchitecture) as excinfo:
        _builder(handle).build(dummy_file)
    assert machine.value in str(excinfo.value)


def test_invalid_requested_type(dummy_file):
    with pytest.raises(UnsupportedFormat):
        _builder(FakeAdapter()).build(dummy_file, "macho")


def test_missing_file(tmp_path):
    with pytest.raises(OpenError) as excinfo:
        load_binary(tmp_path / "nope")
    assert excinfo.value.stage is LoadStage.OPEN


def test_directory_is_open_error(tmp_path):
    with pytest.raises(OpenError):
        load_binary(tmp_path)


def test_file_over_size_limit(dummy_file):
    config = BinloadConfig(loader=LoaderConfig(max_file_size=16))
    with pytest.raises(OpenError) as excinfo:
        _builder(FakeAdapter(), config=config).build(dummy_file)
    assert "too large" in str(excinfo.value)


def test_symbol_size_failure(dummy_file, ledger):
    handle = FakeAdapter(sections=_sections(), bounds={SymbolTableKind.DYNAMIC: -1})
    with pytest.raises(SymbolSizeError):
        _builder(handle, ledger).build(dummy_file)
    assert ledger.allocated == 0
    assert handle.closed


def test_symbol_read_failure(dummy_file, ledger):
    handle = FakeAdapter(
        sections=_sections(),
        static=[func("main", 1)],
        fail_tables=(SymbolTableKind.STATIC,),
    )
    with pytest.raises(SymbolReadError):
        _builder(handle, ledger).build(dummy_file)
    assert ledger.allocated == 0


def test_section_failure_leaks_nothing(dummy_file, ledger):
    handle = FakeAdapter(sections=_sections(), fail_sections=(".data",))
    with pytest.raises(SectionReadError):
        _builder(handle, ledger).build(dummy_file)
    assert ledger.allocated == 2
    assert ledger.outstanding == 0
    assert handle.closed


def test_section_limit_from_config(dummy_file):
    config = BinloadConfig(loader=LoaderConfig(max_section_size=2))
    handle = FakeAdapter(sections=_sections())
    with pytest.raises(OutOfMemory) as excinfo:
        _builder(handle, config=config).build(dummy_file)
    assert excinfo.value.kind == "OutOfMemory"
    assert excinfo.value.stage is LoadStage.SECTIONS


def test_section_limit_applies_to_injected_ledger(dummy_file, ledger):
    config = BinloadConfig(loader=LoaderConfig(max_section_size=2))
    handle = FakeAdapter(sections=_sections())
    with pytest.raises(OutOfMemory) as excinfo:
        _builder(handle, ledger, config=config).build(dummy_file)
    assert "'.text'" in str(excinfo.value)
    assert ledger.allocated == 0
    assert handle.closed


@pytest.mark.parametrize("requested", ["ELF", "Elf", BinaryType.ELF])
def test_requested_type_ignores_case(elf32_path, requested):
    binary = load_binary(elf32_path, requested)
    assert binary.type is BinaryType.ELF
    unload_binary(binary)


def test_requested_pe_ignores_case(pe32_path):
    binary = load_binary(pe32_path, "Pe")
    assert binary.type is BinaryType.PE
    unload_binary(binary)


def test_concurrent_builds_are_independent(elf64_path, elf32_path, pe64_path, pe32_path):
    expected = {
        elf64_path: (BinaryType.ELF, 64, 3, 6),
        elf32_path: (BinaryType.ELF, 32, 2, 1),
        pe64_path: (BinaryType.PE, 64, 3, 3),
        pe32_path: (BinaryType.PE, 32, 3, 0),
    }
    paths = list(expected) * 4
    shared_ledger = BufferLedger()

    with ThreadPoolExecutor(max_workers=8) as pool:
        binaries = list(pool.map(lambda p: load_binary(p, ledger=shared_ledger), paths))

    for path, binary in zip(paths, binaries):
        shape = (binary.type, binary.bits, len(binary.sections), len(binary.symbols))
        assert shape == expected[path]
        assert all(s.binary_id == binary.id for s in binary.sections)
    assert len({b.id for b in binaries}) == len(binaries)

    for binary in binaries:
        unload_binary(binary)
    assert shared_ledger.outstanding == 0
