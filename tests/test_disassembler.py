import pytest

from binload import load_binary
from binload.analyzers.disassembler import Disassembler, DisassemblyError
from binload.core.models import BinaryArch

import images


def test_x86_64_listing():
    insns = list(Disassembler().disassemble(BinaryArch.X86, 64, images.X86_64_CODE, 0x401000))
    assert [i.mnemonic for i in insns] == ["push", "mov", "mov", "pop", "ret", "xor", "ret"]
    assert insns[0].address == 0x401000
    assert insns[0].op_str == "rbp"
    assert insns[2].raw_bytes == bytes.fromhex("b82a000000")
    assert insns[2].size == 5
    assert insns[-1].address == 0x401000 + len(images.X86_64_CODE) - 1
    assert str(insns[4]) == "0x000000000040100a: ret"


def test_i386_listing():
    insns = list(Disassembler().disassemble(BinaryArch.X86, 32, images.I386_CODE, 0x8049000))
    assert insns[0].op_str == "ebp"
    assert len(insns) == 7


def test_max_instructions():
    dis = Disassembler(max_instructions=2)
    insns = list(dis.disassemble(BinaryArch.X86, 64, images.X86_64_CODE, 0))
    assert len(insns) == 2


def test_att_syntax():
    dis = Disassembler(syntax="att")
    first = next(iter(dis.disassemble(BinaryArch.X86, 64, images.X86_64_CODE, 0)))
    assert "%rbp" in first.op_str


def test_empty_span_yields_nothing():
    assert list(Disassembler().disassemble(BinaryArch.X86, 64, b"", 0)) == []


def test_undecodable_bytes():
    with pytest.raises(DisassemblyError):
        list(Disassembler().disassemble(BinaryArch.X86, 64, b"\x06", 0x1000))


def test_unsupported_mode():
    with pytest.raises(DisassemblyError):
        list(Disassembler().disassemble(BinaryArch.X86, 16, b"\x90", 0))


@pytest.mark.parametrize("kwargs", [{"max_instructions": -1}, {"syntax": "masm"}])
def test_invalid_options(kwargs):
    with pytest.raises(ValueError):
        Disassembler(**kwargs)


def test_disassemble_loaded_section(elf64_path):
    with load_binary(elf64_path) as binary:
        text = binary.get_text_section()
        insns = list(Disassembler().disassemble_section(binary, text))
    assert insns[0].address == 0x401000
    assert insns[-1].mnemonic == "ret"


def test_missing_section(elf64_path):
    with load_binary(elf64_path) as binary:
        with pytest.raises(DisassemblyError):
            Disassembler().disassemble_section(binary, binary.get_section(".plt"))
