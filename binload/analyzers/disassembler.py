"""
Section Disassembler
=====================

Linear-sweep disassembly of loaded code sections using Capstone.

The disassembler is a consumer of the loader: it takes the architecture
and address width of a :class:`Binary` together with a section's bytes and
base address, and yields decoded instructions lazily, so large sections can
be listed without materializing every instruction first.

References:
    - Capstone disassembly engine: https://www.capstone-engine.org/
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator, Optional

import capstone

from binload.core.models import Binary, BinaryArch, Section


class DisassemblyError(Exception):
    """Raised when a code span cannot be disassembled."""


@dataclass(frozen=True, slots=True)
class Instruction:
    """One decoded machine instruction."""
    address: int
    raw_bytes: bytes
    mnemonic: str
    op_str: str

    @property
    def size(self) -> int:
        return len(self.raw_bytes)

    def __str__(self) -> str:
        return f"0x{self.address:016x}: {self.mnemonic} {self.op_str}".rstrip()


_MODES: dict[tuple[BinaryArch, int], tuple[int, int]] = {
    (BinaryArch.X86, 32): (capstone.CS_ARCH_X86, capstone.CS_MODE_32),
    (BinaryArch.X86, 64): (capstone.CS_ARCH_X86, capstone.CS_MODE_64),
}

_SYNTAXES: dict[str, int] = {
    "intel": capstone.CS_OPT_SYNTAX_INTEL,
    "att": capstone.CS_OPT_SYNTAX_ATT,
}


class Disassembler:
    """Capstone front-end for loaded sections.

    Usage::

        dis = Disassembler(max_instructions=20)
        for insn in dis.disassemble_section(binary, binary.get_text_section()):
            print(insn)

    Args:
        max_instructions: Stop after this many instructions (0 = no limit).
        syntax: ``"intel"`` or ``"att"``.
    """

    def __init__(self, max_instructions: int = 0, syntax: str = "intel") -> None:
        if max_instructions < 0:
            raise ValueError("max_instructions must not be negative")
        if syntax not in _SYNTAXES:
            raise ValueError(f"unknown syntax {syntax!r}")
        self._max_instructions = max_instructions
        self._syntax = syntax

    def disassemble(
        self,
        arch: BinaryArch,
        bits: int,
        code: bytes | memoryview,
        base_address: int,
    ) -> Iterator[Instruction]:
        """Yield the instructions of *code* mapped at *base_address*.

        Decoding stops at the first invalid byte sequence.

        Raises:
            DisassemblyError: The architecture is not supported, Capstone
                fails, or a non-empty span decodes to no instruction.
        """
        cs = self._create_engine(arch, bits)
        data = bytes(code)

        count = 0
        try:
            for insn in cs.disasm(data, base_address):
                yield Instruction(
                    address=insn.address,
                    raw_bytes=bytes(insn.bytes),
                    mnemonic=insn.mnemonic,
                    op_str=insn.op_str,
                )
                count += 1
                if self._max_instructions and count >= self._max_instructions:
                    return
        except capstone.CsError as exc:
            raise DisassemblyError(f"capstone failed at instruction {count}: {exc}") from exc

        if data and count == 0:
            raise DisassemblyError(
                f"no instructions could be decoded at 0x{base_address:x}"
            )

    def disassemble_section(
        self,
        binary: Binary,
        section: Optional[Section],
    ) -> Iterator[Instruction]:
        """Disassemble *section* of *binary*.

        Raises:
            DisassemblyError: If *section* is missing or cannot be decoded.
        """
        if section is None:
            raise DisassemblyError(f"section not found in {binary.filename}")
        return self.disassemble(binary.arch, binary.bits, section.data, section.vma)

    def _create_engine(self, arch: BinaryArch, bits: int) -> capstone.Cs:
        mode = _MODES.get((arch, bits))
        if mode is None:
            raise DisassemblyError(f"unsupported architecture {arch.value}/{bits}")
        try:
            cs = capstone.Cs(*mode)
            cs.syntax = _SYNTAXES[self._syntax]
        except capstone.CsError as exc:
            raise DisassemblyError(f"cannot initialise capstone: {exc}") from exc
        return cs
