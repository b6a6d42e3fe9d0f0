"""
binload Analyzers
==================

Consumers of loaded binaries.
"""

from binload.analyzers.disassembler import Disassembler, DisassemblyError, Instruction

__all__ = [
    "Disassembler",
    "DisassemblyError",
    "Instruction",
]
