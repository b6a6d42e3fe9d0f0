"""
binload -- Normalized Executable Loader
========================================

binload turns an on-disk executable image into one format-agnostic model:
a :class:`Binary` descriptor owning its code and data :class:`Section`
buffers plus the function :class:`Symbol` records of its static and dynamic
symbol tables.

Capabilities:
    - ELF (pyelftools) and PE/COFF (pefile) decoding behind one adapter contract
    - Section flag reconciliation into code / data categories
    - Function symbol extraction from static and dynamic tables
    - Owned, leak-checked section buffers
    - Capstone disassembly of loaded code sections
    - Rich console and JSON report output

References:
    - TIS Committee. (1995). ELF Specification.
    - Microsoft. (2024). PE Format.
"""

from binload.core.builder import BinaryBuilder, load_binary, unload_binary
from binload.core.errors import LoadError
from binload.core.models import (
    Binary,
    BinaryArch,
    BinaryType,
    Section,
    SectionType,
    Symbol,
    SymbolType,
)

__version__ = "1.0.0"
__all__ = [
    "Binary",
    "BinaryArch",
    "BinaryBuilder",
    "BinaryType",
    "LoadError",
    "Section",
    "SectionType",
    "Symbol",
    "SymbolType",
    "load_binary",
    "unload_binary",
]
