"""
binload Core Module
====================

Data model, buffer ownership, error kinds and the build pipeline that
normalizes an adapter handle into a :class:`Binary`.
"""

from binload.core.buffers import BufferLedger, SectionBuffer
from binload.core.builder import BinaryBuilder, load_binary, unload_binary
from binload.core.errors import (
    LoadError,
    LoadStage,
    OpenError,
    OutOfMemory,
    SectionReadError,
    SymbolReadError,
    SymbolSizeError,
    UnsupportedArchitecture,
    UnsupportedFormat,
)
from binload.core.models import (
    Binary,
    BinaryArch,
    BinaryType,
    Section,
    SectionType,
    Symbol,
    SymbolType,
)

__all__ = [
    "Binary",
    "BinaryArch",
    "BinaryBuilder",
    "BinaryType",
    "BufferLedger",
    "LoadError",
    "LoadStage",
    "OpenError",
    "OutOfMemory",
    "Section",
    "SectionBuffer",
    "SectionReadError",
    "SectionType",
    "Symbol",
    "SymbolReadError",
    "SymbolSizeError",
    "SymbolType",
    "UnsupportedArchitecture",
    "UnsupportedFormat",
    "load_binary",
    "unload_binary",
]
