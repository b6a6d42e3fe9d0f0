"""
binload Parsers
================

Format adapters wrapping the third-party ELF and PE decoders, magic-number
identification, and the adapter registry used by the builder.
"""

from binload.parsers.base import AdapterError, FormatAdapter
from binload.parsers.elf_adapter import ELFAdapter
from binload.parsers.magic import MagicIdentifier
from binload.parsers.pe_adapter import PEAdapter
from binload.parsers.registry import AdapterRegistry, default_registry

__all__ = [
    "AdapterError",
    "AdapterRegistry",
    "ELFAdapter",
    "FormatAdapter",
    "MagicIdentifier",
    "PEAdapter",
    "default_registry",
]
