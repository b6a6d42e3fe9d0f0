"""
Magic Number Identification
============================

Identifies a file by its leading bytes.  The loader uses this for two
things: choosing the order in which format adapters probe a file, and
naming what a rejected file actually is ("ZIP archive", "ASCII text") in
the open-failure diagnostic.

Only a short table of common signatures is kept; anything else is
reported as data or text.

References:
    - Gary Kessler's File Signatures Table.
      https://www.garykessler.net/library/file_sigs.html
    - ``file(1)`` command magic database. https://github.com/file/file
"""

from __future__ import annotations

import struct
from dataclasses import dataclass

#: Number of leading bytes read for identification.
HEADER_SIZE: int = 4096


@dataclass(frozen=True, slots=True)
class _Signature:
    """One magic signature.

    Attributes:
        magic: Byte pattern to match.
        offset: Byte offset of *magic* within the file.
        description: Human-readable kind.
        format_tag: Short tag of the container family, ``""`` if not an
            executable format.
    """
    magic: bytes
    offset: int
    description: str
    format_tag: str = ""


_SIGNATURES: tuple[_Signature, ...] = (
    # Executables
    _Signature(b"\x7fELF", 0, "ELF executable", "elf"),
    _Signature(b"MZ", 0, "MS-DOS executable", "pe"),
    _Signature(b"\xfe\xed\xfa\xce", 0, "Mach-O 32-bit", "macho"),
    _Signature(b"\xfe\xed\xfa\xcf", 0, "Mach-O 64-bit", "macho"),
    _Signature(b"\xce\xfa\xed\xfe", 0, "Mach-O 32-bit", "macho"),
    _Signature(b"\xcf\xfa\xed\xfe", 0, "Mach-O 64-bit", "macho"),
    _Signature(b"\xca\xfe\xba\xbe", 0, "Mach-O universal binary", "macho"),
    _Signature(b"\x00asm", 0, "WebAssembly binary", "wasm"),
    _Signature(b"!<arch>\n", 0, "ar archive", ""),
    # Archives and compressed data
    _Signature(b"PK\x03\x04", 0, "ZIP archive"),
    _Signature(b"PK\x05\x06", 0, "ZIP archive (empty)"),
    _Signature(b"\x1f\x8b", 0, "gzip compressed data"),
    _Signature(b"BZh", 0, "bzip2 compressed data"),
    _Signature(b"\xfd7zXZ\x00", 0, "XZ compressed data"),
    _Signature(b"\x28\xb5\x2f\xfd", 0, "Zstandard compressed data"),
    _Signature(b"7z\xbc\xaf\x27\x1c", 0, "7-zip archive"),
    _Signature(b"ustar", 257, "POSIX tar archive"),
    # Documents and images
    _Signature(b"%PDF", 0, "PDF document"),
    _Signature(b"\x89PNG\r\n\x1a\n", 0, "PNG image"),
    _Signature(b"\xff\xd8\xff", 0, "JPEG image"),
    _Signature(b"GIF8", 0, "GIF image"),
    _Signature(b"SQLite format 3\x00", 0, "SQLite database"),
    _Signature(b"#!", 0, "script text executable"),
)

_TEXT_BYTES: frozenset[int] = frozenset(range(0x20, 0x7F)) | {0x09, 0x0A, 0x0C, 0x0D}


class MagicIdentifier:
    """Identify file kinds by magic byte signatures.

    Usage::

        ident = MagicIdentifier()
        ident.identify(b"\\x7fELF...")         # "ELF executable"
        ident.identify_format(b"MZ...")        # "pe"
    """

    def __init__(self) -> None:
        self._signatures: tuple[_Signature, ...] = _SIGNATURES

    def identify(self, data: bytes) -> str:
        """Return a human-readable description of *data*.

        ``MZ`` images are refined into "PE32 executable" when the DOS header
        points at a ``PE\\0\\0`` signature.  Unmatched data is classified as
        ``"ASCII text"`` or ``"data"``.
        """
        if not data:
            return "empty"

        sig = self._match(data)
        if sig is not None:
            if sig.format_tag == "pe" and self._has_pe_header(data):
                return "PE32 executable"
            return sig.description

        if self._looks_like_text(data):
            return "ASCII text"
        return "data"

    def identify_format(self, data: bytes) -> str:
        """Return the short container tag (``"elf"``, ``"pe"``, ...) or ``"unknown"``."""
        sig = self._match(data)
        if sig is None or not sig.format_tag:
            return "unknown"
        return sig.format_tag

    # ------------------------------------------------------------------ #
    #  Private helpers
    # ------------------------------------------------------------------ #

    def _match(self, data: bytes) -> _Signature | None:
        for sig in self._signatures:
            end = sig.offset + len(sig.magic)
            if len(data) >= end and data[sig.offset:end] == sig.magic:
                return sig
        return None

    @staticmethod
    def _has_pe_header(data: bytes) -> bool:
        if len(data) < 0x40:
            return False
        (e_lfanew,) = struct.unpack_from("<I", data, 0x3C)
        return data[e_lfanew:e_lfanew + 4] == b"PE\x00\x00"

    @staticmethod
    def _looks_like_text(data: bytes) -> bool:
        """True if fewer than 5% of the sampled bytes are non-printable."""
        sample = data[:HEADER_SIZE]
        non_text = sum(1 for b in sample if b not in _TEXT_BYTES)
        return non_text / len(sample) < 0.05
