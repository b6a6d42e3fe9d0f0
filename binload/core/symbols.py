"""
Symbol Normalizer
==================

Turns one raw symbol table of an adapter handle into an ordered list of
function :class:`Symbol` records.  Every other kind of entry (objects,
sections, files) is skipped.
"""

from __future__ import annotations

from typing import Optional

from binload.core.errors import SymbolReadError, SymbolSizeError
from binload.core.models import Symbol, SymbolType
from binload.parsers.base import AdapterError, FormatAdapter, SymbolFlags, SymbolTableKind
from shared.logger import BinloadLogger


class SymbolNormalizer:
    """Extract function symbols from a static or dynamic symbol table."""

    def __init__(self, logger: Optional[BinloadLogger] = None) -> None:
        self._logger = logger or BinloadLogger.attach("symbols")

    def normalize(self, handle: FormatAdapter, kind: SymbolTableKind) -> list[Symbol]:
        """Return the function symbols of table *kind*, in discovery order.

        A missing table yields an empty list.

        Raises:
            SymbolSizeError: The adapter reported a negative table size.
            SymbolReadError: The table is present but could not be read.
        """
        bound = handle.symtab_upper_bound(kind)
        if bound < 0:
            raise SymbolSizeError(
                f"invalid {kind.value} symbol table size",
                path=handle.path,
                diagnostic=handle.error,
            )
        if bound == 0:
            self._logger.debug("No %s symbol table", kind.value)
            return []

        try:
            raw_symbols = handle.canonicalize_symtab(kind)
        except AdapterError as exc:
            raise SymbolReadError(
                f"failed to read {kind.value} symbol table",
                path=handle.path,
                diagnostic=str(exc),
            ) from exc

        if len(raw_symbols) > bound:
            raise SymbolReadError(
                f"{kind.value} symbol table returned {len(raw_symbols)} entries, "
                f"more than the reported {bound}",
                path=handle.path,
            )

        symbols = [
            Symbol(type=SymbolType.FUNCTION, name=str(raw.name), addr=raw.value)
            for raw in raw_symbols
            if raw.flags & SymbolFlags.FUNCTION
        ]
        self._logger.debug(
            "%s symbol table: %d entries, %d functions",
            kind.value, len(raw_symbols), len(symbols),
        )
        return symbols
