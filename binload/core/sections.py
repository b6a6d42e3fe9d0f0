"""
Section Materializer
=====================

Copies the code and data sections of an adapter handle into owned buffers
and wraps each in an immutable :class:`Section`.

Each section is classified before anything is allocated: code wins over
data, and sections that are neither are skipped.  If any allocation or copy
fails, every buffer allocated by the call is released before the error
propagates, so a failed build never leaks section memory.
"""

from __future__ import annotations

from typing import Optional
from uuid import UUID

from binload.core.buffers import BufferLedger, SectionBuffer
from binload.core.errors import OutOfMemory, SectionReadError
from binload.core.models import UNNAMED_SECTION, Section, SectionType
from binload.parsers.base import AdapterError, FormatAdapter, RawSection, SectionFlags
from shared.logger import BinloadLogger


def classify_section(raw: RawSection) -> SectionType:
    """Return ``CODE``, ``DATA`` or ``NONE`` for *raw* (code takes precedence)."""
    if raw.flags & SectionFlags.CODE:
        return SectionType.CODE
    if raw.flags & SectionFlags.DATA:
        return SectionType.DATA
    return SectionType.NONE


class SectionMaterializer:
    """Build owned :class:`Section` records from an adapter handle.

    Args:
        ledger: Ledger every buffer is allocated from.
        logger: Optional logger; ``binload.sections`` is used if omitted.
        max_section_size: Largest section accepted, whatever the ledger
            allows.  ``None`` leaves the decision to the ledger.
    """

    def __init__(
        self,
        ledger: BufferLedger,
        logger: Optional[BinloadLogger] = None,
        max_section_size: Optional[int] = None,
    ) -> None:
        self._ledger = ledger
        self._logger = logger or BinloadLogger.attach("sections")
        self._max_section_size = max_section_size

    def materialize(self, handle: FormatAdapter, binary_id: UUID) -> list[Section]:
        """Return the code and data sections of *handle* in native order.

        Raises:
            OutOfMemory: A section buffer could not be allocated.
            SectionReadError: Section contents could not be read.
        """
        sections: list[Section] = []
        allocated: list[SectionBuffer] = []
        try:
            for raw in handle.iter_sections():
                sec_type = classify_section(raw)
                if sec_type is SectionType.NONE:
                    continue
                name = raw.name or UNNAMED_SECTION

                limit = self._max_section_size
                if limit is not None and raw.size > limit:
                    raise OutOfMemory(
                        f"section {name!r} is {raw.size:,} bytes "
                        f"(limit {limit:,})",
                        path=handle.path,
                    )
                try:
                    buffer = self._ledger.allocate(raw.size)
                except MemoryError as exc:
                    raise OutOfMemory(
                        f"cannot allocate buffer for section {name!r}",
                        path=handle.path,
                        diagnostic=str(exc) or None,
                    ) from exc
                allocated.append(buffer)

                try:
                    handle.get_section_contents(raw, buffer.writable(), 0, raw.size)
                except AdapterError as exc:
                    raise SectionReadError(
                        f"failed to read section {name!r}",
                        path=handle.path,
                        diagnostic=str(exc),
                    ) from exc

                sections.append(Section(
                    name=name,
                    type=sec_type,
                    vma=raw.vma,
                    size=raw.size,
                    binary_id=binary_id,
                    buffer=buffer,
                ))
                self._logger.debug(
                    "Section %-16s %-4s vma=0x%016x size=0x%x",
                    name, sec_type.value, raw.vma, raw.size,
                )
        except AdapterError as exc:
            # Raised while walking the section table itself.
            self._release(allocated)
            raise SectionReadError(
                "failed to enumerate sections",
                path=handle.path,
                diagnostic=str(exc),
            ) from exc
        except BaseException:
            self._release(allocated)
            raise
        return sections

    @staticmethod
    def _release(buffers: list[SectionBuffer]) -> None:
        for buffer in buffers:
            buffer.release()
