"""
Binary Model Builder
=====================

Orchestrates the load of one executable image into a :class:`Binary`.

Load Pipeline:
    1. Validate the path (exists, regular file, within the size limit)
    2. Open a format adapter through the registry
    3. Clear the adapter's stale error state and check its flavour
    4. Map the flavour to ELF / PE and the machine to x86 32 / 64
    5. Normalise the static, then the dynamic symbol table
    6. Materialise code and data sections into owned buffers
    7. Construct the :class:`Binary` from the finished parts

Any failure aborts the whole build with a :class:`LoadError` subclass.  The
adapter handle is always closed, and section buffers allocated before the
failure are released, so nothing acquired by a failed build outlives it.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional
from uuid import UUID, uuid4

from shared.config import BinloadConfig
from shared.logger import BinloadLogger

from binload.core.buffers import BufferLedger
from binload.core.errors import (
    LoadError,
    OpenError,
    UnsupportedArchitecture,
    UnsupportedFormat,
)
from binload.core.models import Binary, BinaryArch, BinaryType, Section, Symbol
from binload.core.sections import SectionMaterializer
from binload.core.symbols import SymbolNormalizer
from binload.parsers.base import AdapterError, AdapterFlavor, FormatAdapter, MachineCode, SymbolTableKind
from binload.parsers.registry import AdapterRegistry, default_registry


_FLAVOR_TYPES: dict[AdapterFlavor, BinaryType] = {
    AdapterFlavor.ELF: BinaryType.ELF,
    AdapterFlavor.COFF: BinaryType.PE,
}

_MACHINE_ARCHES: dict[MachineCode, tuple[BinaryArch, int]] = {
    MachineCode.I386: (BinaryArch.X86, 32),
    MachineCode.X86_64: (BinaryArch.X86, 64),
}


class BinaryBuilder:
    """Build :class:`Binary` models from files on disk.

    A builder holds no per-load state, so one instance may serve many
    loads, including concurrent ones on different threads.

    Usage::

        builder = BinaryBuilder()
        with builder.build("/bin/ls") as binary:
            print(binary.type_str, len(binary.sections))

    Args:
        config: binload configuration.  Defaults are used if not provided.
        logger: Logger instance.  A silent one is created if not provided.
        registry: Adapter registry.  The process-wide default if omitted.
        ledger: Ledger for section buffers.  Each build gets a fresh one
            unless a ledger is injected here.
    """

    def __init__(
        self,
        config: BinloadConfig | None = None,
        logger: BinloadLogger | None = None,
        registry: AdapterRegistry | None = None,
        ledger: BufferLedger | None = None,
    ) -> None:
        self._config: BinloadConfig = config or BinloadConfig()
        self._logger: BinloadLogger = logger or BinloadLogger.attach("loader")
        self._registry = registry
        self._ledger = ledger

    # ------------------------------------------------------------------ #
    #  Main entry point
    # ------------------------------------------------------------------ #

    def build(
        self,
        path: str | Path,
        requested_type: BinaryType | str = BinaryType.AUTO,
    ) -> Binary:
        """Load *path* and return its normalized :class:`Binary`.

        Args:
            path: File to load.
            requested_type: ``AUTO`` to detect the container, or ``ELF`` /
                ``PE`` to require one.

        Raises:
            LoadError: One of its subclasses, naming the failing stage.
        """
        filename = str(path)
        if isinstance(requested_type, str):
            requested_type = requested_type.lower()
        try:
            requested = BinaryType(requested_type)
        except ValueError:
            raise UnsupportedFormat(
                f"unknown binary type {requested_type!r}", path=filename,
            ) from None

        self._logger.debug("Loading %s (requested %s)", filename, requested.value)
        try:
            with self._logger.timed(f"load {filename}"):
                with self._logger.operation("open"):
                    self._check_path(filename)
                    handle = self._open(filename, requested)
                with handle:
                    binary = self._build_from(handle, filename, requested)
        except LoadError as exc:
            self._logger.error(
                "Load of %s failed: %s: %s", filename, exc.kind, exc,
                stage=exc.stage.value, diagnostic=exc.diagnostic,
            )
            raise

        self._logger.info(
            "Loaded %s: %s/%s %d-bit, entry 0x%x, %d sections, %d symbols",
            filename, binary.type_str, binary.arch_str, binary.bits,
            binary.entry, len(binary.sections), len(binary.symbols),
        )
        return binary

    # ------------------------------------------------------------------ #
    #  Pipeline stages
    # ------------------------------------------------------------------ #

    def _check_path(self, filename: str) -> None:
        path = Path(filename)
        if not path.exists():
            raise OpenError(f"file not found: {filename}", path=filename)
        if not path.is_file():
            raise OpenError(f"not a regular file: {filename}", path=filename)

        file_size = path.stat().st_size
        max_size = self._config.loader.max_file_size
        if file_size > max_size:
            raise OpenError(
                f"file too large: {file_size:,} bytes (max: {max_size:,} bytes)",
                path=filename,
            )

    def _open(self, filename: str, requested: BinaryType) -> FormatAdapter:
        registry = self._registry or default_registry()
        preferred = None if requested is BinaryType.AUTO else requested.value
        try:
            handle = registry.open(filename, preferred)
        except AdapterError as exc:
            raise OpenError(
                f"failed to open binary {filename}",
                path=filename,
                diagnostic=str(exc),
            ) from exc

        # Probing can leave a stale message behind on the accepted handle.
        handle.clear_error()
        if handle.flavor() is AdapterFlavor.UNKNOWN:
            diagnostic = handle.error
            handle.close()
            raise OpenError(
                f"unrecognized format for binary {filename}",
                path=filename,
                diagnostic=diagnostic,
            )
        self._logger.debug("Opened with %s adapter (%s)", handle.format_name, handle.target_name())
        return handle

    def _build_from(
        self,
        handle: FormatAdapter,
        filename: str,
        requested: BinaryType,
    ) -> Binary:
        entry = handle.entry_point()

        with self._logger.operation("format"):
            flavor = handle.flavor()
            bin_type = _FLAVOR_TYPES.get(flavor)
            if bin_type is None:
                raise UnsupportedFormat(
                    f"unsupported binary type ({handle.target_name()})",
                    path=filename,
                )
            if requested is not BinaryType.AUTO and requested is not bin_type:
                raise UnsupportedFormat(
                    f"requested {requested.value} but {filename} is "
                    f"{bin_type.value} ({handle.target_name()})",
                    path=filename,
                )
            self._logger.debug("Container %s (%s)", bin_type.value, handle.target_name())

        with self._logger.operation("architecture"):
            machine = handle.machine()
            resolved = _MACHINE_ARCHES.get(machine)
            if resolved is None:
                raise UnsupportedArchitecture(
                    f"unsupported architecture ({handle.printable_arch()})",
                    path=filename,
                )
            arch, bits = resolved
            self._logger.debug("Architecture %s, %d-bit", handle.printable_arch(), bits)

        with self._logger.operation("symbols"):
            symbols = self._load_symbols(handle)

        binary_id = uuid4()
        with self._logger.operation("sections"):
            sections = self._load_sections(handle, binary_id)

        try:
            return Binary(
                id=binary_id,
                filename=filename,
                type=bin_type,
                type_str=handle.target_name(),
                arch=arch,
                arch_str=handle.printable_arch(),
                bits=bits,
                entry=entry,
                sections=sections,
                symbols=symbols,
            )
        except BaseException:
            for sec in sections:
                sec.buffer.release()
            raise

    def _load_symbols(self, handle: FormatAdapter) -> list[Symbol]:
        normalizer = SymbolNormalizer(self._logger)
        symbols = normalizer.normalize(handle, SymbolTableKind.STATIC)
        symbols += normalizer.normalize(handle, SymbolTableKind.DYNAMIC)
        return symbols

    def _load_sections(self, handle: FormatAdapter, binary_id: UUID) -> list[Section]:
        limit = self._config.loader.max_section_size
        materializer = SectionMaterializer(
            self._ledger or BufferLedger(limit=limit),
            self._logger,
            max_section_size=limit,
        )
        return materializer.materialize(handle, binary_id)


# ---------------------------------------------------------------------------
# Module-level helpers
# ---------------------------------------------------------------------------

def load_binary(
    path: str | Path,
    requested_type: BinaryType | str = BinaryType.AUTO,
    *,
    config: Optional[BinloadConfig] = None,
    ledger: Optional[BufferLedger] = None,
) -> Binary:
    """Load *path* into a :class:`Binary`.  See :meth:`BinaryBuilder.build`."""
    return BinaryBuilder(config=config, ledger=ledger).build(path, requested_type)


def unload_binary(binary: Binary) -> None:
    """Release every section buffer owned by *binary*."""
    binary.release()
