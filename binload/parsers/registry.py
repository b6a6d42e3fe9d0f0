"""
Adapter Registry
=================

Keeps the set of available :class:`FormatAdapter` classes and opens files
through them.  The process-wide default registry is populated lazily, once,
under a lock, so builders may run concurrently on different threads.

Autodetection probes every registered adapter; adapters whose magic number
matches the file head are tried first.  When a later adapter accepts the
file, the rejection message of the previous probe is left on the accepted
handle, the way object-file libraries leave a stale error behind after
probing.  Callers clear it before relying on the handle.
"""

from __future__ import annotations

import threading
from pathlib import Path
from typing import Optional

from binload.parsers.base import AdapterError, FormatAdapter
from binload.parsers.magic import HEADER_SIZE, MagicIdentifier


class AdapterRegistry:
    """Ordered collection of format adapter classes."""

    def __init__(self) -> None:
        self._adapters: dict[str, type[FormatAdapter]] = {}
        self._lock = threading.Lock()
        self._bootstrapped = False
        self._magic = MagicIdentifier()

    # ------------------------------------------------------------------ #
    #  Registration
    # ------------------------------------------------------------------ #

    def register(self, adapter_cls: type[FormatAdapter]) -> None:
        """Register *adapter_cls* under its ``format_name``."""
        if not adapter_cls.format_name:
            raise ValueError(f"{adapter_cls.__name__} has no format_name")
        with self._lock:
            self._adapters[adapter_cls.format_name] = adapter_cls

    def bootstrap(self) -> None:
        """Register the built-in adapters.  Safe to call any number of times."""
        with self._lock:
            if self._bootstrapped:
                return
            from binload.parsers.elf_adapter import ELFAdapter
            from binload.parsers.pe_adapter import PEAdapter

            for adapter_cls in (ELFAdapter, PEAdapter):
                self._adapters.setdefault(adapter_cls.format_name, adapter_cls)
            self._bootstrapped = True

    @property
    def bootstrapped(self) -> bool:
        return self._bootstrapped

    @property
    def formats(self) -> list[str]:
        """Registered format names in registration order."""
        with self._lock:
            return list(self._adapters)

    def get(self, format_name: str) -> Optional[type[FormatAdapter]]:
        with self._lock:
            return self._adapters.get(format_name)

    # ------------------------------------------------------------------ #
    #  Opening
    # ------------------------------------------------------------------ #

    def probe_order(
        self,
        header: bytes,
        preferred: Optional[str] = None,
    ) -> list[type[FormatAdapter]]:
        """Adapters to try for a file starting with *header*, best first.

        The adapter named *preferred* comes first, then adapters whose magic
        number matches, then the rest in registration order.
        """
        with self._lock:
            adapters = list(self._adapters.values())
        ordered = [a for a in adapters if a.format_name == preferred]
        ordered += [a for a in adapters if a not in ordered and a.matches(header)]
        ordered += [a for a in adapters if a not in ordered]
        return ordered

    def open(self, path: str | Path, preferred: Optional[str] = None) -> FormatAdapter:
        """Open *path* with the first adapter that accepts it.

        Raises:
            AdapterError: If no adapter accepts the file.  The message names
                what the file appears to be.
        """
        if preferred is not None and self.get(preferred) is None:
            raise AdapterError(f"no adapter registered for format {preferred!r}")

        try:
            with open(path, "rb") as fh:
                header = fh.read(HEADER_SIZE)
        except OSError as exc:
            raise AdapterError(f"cannot read file: {exc.strerror or exc}") from exc

        last_error: Optional[AdapterError] = None
        for adapter_cls in self.probe_order(header, preferred):
            try:
                handle = adapter_cls.open(path)
            except AdapterError as exc:
                last_error = exc
                continue
            if last_error is not None and handle.error is None:
                handle.set_error(str(last_error))
            return handle

        kind = self._magic.identify(header)
        raise AdapterError(f"file format not recognized [{kind}]") from last_error


_default_registry = AdapterRegistry()


def default_registry() -> AdapterRegistry:
    """Return the process-wide registry, bootstrapping it on first use."""
    _default_registry.bootstrap()
    return _default_registry
