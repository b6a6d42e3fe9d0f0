"""
Section Buffers
================

Owned byte buffers for materialized sections, plus a thread-safe ledger
that counts allocations and releases.

A :class:`SectionBuffer` has exactly one owner (the :class:`Section` it is
attached to, and through it the :class:`Binary`).  Releasing it is recorded
once in its ledger; later calls do nothing.  The ledger balance therefore
shows whether every allocation made during a build was eventually released.
"""

from __future__ import annotations

import threading


class BufferLedger:
    """Allocation/deallocation accounting for section buffers.

    Args:
        limit: Largest single allocation in bytes; ``None`` for no limit.
            Requests above the limit raise :class:`MemoryError`.
    """

    def __init__(self, limit: int | None = None) -> None:
        self._limit = limit
        self._lock = threading.Lock()
        self._allocated = 0
        self._released = 0
        self._outstanding_bytes = 0

    def allocate(self, size: int) -> SectionBuffer:
        """Allocate a zero-filled buffer of exactly *size* bytes.

        Raises:
            ValueError: If *size* is negative.
            MemoryError: If *size* exceeds the ledger limit or the
                interpreter cannot satisfy the request.
        """
        if size < 0:
            raise ValueError(f"negative buffer size {size}")
        if self._limit is not None and size > self._limit:
            raise MemoryError(
                f"cannot allocate {size:,} bytes (limit {self._limit:,})"
            )
        buffer = SectionBuffer(bytearray(size), self)
        with self._lock:
            self._allocated += 1
            self._outstanding_bytes += size
        return buffer

    def _record_release(self, size: int) -> None:
        with self._lock:
            self._released += 1
            self._outstanding_bytes -= size

    @property
    def allocated(self) -> int:
        """Number of buffers handed out so far."""
        return self._allocated

    @property
    def released(self) -> int:
        """Number of buffers released so far."""
        return self._released

    @property
    def outstanding(self) -> int:
        """Buffers allocated but not yet released."""
        with self._lock:
            return self._allocated - self._released

    @property
    def outstanding_bytes(self) -> int:
        """Total size of the outstanding buffers."""
        return self._outstanding_bytes

    def __repr__(self) -> str:
        return (
            f"BufferLedger(allocated={self._allocated}, "
            f"released={self._released}, "
            f"outstanding_bytes={self._outstanding_bytes})"
        )


class SectionBuffer:
    """Single-owner byte buffer holding one section's contents."""

    __slots__ = ("_data", "_size", "_ledger", "_released", "_lock")

    def __init__(self, data: bytearray, ledger: BufferLedger) -> None:
        self._data = data
        self._size = len(data)
        self._ledger = ledger
        self._released = False
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._data)

    def __repr__(self) -> str:
        state = "released" if self._released else f"{self._size} bytes"
        return f"SectionBuffer({state})"

    @property
    def size(self) -> int:
        """Size the buffer was allocated with."""
        return self._size

    @property
    def released(self) -> bool:
        return self._released

    def writable(self) -> memoryview:
        """Writable view used while the section contents are copied in."""
        if self._released:
            raise ValueError("buffer already released")
        return memoryview(self._data)

    def view(self) -> memoryview:
        """Read-only view over the contents."""
        return memoryview(self._data).toreadonly()

    def tobytes(self) -> bytes:
        return bytes(self._data)

    def release(self) -> bool:
        """Drop the contents.

        Returns:
            ``True`` if this call released the buffer, ``False`` if it had
            already been released.
        """
        with self._lock:
            if self._released:
                return False
            self._released = True
            self._data = bytearray()
        self._ledger._record_release(self._size)
        return True
