"""A fenced memory region with a program-break style allocator primitive."""

from __future__ import annotations

import random
from dataclasses import dataclass

DEFAULT_PAGE_SIZE = 4096
DEFAULT_PAGES_AVAILABLE = 16384
PAGE_FENCE = 1

_FENCE_STATE = {True: "poprawny", False: "USZKODZONY"}


class OutOfMemoryError(MemoryError):
    """Raised when the break cannot be moved past the end of the arena."""


@dataclass(frozen=True)
class FenceReport:
    """State of the two guard pages surrounding the usable region."""

    first_intact: bool
    last_intact: bool

    @property
    def intact(self) -> bool:
        return self.first_intact and self.last_intact


class Arena:
    """A flat byte region guarded by random fence pages on both ends.

    Addresses are integer offsets into the region. The usable space lies
    between ``start_brk`` and ``start_mmap``; :meth:`sbrk` moves the break
    within it.
    """

    def __init__(
        self,
        pages_available: int = DEFAULT_PAGES_AVAILABLE,
        page_size: int = DEFAULT_PAGE_SIZE,
        seed: int | None = None,
    ) -> None:
        if pages_available <= 0:
            raise ValueError("pages_available must be positive")
        if page_size <= 0:
            raise ValueError("page_size must be positive")

        self.page_size = page_size
        self.pages_available = pages_available
        pages_total = pages_available + 2 * PAGE_FENCE
        self._memory = bytearray(page_size * pages_total)

        rng = random.Random(seed)
        self._first_fence = rng.randbytes(page_size)
        self._last_fence = rng.randbytes(page_size)

        self.start_brk = PAGE_FENCE * page_size
        self.brk = self.start_brk
        self.start_mmap = (PAGE_FENCE + pages_available) * page_size

        self._memory[: self.start_brk] = self._first_fence
        self._memory[self.start_mmap : self.start_mmap + page_size] = self._last_fence

    @property
    def total_size(self) -> int:
        """Bytes available between the two fences."""
        return self.start_mmap - self.start_brk

    @property
    def reserved(self) -> int:
        """Bytes currently reserved by :meth:`sbrk`."""
        return self.brk - self.start_brk

    def sbrk(self, delta: int) -> int:
        """Move the break by ``delta`` and return its previous position.

        A move below the start of the heap leaves the break unchanged.
        A move reaching the end of the arena raises :class:`OutOfMemoryError`.
        """
        current = self.brk
        if self.brk + delta < self.start_brk:
            return current
        if self.brk + delta >= self.start_mmap:
            raise OutOfMemoryError(
                f"cannot move break by {delta}: {self.start_mmap - self.brk} bytes left"
            )
        self.brk += delta
        return current

    def _check_range(self, address: int, length: int) -> None:
        if length < 0:
            raise ValueError("length must not be negative")
        if address < 0 or address + length > len(self._memory):
            raise IndexError(
                f"range [{address}, {address + length}) lies outside the arena"
            )

    def read(self, address: int, length: int) -> bytes:
        """Return ``length`` bytes starting at ``address``."""
        self._check_range(address, length)
        return bytes(self._memory[address : address + length])

    def write(self, address: int, data: bytes) -> None:
        """Store ``data`` starting at ``address``."""
        self._check_range(address, len(data))
        self._memory[address : address + len(data)] = data

    def check_fences(self) -> FenceReport:
        """Compare both guard pages with their original contents."""
        first = self._memory[: self.start_brk] == self._first_fence
        last_end = self.start_mmap + self.page_size
        last = self._memory[self.start_mmap : last_end] == self._last_fence
        return FenceReport(first_intact=first, last_intact=last)

    def summary(self) -> str:
        """Describe fence state and usage of the arena."""
        report = self.check_fences()
        lines = [
            "### Stan plotkow przestrzeni sterty:",
            f"    Plotek poczatku: [{_FENCE_STATE[report.first_intact]}]",
            f"    Plotek konca...: [{_FENCE_STATE[report.last_intact]}]",
            "### Podsumowanie: ",
            f"    Calkowita przestrzeni pamieci....: {self.total_size} bajtow",
            f"    Pamiec zarezerwowana przez sbrk(): {self.reserved} bajtow",
        ]
        return "\n".join(lines)