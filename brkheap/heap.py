"""A first-fit heap allocator with guarded chunks, built on an :class:`Arena`.

Every chunk starts with a control header stored inside the arena, followed by
a two-byte fence, the user data and another two-byte fence. Headers carry a
checksum so that damage to the control structures can be detected.
"""

from __future__ import annotations

import enum
import struct
from collections.abc import Iterator
from dataclasses import dataclass

from brkheap.arena import Arena

_HEADER = struct.Struct("<QQQiI")
HEADER_SIZE = _HEADER.size
FENCE_SIZE = 2
_CHECKED_BYTES = HEADER_SIZE - 4
_OVERHEAD = HEADER_SIZE + 2 * FENCE_SIZE
_FENCE = b"#" * FENCE_SIZE


class PointerType(enum.IntEnum):
    """Classification of an address relative to the heap's chunks."""

    NULL = 0
    HEAP_CORRUPTED = 1
    CONTROL_BLOCK = 2
    INSIDE_FENCES = 3
    INSIDE_DATA_BLOCK = 4
    UNALLOCATED = 5
    VALID = 6


class ValidationStatus(enum.IntEnum):
    """Result of :meth:`Heap.validate`."""

    OK = 0
    FENCES_DAMAGED = 1
    UNINITIALISED = 2
    CONTROL_DAMAGED = 3


@dataclass
class _Chunk:
    address: int
    prev: int | None
    next: int | None
    size: int
    free: bool


def _checksum(raw: bytes) -> int:
    return sum(raw[:_CHECKED_BYTES]) & 0xFFFFFFFF


class Heap:
    """Allocator handing out integer addresses inside an :class:`Arena`."""

    def __init__(self, arena: Arena | None = None) -> None:
        self.arena = arena if arena is not None else Arena()
        self.memory_start: int | None = None
        self.memory_size = 0
        self._first: int | None = None

    # -- header storage -------------------------------------------------

    def _load(self, address: int) -> _Chunk:
        prev, nxt, size, free, _ = _HEADER.unpack(self.arena.read(address, HEADER_SIZE))
        return _Chunk(address, prev or None, nxt or None, size, bool(free))

    def _save(self, chunk: _Chunk) -> None:
        body = _HEADER.pack(chunk.prev or 0, chunk.next or 0, chunk.size, int(chunk.free), 0)
        sealed = body[:_CHECKED_BYTES] + struct.pack("<I", _checksum(body))
        self.arena.write(chunk.address, sealed)

    def _draw_fences(self, chunk: _Chunk) -> None:
        self.arena.write(chunk.address + HEADER_SIZE, _FENCE)
        self.arena.write(chunk.address + HEADER_SIZE + FENCE_SIZE + chunk.size, _FENCE)

    def _chunks(self) -> Iterator[_Chunk]:
        address = self._first
        while address is not None:
            chunk = self._load(address)
            yield chunk
            address = chunk.next

    @staticmethod
    def _data_of(chunk: _Chunk) -> int:
        return chunk.address + HEADER_SIZE + FENCE_SIZE

    @staticmethod
    def _header_of(pointer: int) -> int:
        return pointer - HEADER_SIZE - FENCE_SIZE

    # -- list surgery ---------------------------------------------------

    def _split(self, chunk: _Chunk, size: int) -> _Chunk:
        """Cut ``chunk`` down to ``size`` and return the free remainder (unsaved)."""
        rest = _Chunk(
            address=chunk.address + _OVERHEAD + size,
            prev=chunk.address,
            next=chunk.next,
            size=chunk.size - size - _OVERHEAD,
            free=True,
        )
        if chunk.next is not None:
            following = self._load(chunk.next)
            following.prev = rest.address
            self._save(following)
        chunk.next = rest.address
        chunk.size = size
        return rest

    def _absorb_next(self, chunk: _Chunk) -> None:
        """Merge the chunk after ``chunk`` into it (``chunk`` is left unsaved)."""
        nxt = self._load(chunk.next)
        chunk.size += nxt.size + _OVERHEAD
        chunk.next = nxt.next
        if nxt.next is not None:
            following = self._load(nxt.next)
            following.prev = chunk.address
            self._save(following)

    def _coalesce(self) -> None:
        address = self._first
        while address is not None:
            chunk = self._load(address)
            if chunk.next is not None and chunk.free and self._load(chunk.next).free:
                self._absorb_next(chunk)
                self._save(chunk)
                continue
            address = chunk.next

    def _is_chunk(self, address: int) -> bool:
        return any(chunk.address == address for chunk in self._chunks())

    # -- public interface -----------------------------------------------

    def setup(self) -> None:
        """Start an empty heap at the arena's current break."""
        self.memory_start = self.arena.sbrk(0)
        self.memory_size = 0
        self._first = None

    def clean(self) -> None:
        """Return all heap memory to the arena and forget every chunk."""
        self.arena.sbrk(-self.memory_size)
        self.memory_start = None
        self.memory_size = 0
        self._first = None

    def malloc(self, size: int) -> int:
        """Allocate ``size`` bytes and return the address of the data."""
        if size <= 0:
            raise ValueError("size must be positive")

        if self._first is None:
            address = self.arena.sbrk(_OVERHEAD + size)
            self._first = address
            self.memory_start = address
            self.memory_size = _OVERHEAD + size
            chunk = _Chunk(address, None, None, size, False)
            self._save(chunk)
            self._draw_fences(chunk)
            return self._data_of(chunk)

        chunk = self._load(self._first)
        while chunk.next is not None:
            if chunk.free and chunk.size >= size:
                chunk.free = False
                if chunk.size - size > _OVERHEAD:
                    self._save(self._split(chunk, size))
                chunk.size = size
                self._save(chunk)
                self._draw_fences(chunk)
                return self._data_of(chunk)
            chunk = self._load(chunk.next)

        address = self.arena.sbrk(_OVERHEAD + size)
        new = _Chunk(address, chunk.address, None, size, False)
        chunk.next = address
        self._save(chunk)
        self._save(new)
        self._draw_fences(new)
        self.memory_size += _OVERHEAD + size
        return self._data_of(new)

    def calloc(self, number: int, size: int) -> int:
        """Allocate ``number * size`` zeroed bytes."""
        if number <= 0 or size <= 0:
            raise ValueError("number and size must be positive")
        pointer = self.malloc(number * size)
        self.arena.write(pointer, bytes(number * size))
        return pointer

    def realloc(self, memblock: int | None, count: int) -> int | None:
        """Resize the block at ``memblock`` to ``count`` bytes.

        Returns the (possibly moved) address, or ``None`` when ``count`` is 0
        and the block has been freed.
        """
        if count < 0 or (memblock is None and count == 0):
            raise ValueError("invalid size for realloc")
        status = self.validate()
        if status is not ValidationStatus.OK:
            raise RuntimeError(f"heap is not usable: {status.name}")

        if memblock is None:
            return self.malloc(count)
        if count == 0:
            self.free(memblock)
            return None

        kind = self.get_pointer_type(memblock)
        if kind is PointerType.UNALLOCATED:
            return memblock
        if kind is not PointerType.VALID or not self._is_chunk(self._header_of(memblock)):
            raise ValueError(f"address {memblock} is not an allocated block")

        chunk = self._load(self._header_of(memblock))
        if chunk.size == count:
            return memblock

        if chunk.size > count:
            if chunk.size - count > _OVERHEAD:
                rest = self._split(chunk, count)
                if rest.next is not None and self._load(rest.next).free:
                    self._absorb_next(rest)
                self._save(rest)
            chunk.size = count
            self._save(chunk)
            self._draw_fences(chunk)
            return memblock

        if chunk.next is not None:
            nxt = self._load(chunk.next)
            if nxt.free and chunk.size + _OVERHEAD + nxt.size >= count:
                self._absorb_next(chunk)
                if chunk.size - count > _OVERHEAD:
                    self._save(self._split(chunk, count))
                chunk.size = count
                self._save(chunk)
                self._draw_fences(chunk)
                return memblock
        else:
            self.arena.sbrk(count - chunk.size)
            self.memory_size += count - chunk.size
            chunk.size = count
            self._save(chunk)
            self._draw_fences(chunk)
            return memblock

        new_pointer = self.malloc(count)
        self.arena.write(new_pointer, self.arena.read(memblock, chunk.size))
        self.free(memblock)
        return new_pointer

    def free(self, memblock: int | None) -> None:
        """Release the block at ``memblock`` and merge neighbouring free chunks."""
        if memblock is None:
            return
        target = self._header_of(memblock)
        for chunk in self._chunks():
            if chunk.address == target:
                chunk.free = True
                self._save(chunk)
                break
        self._coalesce()

    def get_pointer_type(self, pointer: int | None) -> PointerType:
        """Classify ``pointer`` relative to the heap's chunks."""
        if pointer is None:
            return PointerType.NULL
        for chunk in self._chunks():
            start = chunk.address
            if not start <= pointer < start + _OVERHEAD + chunk.size:
                continue
            if chunk.free:
                return PointerType.UNALLOCATED
            if pointer < start + HEADER_SIZE:
                return PointerType.CONTROL_BLOCK
            data = self._data_of(chunk)
            if pointer >= data + chunk.size or pointer < data:
                return PointerType.INSIDE_FENCES
            if pointer > data:
                return PointerType.INSIDE_DATA_BLOCK
        return PointerType.VALID

    def validate(self) -> ValidationStatus:
        """Check the control headers and the fences of every used chunk."""
        if self.memory_start is None:
            return ValidationStatus.UNINITIALISED

        seen: set[int] = set()
        address = self._first
        while address is not None:
            if address in seen:
                return ValidationStatus.CONTROL_DAMAGED
            seen.add(address)
            try:
                raw = self.arena.read(address, HEADER_SIZE)
            except IndexError:
                return ValidationStatus.CONTROL_DAMAGED
            if _checksum(raw) != struct.unpack_from("<I", raw, _CHECKED_BYTES)[0]:
                return ValidationStatus.CONTROL_DAMAGED
            address = _HEADER.unpack(raw)[1] or None

        for chunk in self._chunks():
            if chunk.free:
                continue
            try:
                head = self.arena.read(chunk.address + HEADER_SIZE, FENCE_SIZE)
                tail = self.arena.read(self._data_of(chunk) + chunk.size, FENCE_SIZE)
            except IndexError:
                return ValidationStatus.FENCES_DAMAGED
            if head != _FENCE or tail != _FENCE:
                return ValidationStatus.FENCES_DAMAGED
        return ValidationStatus.OK

    def largest_used_block_size(self) -> int:
        """Size of the largest allocated block, or 0 if the heap is not valid."""
        if self.validate() is not ValidationStatus.OK:
            return 0
        return max((c.size for c in self._chunks() if not c.free), default=0)

    def read(self, pointer: int, length: int) -> bytes:
        """Read ``length`` bytes at ``pointer``."""
        return self.arena.read(pointer, length)

    def write(self, pointer: int, data: bytes) -> None:
        """Write ``data`` at ``pointer``."""
        self.arena.write(pointer, data)