# brkheap

`brkheap` models a small heap allocator on top of a simulated program break.
All memory lives in one Python `bytearray`, and a pointer is an integer
offset into it.

The package has two layers:

- `brkheap.arena.Arena` is a fixed block of pages with a random fence page
  at each end. Its constructor takes `pages_available` (default 16384),
  `page_size` (default 4096) and an optional `seed` for the fence contents.
  - `sbrk(delta)` moves the break and returns its previous position. A move
    that would go below the start of the heap leaves the break where it is.
    A move that reaches the end of the region raises `OutOfMemoryError`, which
    is a subclass of `MemoryError`.
  - `read(address, length)` and `write(address, data)` access the raw bytes.
    They raise `IndexError` for a range outside the arena.
  - `check_fences()` returns a `FenceReport` with `first_intact`,
    `last_intact` and `intact`.
  - `total_size` and `reserved` give the usable size and the number of bytes
    taken by `sbrk`. `summary()` returns a short text report of the fence
    state and of the usage. The report is in Polish.
- `brkheap.heap.Heap` is a first-fit allocator over an arena. If no arena is
  given it creates a default `Arena()`. Every chunk starts with a 32-byte
  header stored in the arena, which holds a checksum. A pair of `#` fence
  bytes sits on each side of the chunk's user data.

## Installation

```
pip install .
```

To install with the test dependencies and run the tests:

```
pip install ".[test]"
pytest
```

## Usage

```python
from brkheap.arena import Arena
from brkheap.heap import Heap, PointerType, ValidationStatus

heap = Heap(Arena())
heap.setup()

p = heap.calloc(4, 1)
heap.write(p, b"abc\0")
assert heap.read(p, 3) == b"abc"

assert heap.get_pointer_type(p) is PointerType.VALID
assert heap.validate() is ValidationStatus.OK

p = heap.realloc(p, 64)
print(heap.largest_used_block_size())   # 64

heap.free(p)
heap.clean()
```

### Allocation

- `malloc(size)` returns the address of a new block. It reuses the first
  free chunk that is large enough and splits off what is left over when
  enough space remains. Otherwise it extends the break. A size that is not
  positive raises `ValueError`.
- `calloc(number, size)` does the same for `number * size` bytes and fills
  them with zeros.
- `realloc(memblock, count)` behaves in these ways:
  - It allocates when `memblock` is `None`.
  - It frees the block and returns `None` when `count` is 0.
  - It shrinks the block in place.
  - It grows the block into a free neighbour or at the end of the heap when
    it can. Otherwise it moves the data to a new block.
  - It raises `ValueError` for an invalid size or an address that is not an
    allocated block.
  - It raises `RuntimeError` when `validate()` does not report `OK`.
  - It returns an address inside a freed chunk unchanged.
- `free(memblock)` marks the block free and merges free chunks that are
  next to each other. `free(None)` does nothing.
- `clean()` gives all heap memory back to the arena and forgets every chunk.

### Inspection

- `get_pointer_type(pointer)` returns a `PointerType`:
  - `NULL` for `None`.
  - `UNALLOCATED` inside a free chunk.
  - `CONTROL_BLOCK` inside a header.
  - `INSIDE_FENCES` on a fence byte.
  - `INSIDE_DATA_BLOCK` inside the user data but past its first byte.
  - `VALID` otherwise. This covers the first data byte and also any address
    that falls in no chunk.
- `validate()` returns a `ValidationStatus`:
  - `UNINITIALISED` before any setup or allocation, or after `clean()`.
  - `CONTROL_DAMAGED` when a header checksum does not match or the chunk list
    is broken.
  - `FENCES_DAMAGED` when a fence of a used chunk has been overwritten.
  - `OK` when none of these problems is found.
- `largest_used_block_size()` returns the size of the largest allocated
  block. It returns 0 when the heap does not validate.

## Demo

```
brkheap-demo
```

The demo prints the size of a chunk header. It allocates a four-byte string
with `calloc`, fills it with `abc`, prints it and frees it. Last, it prints
the arena summary.

## Limits

`brkheap` is a simulation. It does not touch real process memory and cannot
stand in for Python's own memory management. The default arena allocates
about 64 MiB up front, so pass a smaller `pages_available` for light use.