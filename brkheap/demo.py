"""Small demonstration of the heap allocator."""

from __future__ import annotations

import argparse

from brkheap.arena import Arena
from brkheap.heap import HEADER_SIZE, Heap


def main(argv: list[str] | None = None) -> int:
    """Allocate a short string on the heap, print it and report arena state."""
    parser = argparse.ArgumentParser(
        prog="brkheap", description="Allocate a string on a simulated heap."
    )
    parser.parse_args(argv)

    arena = Arena()
    heap = Heap(arena)

    print(f"The memory chunk size: {HEADER_SIZE}")

    pointer = heap.calloc(4, 1)
    heap.write(pointer, b"abc\0")
    text = heap.read(pointer, 4).split(b"\0", 1)[0].decode("ascii")
    print(text)

    heap.free(pointer)

    print()
    print(arena.summary())
    return 0


if __name__ == "__main__":
    raise SystemExit(main())