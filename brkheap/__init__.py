"""A simulated sbrk-backed heap allocator with fenced, checksummed chunks."""

__version__ = "0.1.0"
__all__ = ["arena", "heap", "demo"]