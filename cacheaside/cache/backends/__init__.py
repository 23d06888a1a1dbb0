"""
cacheaside - Store Backends

Exports available store implementations.

The Redis store is lazy-loaded via factory.py so the redis client stays optional.
"""

from .memory import MemoryStore

__all__ = [
    "MemoryStore",
]
