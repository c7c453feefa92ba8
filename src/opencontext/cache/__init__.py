"""Persistent record cache."""

from .codec import CacheCorruptError, CacheFormatError, CacheReadError, decode, encode
from .store import CacheStore

__all__ = [
    "CacheCorruptError",
    "CacheFormatError",
    "CacheReadError",
    "CacheStore",
    "decode",
    "encode",
]
