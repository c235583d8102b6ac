"""Pluggable response caches for conditional GET requests."""

from .base import CacheEntry, ResponseCache, cache_key
from .filesystem import FileCache
from .memory import MemoryCache
from .registry import get_cache

__all__ = [
    "CacheEntry",
    "FileCache",
    "MemoryCache",
    "ResponseCache",
    "cache_key",
    "get_cache",
]
