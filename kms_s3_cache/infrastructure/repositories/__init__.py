"""
Repository implementations.
"""

from .cache_repository import InMemoryCacheRepository

__all__ = ["InMemoryCacheRepository"]
