"""Message and interaction history sources."""

from .memory import InMemoryMailStore

__all__ = ["InMemoryMailStore"]
