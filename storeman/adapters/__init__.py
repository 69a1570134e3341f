"""Storeman adapters."""

from storeman.adapters.memory import InMemoryImageStore, InMemoryStorageGateway

__all__ = [
    "InMemoryImageStore",
    "InMemoryStorageGateway",
]
