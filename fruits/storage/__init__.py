"""Storage primitives for the fruits service."""

from fruits.storage.memory import KeyedStore

__all__ = ["KeyedStore"]
