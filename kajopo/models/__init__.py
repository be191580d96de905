"""Database models module."""
from .base import Base
from .storage import StorageEntry

__all__ = [
    "Base",
    "StorageEntry",
]
