"""Key-value storage model."""
from sqlalchemy import String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class StorageEntry(Base):
    """One persisted key and its serialized value."""

    __tablename__ = "storage_entries"

    key: Mapped[str] = mapped_column(String(512), primary_key=True)
    value: Mapped[str] = mapped_column(Text, nullable=False)

    def __repr__(self) -> str:
        return f"<StorageEntry(key={self.key})>"
