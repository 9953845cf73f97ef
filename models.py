"""
Crew Pairing Parser - SQLAlchemy 2.x Models
Persistent copy of parsed documents, keyed by document content.
"""

from __future__ import annotations

import json
import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import String, Text, Integer, DateTime
from sqlalchemy.orm import Mapped, mapped_column, DeclarativeBase


class Base(DeclarativeBase):
    """Base class for all models using SQLAlchemy 2.0 declarative style."""
    pass


def generate_uuid() -> str:
    """Generate a new UUID string."""
    return str(uuid.uuid4())


def utcnow() -> datetime:
    """Naive UTC timestamp, as SQLite DateTime columns store them."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


# ==================== PARSED DOCUMENT MODEL ====================

class ParsedDocument(Base):
    """Parse result of one pairing document, stored as JSON."""
    __tablename__ = "parsed_documents"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    cache_key: Mapped[str] = mapped_column(String(128), unique=True, nullable=False, index=True)
    source_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    pairing_count: Mapped[int] = mapped_column(Integer, default=0)
    result_json: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    @property
    def result(self) -> dict:
        return json.loads(self.result_json)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "cache_key": self.cache_key,
            "source_name": self.source_name,
            "pairing_count": self.pairing_count,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
