from sqlalchemy import Column, DateTime, Index, JSON, String
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.sql import func
from core.database import Base
from datetime import datetime, timezone


def _utcnow():
    return datetime.now(timezone.utc)


class Document(Base):
    """
    A single JSON document addressed by (collection, doc_id).

    Every collection the app reads or writes (users, daily_checkins,
    weekly_checkins, food_diary, workout_logs, coaches, messages, ...) lives in
    this one table. Field-level equality queries go through JSON accessors.
    """
    __tablename__ = "document"

    collection = Column(String(100), primary_key=True)
    doc_id = Column(String(255), primary_key=True)
    # JSONB on Postgres, plain JSON elsewhere (SQLite in tests)
    data = Column(JSON().with_variant(JSONB, "postgresql"), nullable=False, default=dict)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), default=_utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False)

    __table_args__ = (
        Index("ix_document_collection_created_at", "collection", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<Document {self.collection}/{self.doc_id}>"
