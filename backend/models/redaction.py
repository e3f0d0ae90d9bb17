"""
Redaction SQLAlchemy ORM model.

Coordinates are stored normalized to [0, 1] relative to the page image, origin
top-left. Originals are never altered; burn-in happens only at production time.
"""
from sqlalchemy import Column, String, Integer, Float, DateTime, ForeignKey, Index, CheckConstraint
from sqlalchemy.orm import relationship
from datetime import datetime, timezone

from db.base import Base, JSONType


class Redaction(Base):
    __tablename__ = "redactions"

    id = Column(String, primary_key=True)
    document_id = Column(String, ForeignKey("documents.id", ondelete="CASCADE"), nullable=False)
    page_number = Column(Integer, nullable=False)
    x = Column(Float, nullable=False)
    y = Column(Float, nullable=False)
    width = Column(Float, nullable=False)
    height = Column(Float, nullable=False)
    reason_code = Column(String, nullable=False)  # e.g. "Attorney-Client", "Work Product", "PII"
    polygon = Column(JSONType, nullable=True)      # optional [{x, y}, ...]; rectangle is authoritative
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))

    document = relationship("Document", back_populates="redactions")

    __table_args__ = (
        CheckConstraint("page_number >= 1", name="ck_redactions_page_number"),
        CheckConstraint("width > 0 AND height > 0", name="ck_redactions_size"),
        Index("ix_redactions_document_page", "document_id", "page_number"),
    )
