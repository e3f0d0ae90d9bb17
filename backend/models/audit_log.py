"""
Append-only audit trail. Rows are inserted, never updated or deleted.
"""
from sqlalchemy import Column, String, DateTime, ForeignKey, Index
from datetime import datetime, timezone

from db.base import Base, JSONType


class AuditLog(Base):
    __tablename__ = "audit_log"

    event_id = Column(String, primary_key=True)
    user_id = Column(String, nullable=True)
    document_id = Column(String, ForeignKey("documents.id"), nullable=True)
    action_type = Column(String, nullable=False)  # view | upload | tag | redact | produce
    metadata_snapshot = Column(JSONType, nullable=False, default=dict)
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))

    __table_args__ = (
        Index("ix_audit_log_document_id", "document_id"),
        Index("ix_audit_log_action_type", "action_type"),
        Index("ix_audit_log_created_at", "created_at"),
    )
