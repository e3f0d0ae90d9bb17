"""
Document SQLAlchemy ORM model.

One row per uploaded file or exploded e-mail attachment.
"""
from sqlalchemy import Column, String, Integer, BigInteger, Boolean, Text, DateTime, ForeignKey, Index, CheckConstraint
from sqlalchemy.orm import relationship
from datetime import datetime, timezone

from constants import PROCESSING_STATUSES, STATUS_PENDING
from db.base import Base, JSONType


class Document(Base):
    __tablename__ = "documents"

    id = Column(String, primary_key=True)
    matter_id = Column(String, nullable=True, index=True)

    # Family linkage: root has parent_id NULL and family_id == id
    parent_id = Column(String, ForeignKey("documents.id"), nullable=True)
    family_id = Column(String, nullable=False)
    family_index = Column(Integer, nullable=False, default=0)  # 0 = root, 1..n = attachment order

    storage_path = Column(String, nullable=False)
    filename = Column(String, nullable=False)
    original_filename = Column(String, nullable=True)
    mime_type = Column(String, nullable=True)
    file_type = Column(String, nullable=True)
    custodian = Column(String, nullable=True)
    size = Column(BigInteger, nullable=False, default=0)

    # Computed once over the original bytes
    md5_hash = Column(String(32), nullable=True)
    sha1_hash = Column(String(40), nullable=True)

    # "metadata" is reserved on declarative classes
    doc_metadata = Column("metadata", JSONType, nullable=False, default=dict)
    extracted_text_path = Column(String, nullable=True)
    extracted_text = Column(Text, nullable=True)

    processing_status = Column(String, nullable=False, default=STATUS_PENDING)
    processing_error = Column(Text, nullable=True)
    processed_at = Column(DateTime, nullable=True)

    # Review coding, owned by the review workflow
    relevance_flag = Column(Boolean, nullable=True)
    privilege_flag = Column(Boolean, nullable=True)
    issue_tags = Column(JSONType, nullable=False, default=list)

    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(
        DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    parent = relationship("Document", remote_side=[id], backref="children")
    redactions = relationship("Redaction", back_populates="document", cascade="all, delete-orphan")

    __table_args__ = (
        Index("ix_documents_family_id", "family_id"),
        Index("ix_documents_parent_id", "parent_id"),
        Index("ix_documents_processing_status", "processing_status"),
        CheckConstraint(
            "processing_status IN (" + ", ".join(f"'{s}'" for s in PROCESSING_STATUSES) + ")",
            name="ck_documents_processing_status",
        ),
    )

    @property
    def native_filename(self) -> str:
        return self.original_filename or self.filename

    @property
    def is_family_root(self) -> bool:
        return self.parent_id is None
