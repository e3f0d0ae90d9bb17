"""
Production (Bates stamping job) ORM models and their per-document / per-page ledgers.
"""
from sqlalchemy import Column, String, Integer, Boolean, Text, DateTime, ForeignKey, Index, UniqueConstraint, CheckConstraint
from sqlalchemy.orm import relationship
from datetime import datetime, timezone

from constants import PRODUCTION_PENDING, PRODUCTION_STATUSES
from db.base import Base


class Production(Base):
    __tablename__ = "productions"

    id = Column(String, primary_key=True)
    matter_id = Column(String, nullable=True, index=True)
    name = Column(String, nullable=False)
    bates_prefix = Column(String, nullable=False)
    bates_start_number = Column(Integer, nullable=False, default=1)
    source_folder_id = Column(String, ForeignKey("folders.id", ondelete="SET NULL"), nullable=True)
    include_subfolders = Column(Boolean, nullable=False, default=True)
    status = Column(String, nullable=False, default=PRODUCTION_PENDING, index=True)
    output_storage_path = Column(String, nullable=True)
    error_message = Column(Text, nullable=True)
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))
    completed_at = Column(DateTime, nullable=True)

    documents = relationship(
        "ProductionDocument", back_populates="production",
        cascade="all, delete-orphan", order_by="ProductionDocument.position",
    )
    pages = relationship(
        "ProductionPage", back_populates="production",
        cascade="all, delete-orphan", order_by="ProductionPage.position",
    )

    __table_args__ = (
        CheckConstraint(
            "status IN (" + ", ".join(f"'{s}'" for s in PRODUCTION_STATUSES) + ")",
            name="ck_productions_status",
        ),
        CheckConstraint("bates_start_number >= 1", name="ck_productions_bates_start"),
    )


class ProductionDocument(Base):
    __tablename__ = "production_documents"

    id = Column(String, primary_key=True)
    production_id = Column(String, ForeignKey("productions.id", ondelete="CASCADE"), nullable=False)
    document_id = Column(String, ForeignKey("documents.id", ondelete="CASCADE"), nullable=False)
    position = Column(Integer, nullable=False)  # scope traversal order
    bates_begin = Column(String, nullable=False)
    bates_end = Column(String, nullable=False)
    page_count = Column(Integer, nullable=False, default=0)
    is_placeholder = Column(Boolean, nullable=False, default=False)
    native_filename = Column(String, nullable=True)
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))

    production = relationship("Production", back_populates="documents")

    __table_args__ = (
        UniqueConstraint("production_id", "document_id", name="uq_production_documents"),
        Index("ix_production_documents_production_id", "production_id"),
    )


class ProductionPage(Base):
    __tablename__ = "production_pages"

    id = Column(String, primary_key=True)
    production_id = Column(String, ForeignKey("productions.id", ondelete="CASCADE"), nullable=False)
    document_id = Column(String, ForeignKey("documents.id", ondelete="CASCADE"), nullable=False)
    position = Column(Integer, nullable=False)  # global page order within the production
    page_number = Column(Integer, nullable=False)
    bates_number = Column(String, nullable=False)
    image_storage_path = Column(String, nullable=True)
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))

    production = relationship("Production", back_populates="pages")

    __table_args__ = (
        UniqueConstraint("production_id", "document_id", "page_number", name="uq_production_pages"),
        Index("ix_production_pages_production_id", "production_id"),
    )
