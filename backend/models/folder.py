"""
Folder tree and document membership (culling / production scope).
"""
from sqlalchemy import Column, String, DateTime, ForeignKey
from sqlalchemy.orm import relationship, backref
from datetime import datetime, timezone

from db.base import Base


class Folder(Base):
    __tablename__ = "folders"

    id = Column(String, primary_key=True)
    matter_id = Column(String, nullable=True, index=True)
    name = Column(String, nullable=False)
    parent_id = Column(String, ForeignKey("folders.id", ondelete="CASCADE"), nullable=True, index=True)
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))

    children = relationship("Folder", cascade="all, delete-orphan", backref=backref("parent", remote_side=[id]))
    memberships = relationship("DocumentFolder", back_populates="folder", cascade="all, delete-orphan")


class DocumentFolder(Base):
    __tablename__ = "document_folders"

    document_id = Column(String, ForeignKey("documents.id", ondelete="CASCADE"), primary_key=True)
    folder_id = Column(String, ForeignKey("folders.id", ondelete="CASCADE"), primary_key=True, index=True)
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))

    folder = relationship("Folder", back_populates="memberships")
