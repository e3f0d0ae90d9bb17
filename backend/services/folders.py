"""
Folder tree helpers shared by the review API and production scoping.
"""
from typing import Dict, List

from sqlalchemy import func
from sqlalchemy.orm import Session

from models.folder import DocumentFolder, Folder


def folder_closure(db: Session, folder_id: str) -> List[str]:
    """The folder and all of its descendants, walked through parent pointers."""
    collected = [folder_id]
    seen = {folder_id}
    stack = [folder_id]
    while stack:
        current = stack.pop()
        for (child_id,) in db.query(Folder.id).filter(Folder.parent_id == current).all():
            if child_id not in seen:
                seen.add(child_id)
                collected.append(child_id)
                stack.append(child_id)
    return collected


def folder_document_ids(db: Session, folder_id: str, include_subfolders: bool = True) -> List[str]:
    """Distinct ids of documents filed in the folder (and its subfolders)."""
    folder_ids = folder_closure(db, folder_id) if include_subfolders else [folder_id]
    rows = (
        db.query(DocumentFolder.document_id)
        .filter(DocumentFolder.folder_id.in_(folder_ids))
        .distinct()
        .all()
    )
    return [row[0] for row in rows]


def document_counts(db: Session) -> Dict[str, int]:
    """Direct member count per folder id."""
    rows = (
        db.query(DocumentFolder.folder_id, func.count(DocumentFolder.document_id))
        .group_by(DocumentFolder.folder_id)
        .all()
    )
    return {folder_id: count for folder_id, count in rows}
