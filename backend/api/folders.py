"""
Folder tree API routes (culling and production scope).
"""
import uuid
import logging
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from schemas.folder_schema import FolderCreate, FolderDocumentsRequest, FolderOut, FolderRename, FolderTreeNode
from dependencies import get_db
from models.document import Document
from models.folder import DocumentFolder, Folder
from services.folders import document_counts

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/folders", tags=["Folders"])


def _get_folder_or_404(db: Session, folder_id: str) -> Folder:
    folder = db.get(Folder, folder_id)
    if not folder:
        raise HTTPException(status_code=404, detail="Folder not found")
    return folder


def _to_out(folder: Folder, counts: dict) -> FolderOut:
    return FolderOut(
        id=folder.id,
        name=folder.name,
        matter_id=folder.matter_id,
        parent_id=folder.parent_id,
        document_count=counts.get(folder.id, 0),
        created_at=folder.created_at,
    )


@router.get("/", response_model=List[FolderTreeNode])
async def list_folders(matter_id: Optional[str] = Query(None), db: Session = Depends(get_db)):
    """The folder forest, each node with its direct document count."""
    query = db.query(Folder)
    if matter_id:
        query = query.filter(Folder.matter_id == matter_id)
    folders = query.order_by(Folder.name, Folder.id).all()
    counts = document_counts(db)

    nodes = {f.id: FolderTreeNode(**_to_out(f, counts).model_dump()) for f in folders}
    roots = []
    for f in folders:
        parent = nodes.get(f.parent_id) if f.parent_id else None
        if parent is not None:
            parent.children.append(nodes[f.id])
        else:
            roots.append(nodes[f.id])
    return roots


@router.post("/", response_model=FolderOut, status_code=201)
async def create_folder(payload: FolderCreate, db: Session = Depends(get_db)):
    if payload.parent_id:
        parent = _get_folder_or_404(db, payload.parent_id)
        if payload.matter_id and parent.matter_id and parent.matter_id != payload.matter_id:
            raise HTTPException(status_code=400, detail="Parent folder belongs to a different matter")

    folder = Folder(
        id=str(uuid.uuid4()),
        name=payload.name,
        matter_id=payload.matter_id,
        parent_id=payload.parent_id,
    )
    db.add(folder)
    db.commit()
    db.refresh(folder)
    logger.info(f"Folder created: {folder.name} ({folder.id})")
    return _to_out(folder, {})


@router.get("/{folder_id}", response_model=FolderOut)
async def get_folder(folder_id: str, db: Session = Depends(get_db)):
    return _to_out(_get_folder_or_404(db, folder_id), document_counts(db))


@router.patch("/{folder_id}", response_model=FolderOut)
async def rename_folder(folder_id: str, payload: FolderRename, db: Session = Depends(get_db)):
    folder = _get_folder_or_404(db, folder_id)
    folder.name = payload.name
    db.commit()
    db.refresh(folder)
    return _to_out(folder, document_counts(db))


@router.delete("/{folder_id}")
async def delete_folder(folder_id: str, db: Session = Depends(get_db)):
    """Delete a folder, its subfolders and their memberships. Documents are kept."""
    folder = _get_folder_or_404(db, folder_id)
    db.delete(folder)
    db.commit()
    logger.info(f"Folder deleted: {folder_id}")
    return {"detail": "Folder deleted"}


@router.post("/{folder_id}/documents")
async def add_documents(folder_id: str, payload: FolderDocumentsRequest, db: Session = Depends(get_db)):
    """File documents into the folder. Already filed documents are ignored."""
    _get_folder_or_404(db, folder_id)

    found = {row[0] for row in db.query(Document.id).filter(Document.id.in_(payload.document_ids)).all()}
    missing = [d for d in payload.document_ids if d not in found]
    if missing:
        raise HTTPException(status_code=404, detail=f"Documents not found: {', '.join(missing)}")

    existing = {
        row[0]
        for row in db.query(DocumentFolder.document_id)
        .filter(DocumentFolder.folder_id == folder_id, DocumentFolder.document_id.in_(payload.document_ids))
        .all()
    }
    added = [d for d in payload.document_ids if d not in existing]
    for document_id in added:
        db.add(DocumentFolder(document_id=document_id, folder_id=folder_id))
    db.commit()
    return {"added": len(added), "already_present": len(existing)}


@router.delete("/{folder_id}/documents/{document_id}")
async def remove_document(folder_id: str, document_id: str, db: Session = Depends(get_db)):
    membership = db.get(DocumentFolder, (document_id, folder_id))
    if not membership:
        raise HTTPException(status_code=404, detail="Document is not in this folder")
    db.delete(membership)
    db.commit()
    return {"detail": "Document removed from folder"}
