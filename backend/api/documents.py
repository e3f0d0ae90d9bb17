"""
Document intake and review API routes.
"""
import uuid
import logging
import os
from typing import Optional
from fastapi import APIRouter, UploadFile, File, Form, Depends, HTTPException, Query, Request
from sqlalchemy import or_
from sqlalchemy.orm import Session
from slowapi import Limiter
from slowapi.util import get_remote_address

from schemas.document_schema import (
    DocumentDetail,
    DocumentListResponse,
    DocumentOut,
    DocumentUploadResponse,
    DownloadResponse,
    FamilyOut,
)
from dependencies import get_current_user_id, get_db
from models.document import Document
from models.folder import DocumentFolder
from core.hashing import compute_hashes
from services.audit import append_audit_log
from services.families import get_family_group, group_families
from services.storage import StorageError, document_storage_path, get_storage, sanitize_filename
from services.folders import folder_closure
from workers.queue import enqueue_document_processing
from constants import STATUS_PENDING
from config import settings

logger = logging.getLogger(__name__)
limiter = Limiter(key_func=get_remote_address)

router = APIRouter(prefix="/api", tags=["Documents"])


def _get_document_or_404(db: Session, doc_id: str) -> Document:
    doc = db.get(Document, doc_id)
    if not doc:
        raise HTTPException(status_code=404, detail="Document not found")
    return doc


@router.post("/upload", response_model=DocumentUploadResponse, status_code=201)
@limiter.limit(settings.RATE_LIMIT_UPLOAD)
async def upload_document(
    request: Request,
    file: UploadFile = File(...),
    matter_id: Optional[str] = Form(None),
    custodian: Optional[str] = Form(None),
    force_ocr: bool = Form(False),
    user_id: Optional[str] = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    file_bytes = await file.read()

    # ── Validate file size ──
    if not file_bytes:
        raise HTTPException(status_code=400, detail="Uploaded file is empty")
    max_bytes = settings.MAX_FILE_SIZE_MB * 1024 * 1024
    if len(file_bytes) > max_bytes:
        raise HTTPException(
            status_code=400,
            detail=f"File too large ({len(file_bytes) / (1024*1024):.1f} MB). Maximum allowed: {settings.MAX_FILE_SIZE_MB} MB",
        )

    doc_id = str(uuid.uuid4())
    original_name = os.path.basename(file.filename or "") or None
    safe_name = sanitize_filename(file.filename, fallback=f"upload_{doc_id}")
    storage_path = document_storage_path(matter_id, doc_id, safe_name)
    content_type = file.content_type or "application/octet-stream"
    md5_hash, sha1_hash = compute_hashes(file_bytes)

    try:
        get_storage().upload(file_bytes, storage_path, content_type)
    except StorageError as e:
        logger.error(f"Failed to upload to storage: {e}")
        raise HTTPException(status_code=500, detail="File upload failed")

    # ── Save metadata to DB ──
    doc = Document(
        id=doc_id,
        matter_id=matter_id,
        parent_id=None,
        family_id=doc_id,
        family_index=0,
        storage_path=storage_path,
        filename=safe_name,
        original_filename=original_name,
        mime_type=content_type,
        file_type=os.path.splitext(safe_name)[1].lstrip(".").lower() or None,
        custodian=custodian,
        size=len(file_bytes),
        md5_hash=md5_hash,
        sha1_hash=sha1_hash,
        doc_metadata={"source": "upload"},
        processing_status=STATUS_PENDING,
    )
    db.add(doc)
    append_audit_log(
        db,
        "upload",
        document_id=doc_id,
        user_id=user_id,
        metadata_snapshot={
            "filename": original_name,
            "size": len(file_bytes),
            "md5_hash": md5_hash,
            "sha1_hash": sha1_hash,
            "matter_id": matter_id,
        },
        commit=False,
    )
    db.commit()
    db.refresh(doc)

    logger.info(f"Document uploaded: {doc.filename} → {storage_path}")
    enqueue_document_processing(doc.id, force_ocr)

    return DocumentUploadResponse(
        id=doc.id,
        filename=doc.filename,
        family_id=doc.family_id,
        md5_hash=md5_hash,
        sha1_hash=sha1_hash,
        size=doc.size,
        processing_status=doc.processing_status,
    )


@router.get("/documents", response_model=DocumentListResponse)
async def list_documents(
    db: Session = Depends(get_db),
    matter_id: Optional[str] = Query(None),
    custodian: Optional[str] = Query(None),
    family_id: Optional[str] = Query(None),
    doc_type: Optional[str] = Query(None, description="File extension or MIME type"),
    keyword: Optional[str] = Query(None, description="Substring match on filename or extracted text"),
    folder_id: Optional[str] = Query(None),
    include_subfolders: bool = Query(False),
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=200),
    expand: Optional[str] = Query(None, description="'families' groups results under their roots"),
):
    query = db.query(Document)
    if matter_id:
        query = query.filter(Document.matter_id == matter_id)
    if custodian:
        query = query.filter(Document.custodian == custodian)
    if family_id:
        query = query.filter(Document.family_id == family_id)
    if doc_type:
        query = query.filter(or_(Document.file_type == doc_type.lstrip(".").lower(), Document.mime_type == doc_type))
    if keyword:
        pattern = f"%{keyword}%"
        query = query.filter(or_(Document.filename.ilike(pattern), Document.extracted_text.ilike(pattern)))
    if folder_id:
        folder_ids = folder_closure(db, folder_id) if include_subfolders else [folder_id]
        member_ids = db.query(DocumentFolder.document_id).filter(DocumentFolder.folder_id.in_(folder_ids))
        query = query.filter(Document.id.in_(member_ids))

    expand_families = expand == "families"
    if expand_families:
        query = query.filter(Document.parent_id.is_(None))

    total = query.count()
    docs = (
        query.order_by(Document.created_at.desc(), Document.id)
        .offset((page - 1) * page_size)
        .limit(page_size)
        .all()
    )

    families = None
    if expand_families:
        families = [
            FamilyOut(
                root=DocumentOut.model_validate(g.root),
                children=[DocumentOut.model_validate(c) for c in g.children],
            )
            for g in group_families(db, [d.family_id for d in docs])
        ]

    return DocumentListResponse(
        items=[DocumentOut.model_validate(d) for d in docs],
        families=families,
        total=total,
        page=page,
        page_size=page_size,
    )


@router.get("/documents/{doc_id}", response_model=DocumentDetail)
async def get_document(doc_id: str, db: Session = Depends(get_db)):
    """Get metadata (and cached extracted text) for a single document."""
    return DocumentDetail.model_validate(_get_document_or_404(db, doc_id))


@router.get("/documents/{doc_id}/family", response_model=FamilyOut)
async def get_document_family(doc_id: str, db: Session = Depends(get_db)):
    """The root and ordered attachments of the family containing this document."""
    group = get_family_group(db, doc_id)
    if group is None:
        raise HTTPException(status_code=404, detail="Document not found")
    return FamilyOut(
        root=DocumentOut.model_validate(group.root),
        children=[DocumentOut.model_validate(c) for c in group.children],
    )


@router.get("/documents/{doc_id}/download", response_model=DownloadResponse)
async def download_document(
    doc_id: str,
    user_id: Optional[str] = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """Get a signed download URL for the original file."""
    doc = _get_document_or_404(db, doc_id)

    try:
        signed_url = get_storage().get_signed_url(doc.storage_path)
    except StorageError as e:
        logger.error(f"Failed to generate signed URL: {e}")
        raise HTTPException(status_code=500, detail="Could not generate download link")

    append_audit_log(db, "view", document_id=doc.id, user_id=user_id, metadata_snapshot={"via": "download"})
    return DownloadResponse(download_url=signed_url, filename=doc.native_filename)


@router.post("/documents/{doc_id}/reprocess", status_code=202)
@limiter.limit(settings.RATE_LIMIT_DEFAULT)
async def reprocess_document(
    request: Request,
    doc_id: str,
    force_ocr: bool = Query(False),
    db: Session = Depends(get_db),
):
    """Re-run ingestion; already linked attachments are not duplicated."""
    doc = _get_document_or_404(db, doc_id)
    enqueue_document_processing(doc.id, force_ocr)
    return {"id": doc.id, "detail": "Reprocessing queued", "force_ocr": force_ocr}
