"""
Redaction API routes. Every mutation is written to the audit trail.
"""
import uuid
import logging
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from schemas.redaction_schema import RedactionCreate, RedactionOut, RedactionUpdate, check_rect
from dependencies import get_current_user_id, get_db
from models.document import Document
from models.redaction import Redaction
from services.audit import append_audit_log

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/redactions", tags=["Redactions"])


def _audit(db: Session, redaction: Redaction, action: str, user_id: Optional[str]) -> None:
    append_audit_log(
        db,
        "redact",
        document_id=redaction.document_id,
        user_id=user_id,
        metadata_snapshot={
            "redaction_id": redaction.id,
            "action": action,
            "page_number": redaction.page_number,
            "reason_code": redaction.reason_code,
        },
        commit=False,
    )


def _get_redaction_or_404(db: Session, redaction_id: str) -> Redaction:
    redaction = db.get(Redaction, redaction_id)
    if not redaction:
        raise HTTPException(status_code=404, detail="Redaction not found")
    return redaction


@router.get("/", response_model=List[RedactionOut])
async def list_redactions(
    document_id: str = Query(...),
    page_number: Optional[int] = Query(None, ge=1),
    db: Session = Depends(get_db),
):
    query = db.query(Redaction).filter(Redaction.document_id == document_id)
    if page_number is not None:
        query = query.filter(Redaction.page_number == page_number)
    return query.order_by(Redaction.page_number, Redaction.created_at).all()


@router.post("/", response_model=RedactionOut, status_code=201)
async def create_redaction(
    payload: RedactionCreate,
    user_id: Optional[str] = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    if not db.get(Document, payload.document_id):
        raise HTTPException(status_code=404, detail="Document not found")

    redaction = Redaction(id=str(uuid.uuid4()), **payload.model_dump())
    db.add(redaction)
    _audit(db, redaction, "create", user_id)
    db.commit()
    db.refresh(redaction)
    logger.info(f"Redaction {redaction.id} created on document {redaction.document_id} page {redaction.page_number}")
    return redaction


@router.patch("/{redaction_id}", response_model=RedactionOut)
async def update_redaction(
    redaction_id: str,
    payload: RedactionUpdate,
    user_id: Optional[str] = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    redaction = _get_redaction_or_404(db, redaction_id)
    changes = payload.model_dump(exclude_unset=True)

    # Validate the rectangle as it will be after the update
    rect = {k: changes.get(k, getattr(redaction, k)) for k in ("x", "y", "width", "height")}
    if any(v is None for v in rect.values()):
        raise HTTPException(status_code=400, detail="Coordinates cannot be null")
    try:
        check_rect(**rect)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if "reason_code" in changes and changes["reason_code"] is None:
        raise HTTPException(status_code=400, detail="reason_code must not be empty")
    if "page_number" in changes and changes["page_number"] is None:
        raise HTTPException(status_code=400, detail="page_number must be >= 1")

    for field, value in changes.items():
        setattr(redaction, field, value)
    _audit(db, redaction, "update", user_id)
    db.commit()
    db.refresh(redaction)
    return redaction


@router.delete("/{redaction_id}")
async def delete_redaction(
    redaction_id: str,
    user_id: Optional[str] = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    redaction = _get_redaction_or_404(db, redaction_id)
    _audit(db, redaction, "delete", user_id)
    db.delete(redaction)
    db.commit()
    logger.info(f"Redaction {redaction_id} deleted")
    return {"detail": "Redaction deleted"}
