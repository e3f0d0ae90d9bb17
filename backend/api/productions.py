"""
Production API routes: define, start, inspect and download Bates productions.
"""
import uuid
import logging
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy import func, update
from sqlalchemy.orm import Session
from slowapi import Limiter
from slowapi.util import get_remote_address

from schemas.production_schema import (
    AuditReport,
    ProductionCreate,
    ProductionDownload,
    ProductionOut,
    ProductionStartResponse,
)
from dependencies import get_db
from models.folder import Folder
from models.production import Production, ProductionDocument, ProductionPage
from services.storage import StorageError, get_storage
from workers.production_worker import get_production_audit_report
from workers.queue import enqueue_production
from constants import PRODUCTION_COMPLETE, PRODUCTION_PENDING, PRODUCTION_PROCESSING
from config import settings

logger = logging.getLogger(__name__)
limiter = Limiter(key_func=get_remote_address)

router = APIRouter(prefix="/api/productions", tags=["Productions"])


def _get_production_or_404(db: Session, production_id: str) -> Production:
    production = db.get(Production, production_id)
    if not production:
        raise HTTPException(status_code=404, detail="Production not found")
    return production


def _counts(db: Session, production_ids: List[str]) -> tuple:
    if not production_ids:
        return {}, {}
    doc_counts = dict(
        db.query(ProductionDocument.production_id, func.count(ProductionDocument.id))
        .filter(ProductionDocument.production_id.in_(production_ids))
        .group_by(ProductionDocument.production_id)
        .all()
    )
    page_counts = dict(
        db.query(ProductionPage.production_id, func.count(ProductionPage.id))
        .filter(ProductionPage.production_id.in_(production_ids))
        .group_by(ProductionPage.production_id)
        .all()
    )
    return doc_counts, page_counts


def _to_out(production: Production, doc_counts: dict, page_counts: dict) -> ProductionOut:
    out = ProductionOut.model_validate(production)
    out.document_count = doc_counts.get(production.id, 0)
    out.page_count = page_counts.get(production.id, 0)
    return out


@router.get("/", response_model=List[ProductionOut])
async def list_productions(matter_id: Optional[str] = Query(None), db: Session = Depends(get_db)):
    query = db.query(Production)
    if matter_id:
        query = query.filter(Production.matter_id == matter_id)
    productions = query.order_by(Production.created_at.desc()).all()
    doc_counts, page_counts = _counts(db, [p.id for p in productions])
    return [_to_out(p, doc_counts, page_counts) for p in productions]


@router.post("/", response_model=ProductionOut, status_code=201)
async def create_production(payload: ProductionCreate, db: Session = Depends(get_db)):
    if payload.source_folder_id and not db.get(Folder, payload.source_folder_id):
        raise HTTPException(status_code=400, detail="Source folder not found")

    production = Production(
        id=str(uuid.uuid4()),
        status=PRODUCTION_PENDING,
        **payload.model_dump(),
    )
    db.add(production)
    db.commit()
    db.refresh(production)
    logger.info(f"Production created: {production.name} ({production.id}) prefix={production.bates_prefix}")
    return _to_out(production, {}, {})


@router.get("/{production_id}", response_model=ProductionOut)
async def get_production(production_id: str, db: Session = Depends(get_db)):
    production = _get_production_or_404(db, production_id)
    doc_counts, page_counts = _counts(db, [production.id])
    return _to_out(production, doc_counts, page_counts)


@router.post("/{production_id}/start", response_model=ProductionStartResponse, status_code=202)
@limiter.limit(settings.RATE_LIMIT_PRODUCTION)
async def start_production(request: Request, production_id: str, db: Session = Depends(get_db)):
    """Queue a pending production. A production can be started once."""
    production = _get_production_or_404(db, production_id)

    # Conditional flip so two concurrent starts cannot both succeed
    result = db.execute(
        update(Production)
        .where(Production.id == production_id, Production.status == PRODUCTION_PENDING)
        .values(status=PRODUCTION_PROCESSING)
    )
    db.commit()
    if result.rowcount != 1:
        db.refresh(production)
        raise HTTPException(
            status_code=400,
            detail=f"Production is '{production.status}'; only pending productions can be started",
        )

    enqueue_production(production_id)
    logger.info(f"Production {production_id} queued")
    return ProductionStartResponse(id=production_id, status=PRODUCTION_PROCESSING, detail="Production queued")


@router.get("/{production_id}/audit-report", response_model=AuditReport)
async def production_audit_report(production_id: str, db: Session = Depends(get_db)):
    _get_production_or_404(db, production_id)
    return get_production_audit_report(db, production_id)


@router.get("/{production_id}/download", response_model=ProductionDownload)
async def download_production(production_id: str, db: Session = Depends(get_db)):
    """Signed URLs for the DAT and OPT load files of a completed production."""
    production = _get_production_or_404(db, production_id)
    if production.status != PRODUCTION_COMPLETE or not production.output_storage_path:
        raise HTTPException(status_code=400, detail="Production is not complete")

    storage = get_storage()
    try:
        dat_url = storage.get_signed_url(f"{production.output_storage_path}/loadfile.dat")
        opt_url = storage.get_signed_url(f"{production.output_storage_path}/loadfile.opt")
    except StorageError as e:
        logger.error(f"Failed to sign production output: {e}")
        raise HTTPException(status_code=500, detail="Could not generate download links")

    return ProductionDownload(dat_url=dat_url, opt_url=opt_url, output_storage_path=production.output_storage_path)
