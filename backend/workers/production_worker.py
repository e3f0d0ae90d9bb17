"""Production worker: scope -> rasterize -> burn in redactions -> Bates stamp -> load files."""
import logging
import uuid
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from config import settings
from constants import (
    IMAGE_VOLUME,
    PRODUCTION_COMPLETE,
    PRODUCTION_FAILED,
    PRODUCTION_PENDING,
    PRODUCTION_PROCESSING,
)
from db.session import SessionLocal
from models.document import Document
from models.production import Production, ProductionDocument, ProductionPage
from models.redaction import Redaction
from services.audit import append_audit_log
from services.folders import folder_document_ids
from services.bates import BatesCounter, stamp_bates
from services.loadfile import LoadFileRecord, generate_dat, generate_opt
from services.rasterizer import (
    RasterizationError,
    classify_format,
    create_placeholder_page,
    encode_tiff,
    get_pdf_rasterizer,
    load_image,
)
from services.redaction_burnin import as_normalized, burn_in_redactions
from services.storage import StorageBackend, StorageError, get_storage

logger = logging.getLogger(__name__)


class ProductionError(Exception):
    """Raised when a production cannot run (unknown id or invalid state)."""
    pass


@dataclass
class ProducedPage:
    page_number: int
    bates_number: str
    image_storage_path: str


def resolve_scope(db: Session, production: Production) -> List[Document]:
    """
    Documents to produce, newest first.

    With a source folder: documents filed in the folder (and its subfolders
    when include_subfolders is set), restricted to family roots; if none of
    them is a root, the filed documents themselves. Without a folder: every
    family root of the production's matter, or nothing when no matter is set.
    """
    order = (Document.created_at.desc(), Document.id)

    if production.source_folder_id:
        doc_ids = folder_document_ids(db, production.source_folder_id, production.include_subfolders)
        if not doc_ids:
            return []
        docs = db.query(Document).filter(Document.id.in_(doc_ids)).order_by(*order).all()
        roots = [d for d in docs if d.parent_id is None]
        return roots or docs

    if not production.matter_id:
        return []
    return (
        db.query(Document)
        .filter(Document.parent_id.is_(None), Document.matter_id == production.matter_id)
        .order_by(*order)
        .all()
    )


def _redactions_by_page(db: Session, document_id: str) -> Dict[int, List[Redaction]]:
    grouped = defaultdict(list)
    rows = (
        db.query(Redaction)
        .filter(Redaction.document_id == document_id)
        .order_by(Redaction.page_number, Redaction.created_at, Redaction.id)
        .all()
    )
    for r in rows:
        grouped[r.page_number].append(r)
    return grouped


def _page_path(output_prefix: str, bates_number: str) -> str:
    return f"{output_prefix}/{IMAGE_VOLUME}/{bates_number}.tif"


def _upload_page(storage: StorageBackend, image, output_prefix: str, bates_number: str) -> str:
    path = _page_path(output_prefix, bates_number)
    # Upsert: a page rolled back after a failed document is rewritten under the same number
    storage.upload(encode_tiff(image), path, "image/tiff", upsert=True)
    return path


def _produce_placeholder(storage, doc: Document, counter: BatesCounter, output_prefix: str) -> List[ProducedPage]:
    bates = counter.take()
    page = create_placeholder_page(bates, doc.native_filename)
    return [ProducedPage(1, bates, _upload_page(storage, page, output_prefix, bates))]


def _produce_document_pages(
    db: Session,
    storage: StorageBackend,
    doc: Document,
    counter: BatesCounter,
    output_prefix: str,
) -> Optional[List[ProducedPage]]:
    """
    Render, redact and stamp every page, then upload them. None means the
    document needs a placeholder.

    Nothing is uploaded until the whole document has rendered. If an upload
    fails, pages already written for this document are removed before the
    error propagates, so no orphan Bates image is left behind.
    """
    kind = classify_format(doc.mime_type)
    if kind == "placeholder":
        return None

    content = storage.download(doc.storage_path)
    if kind == "image":
        sources = iter([(1, load_image(content))])
    else:
        sources = get_pdf_rasterizer().iter_pages(content)

    redactions = _redactions_by_page(db, doc.id)
    rendered = []
    for page_number, image in sources:
        regions = as_normalized(redactions.get(page_number, []), image.width, image.height)
        page = burn_in_redactions(image, regions)
        bates = counter.take()
        rendered.append((page_number, bates, stamp_bates(page, bates)))
    if not rendered:
        return None

    produced = []
    try:
        for page_number, bates, page in rendered:
            produced.append(ProducedPage(page_number, bates, _upload_page(storage, page, output_prefix, bates)))
    except StorageError:
        _discard_pages(storage, produced)
        raise
    return produced


def _discard_pages(storage: StorageBackend, pages: List[ProducedPage]) -> None:
    for page in pages:
        try:
            storage.delete(page.image_storage_path)
        except StorageError as e:
            logger.warning(f"Could not remove discarded page {page.image_storage_path}: {e}")


def _produce(db: Session, production: Production) -> None:
    storage = get_storage()
    counter = BatesCounter(production.bates_prefix, production.bates_start_number, settings.BATES_PAD_LENGTH)
    output_prefix = f"{settings.PRODUCTION_OUTPUT_PREFIX}/{production.id}"

    # A restarted job rebuilds its ledgers from scratch
    db.query(ProductionPage).filter(ProductionPage.production_id == production.id).delete()
    db.query(ProductionDocument).filter(ProductionDocument.production_id == production.id).delete()
    db.commit()

    documents = resolve_scope(db, production)
    logger.info(f"Production {production.id}: {len(documents)} documents in scope")

    records = []
    page_position = 0
    for position, doc in enumerate(documents):
        first_value = counter.next_value
        is_placeholder = False
        try:
            pages = _produce_document_pages(db, storage, doc, counter, output_prefix)
        except (StorageError, RasterizationError) as e:
            logger.warning(f"Production {production.id}: document {doc.id} degraded to placeholder: {e}")
            counter.rewind(first_value)
            pages = None
        if pages is None:
            pages = _produce_placeholder(storage, doc, counter, output_prefix)
            is_placeholder = True

        for page in pages:
            db.add(ProductionPage(
                id=str(uuid.uuid4()),
                production_id=production.id,
                document_id=doc.id,
                position=page_position,
                page_number=page.page_number,
                bates_number=page.bates_number,
                image_storage_path=page.image_storage_path,
            ))
            page_position += 1

        bates_begin, bates_end = pages[0].bates_number, pages[-1].bates_number
        db.add(ProductionDocument(
            id=str(uuid.uuid4()),
            production_id=production.id,
            document_id=doc.id,
            position=position,
            bates_begin=bates_begin,
            bates_end=bates_end,
            page_count=len(pages),
            is_placeholder=is_placeholder,
            native_filename=doc.native_filename,
        ))
        append_audit_log(
            db,
            "produce",
            document_id=doc.id,
            metadata_snapshot={
                "production_id": production.id,
                "bates_begin": bates_begin,
                "bates_end": bates_end,
                "page_count": len(pages),
                "is_placeholder": is_placeholder,
            },
            commit=False,
        )
        db.commit()

        records.append(LoadFileRecord(
            beg_bates=bates_begin,
            end_bates=bates_end,
            image_path=f"{IMAGE_VOLUME}/{bates_begin}.tif",
            native_path=doc.native_filename,
            page_count=len(pages),
            control_id=doc.id,
        ))

    storage.upload(generate_dat(records).encode("utf-8"), f"{output_prefix}/loadfile.dat",
                   "text/plain; charset=utf-8", upsert=True)
    storage.upload(generate_opt(records).encode("utf-8"), f"{output_prefix}/loadfile.opt",
                   "text/plain; charset=utf-8", upsert=True)

    production.status = PRODUCTION_COMPLETE
    production.output_storage_path = output_prefix
    production.error_message = None
    production.completed_at = datetime.now(timezone.utc)
    db.commit()
    logger.info(
        f"Production {production.id} complete: {len(records)} documents, "
        f"{page_position} pages, next Bates value {counter.next_value}"
    )


def run_production_job(production_id: str, db: Optional[Session] = None) -> Production:
    """
    Run one production to a terminal state.

    Only pending or processing productions run; anything else raises
    ProductionError without touching the row. Once running, any unexpected
    error marks the production failed and is re-raised.
    """
    owns_session = db is None
    if owns_session:
        db = SessionLocal()
    try:
        production = db.get(Production, production_id)
        if production is None:
            raise ProductionError(f"Production {production_id} not found")
        if production.status not in (PRODUCTION_PENDING, PRODUCTION_PROCESSING):
            raise ProductionError(
                f"Production {production_id} is '{production.status}'; only pending or processing productions can run"
            )

        production.status = PRODUCTION_PROCESSING
        production.error_message = None
        db.commit()

        try:
            _produce(db, production)
        except Exception as e:
            logger.error(f"Production {production_id} failed: {e}", exc_info=True)
            try:
                db.rollback()
                production.status = PRODUCTION_FAILED
                production.error_message = str(e)
                db.commit()
            except Exception as inner_e:
                logger.error(f"Could not update production status to failed: {inner_e}")
            raise
        return production
    finally:
        if owns_session:
            db.close()


def get_production_audit_report(db: Session, production_id: str) -> dict:
    """Production header plus each produced document with its fingerprints."""
    production = db.get(Production, production_id)
    if production is None:
        raise ProductionError(f"Production {production_id} not found")

    rows = (
        db.query(ProductionDocument, Document)
        .join(Document, Document.id == ProductionDocument.document_id)
        .filter(ProductionDocument.production_id == production_id)
        .order_by(ProductionDocument.position)
        .all()
    )
    return {
        "production": {
            "id": production.id,
            "name": production.name,
            "matter_id": production.matter_id,
            "bates_prefix": production.bates_prefix,
            "bates_start_number": production.bates_start_number,
            "status": production.status,
            "output_storage_path": production.output_storage_path,
            "created_at": production.created_at,
            "completed_at": production.completed_at,
        },
        "documents": [
            {
                "document_id": pd.document_id,
                "bates_begin": pd.bates_begin,
                "bates_end": pd.bates_end,
                "page_count": pd.page_count,
                "is_placeholder": pd.is_placeholder,
                "native_filename": pd.native_filename,
                "md5_hash": doc.md5_hash,
                "sha1_hash": doc.sha1_hash,
                "original_filename": doc.original_filename,
            }
            for pd, doc in rows
        ],
    }
