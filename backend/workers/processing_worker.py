"""Ingestion worker: fingerprinted document -> family expansion -> metadata/text -> OCR."""
import logging
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

from sqlalchemy.orm import Session

from constants import (
    STATUS_FAILED,
    STATUS_METADATA_EXTRACTED,
    STATUS_OCR_COMPLETE,
    STATUS_PENDING,
    STATUS_PROCESSING,
)
from core.hashing import compute_hashes
from db.session import SessionLocal
from models.document import Document
from services.audit import append_audit_log
from services.email_parser import ParsedEmail, is_email_file, parse_email
from services.metadata_extractor import get_metadata_extractor
from services.ocr import OcrError, needs_ocr, ocr_document
from services.storage import (
    StorageBackend,
    StorageError,
    document_storage_path,
    get_storage,
    sanitize_filename,
)

logger = logging.getLogger(__name__)


def _update_status(db: Session, doc: Document, status: str, error: Optional[str] = None):
    """Persist a status transition immediately."""
    doc.processing_status = status
    doc.processing_error = error
    db.commit()


def set_document_failed(db: Session, document_id: str, message: str) -> None:
    doc = db.get(Document, document_id)
    if doc is None:
        return
    _update_status(db, doc, STATUS_FAILED, message)
    logger.warning(f"Document {document_id} failed: {message}")


def _link_attachments(db: Session, parent: Document, parsed: ParsedEmail, storage: StorageBackend) -> List[str]:
    """Create one child document per attachment. Returns the new child ids (not yet committed)."""
    child_ids = []
    for index, attachment in enumerate(parsed.attachments, start=1):
        child_id = str(uuid.uuid4())
        safe_name = sanitize_filename(attachment.filename, fallback=f"attachment_{index}")
        storage_path = document_storage_path(parent.matter_id, child_id, safe_name)
        content_type = attachment.content_type or "application/octet-stream"

        try:
            storage.upload(attachment.content, storage_path, content_type)
        except StorageError as e:
            logger.warning(f"Skipping attachment '{attachment.filename}' of {parent.id}: {e}")
            continue

        md5_hash, sha1_hash = compute_hashes(attachment.content)
        child = Document(
            id=child_id,
            matter_id=parent.matter_id,
            parent_id=parent.id,
            family_id=parent.family_id,
            family_index=index,
            storage_path=storage_path,
            filename=safe_name,
            original_filename=attachment.filename,
            mime_type=content_type,
            file_type=Path(safe_name).suffix.lstrip(".").lower() or None,
            custodian=parent.custodian,
            size=len(attachment.content),
            md5_hash=md5_hash,
            sha1_hash=sha1_hash,
            doc_metadata={"source": "email_attachment", "parent_document_id": parent.id},
            processing_status=STATUS_PENDING,
        )
        db.add(child)
        append_audit_log(
            db,
            "upload",
            document_id=child_id,
            metadata_snapshot={
                "filename": attachment.filename,
                "size": len(attachment.content),
                "md5_hash": md5_hash,
                "sha1_hash": sha1_hash,
                "parent_document_id": parent.id,
                "family_id": parent.family_id,
            },
            commit=False,
        )
        child_ids.append(child_id)
    return child_ids


def process_document(document_id: str, force_ocr: bool = False, db: Optional[Session] = None):
    """
    Advance one document through ingestion.

    Safe to re-run: a completed document with text is skipped unless OCR is
    forced, and e-mail attachments are linked only once (tracked by the
    email_children_linked metadata flag). Unexpected errors mark the document
    failed and are re-raised so a durable queue can retry the job.
    """
    owns_session = db is None
    if owns_session:
        db = SessionLocal()
    try:
        doc = db.get(Document, document_id)
        if not doc:
            raise ValueError(f"Document {document_id} not found")

        if doc.extracted_text and doc.processing_status == STATUS_OCR_COMPLETE and not force_ocr:
            logger.info(f"Document {document_id} already processed, skipping")
            return

        _update_status(db, doc, STATUS_PROCESSING)

        # 1. Download original bytes
        storage = get_storage()
        try:
            content = storage.download(doc.storage_path)
        except StorageError as e:
            set_document_failed(db, document_id, f"Download failed: {e}")
            return
        if not content:
            set_document_failed(db, document_id, "Downloaded file is empty")
            return

        metadata = dict(doc.doc_metadata or {})
        text = None
        child_ids = []

        # 2. Container expansion
        if is_email_file(doc.mime_type, doc.filename):
            parsed = parse_email(content, doc.original_filename or doc.filename)
            if parsed.parse_error:
                logger.warning(f"Document {document_id}: {parsed.parse_error}")
                metadata["email_parse_error"] = parsed.parse_error
            else:
                if not metadata.get("email_children_linked"):
                    child_ids = _link_attachments(db, doc, parsed, storage)
                    metadata.update(
                        email_children_linked=True,
                        email_subject=parsed.subject,
                        email_from=parsed.sender,
                        email_to=parsed.to,
                        email_date=parsed.date.isoformat() if parsed.date else None,
                    )
                    logger.info(f"Linked {len(child_ids)} attachments to document {document_id}")
                text = parsed.text or None

        # 3. Metadata / text extraction (failures are annotations)
        try:
            result = get_metadata_extractor().extract(content, doc.mime_type, doc.original_filename or doc.filename)
            metadata.update(result.metadata)
            if not text and result.text:
                text = result.text
        except Exception as e:
            logger.warning(f"Metadata extraction failed for {document_id}: {e}")
            metadata["extraction_error"] = str(e)

        doc.doc_metadata = metadata
        _update_status(db, doc, STATUS_METADATA_EXTRACTED)

        # Children exist in the database now; hand them to the queue
        if child_ids:
            from workers.queue import enqueue_document_processing

            for child_id in child_ids:
                enqueue_document_processing(child_id)

        # 4. OCR
        has_text = bool(text and text.strip())
        if force_ocr or needs_ocr(doc.mime_type, doc.original_filename or doc.filename, has_text):
            try:
                ocr_text = ocr_document(content, doc.mime_type, doc.original_filename or doc.filename)
                if ocr_text.strip():
                    text = ocr_text
                logger.info(f"OCR produced {len(ocr_text)} chars for {document_id}")
            except OcrError as e:
                set_document_failed(db, document_id, f"OCR failed: {e}")
                return

        # 5. Persist extracted text
        if text:
            text_path = f"{doc.id}/extracted.txt"
            storage.upload(text.encode("utf-8"), text_path, "text/plain; charset=utf-8", upsert=True)
            doc.extracted_text_path = text_path
            doc.extracted_text = text

        # 6. Terminal state
        doc.processed_at = datetime.now(timezone.utc)
        _update_status(db, doc, STATUS_OCR_COMPLETE)
        logger.info(f"Document {document_id} ingestion complete")

    except Exception as e:
        logger.error(f"Error processing document {document_id}: {e}", exc_info=True)
        try:
            db.rollback()
            set_document_failed(db, document_id, str(e))
        except Exception as inner_e:
            logger.error(f"Could not update status to failed: {inner_e}")
        raise
    finally:
        if owns_session:
            db.close()
