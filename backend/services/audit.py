"""
Append-only audit trail writer.

Every mutation (upload, tag, redact, produce) and every document view records
one entry. Entries are never updated or deleted.
"""
import logging
import uuid
from typing import Optional

from sqlalchemy.orm import Session

from constants import AUDIT_ACTIONS
from models.audit_log import AuditLog

logger = logging.getLogger(__name__)


def append_audit_log(
    db: Session,
    action_type: str,
    document_id: Optional[str] = None,
    user_id: Optional[str] = None,
    metadata_snapshot: Optional[dict] = None,
    commit: bool = True,
) -> AuditLog:
    """Insert one audit entry. The caller's session owns the transaction when commit=False."""
    if action_type not in AUDIT_ACTIONS:
        raise ValueError(f"Unknown audit action '{action_type}'")

    entry = AuditLog(
        event_id=str(uuid.uuid4()),
        user_id=user_id,
        document_id=document_id,
        action_type=action_type,
        metadata_snapshot=dict(metadata_snapshot or {}),
    )
    db.add(entry)
    if commit:
        db.commit()
    logger.debug(f"Audit {action_type} document={document_id} user={user_id}")
    return entry
