from models.document import Document
from models.folder import Folder, DocumentFolder
from models.redaction import Redaction
from models.production import Production, ProductionDocument, ProductionPage
from models.audit_log import AuditLog

__all__ = [
    "Document",
    "Folder",
    "DocumentFolder",
    "Redaction",
    "Production",
    "ProductionDocument",
    "ProductionPage",
    "AuditLog",
]
