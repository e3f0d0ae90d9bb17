"""
Shared constants: MIME families, status values, load file layout.
"""

# ── Ingestion status (documents.processing_status) ──
STATUS_PENDING = "pending"
STATUS_PROCESSING = "processing"
STATUS_METADATA_EXTRACTED = "metadata_extracted"
STATUS_OCR_COMPLETE = "ocr_complete"
STATUS_FAILED = "failed"

PROCESSING_STATUSES = (
    STATUS_PENDING,
    STATUS_PROCESSING,
    STATUS_METADATA_EXTRACTED,
    STATUS_OCR_COMPLETE,
    STATUS_FAILED,
)

# ── Production status ──
PRODUCTION_PENDING = "pending"
PRODUCTION_PROCESSING = "processing"
PRODUCTION_COMPLETE = "complete"
PRODUCTION_FAILED = "failed"

PRODUCTION_STATUSES = (
    PRODUCTION_PENDING,
    PRODUCTION_PROCESSING,
    PRODUCTION_COMPLETE,
    PRODUCTION_FAILED,
)

# ── Audit actions ──
AUDIT_ACTIONS = ("view", "upload", "tag", "redact", "produce")

# ── MIME families ──
IMAGE_MIME_TYPES = {
    "image/tiff",
    "image/jpeg",
    "image/png",
    "image/gif",
    "image/webp",
    "image/bmp",
}
IMAGE_EXTENSIONS = (".jpg", ".jpeg", ".png", ".tif", ".tiff", ".bmp", ".gif", ".webp")

PDF_MIME = "application/pdf"
DOCX_MIME = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"

EMAIL_MIME_TYPES = {
    "message/rfc822",
    "application/vnd.ms-outlook",
    "application/x-msg",
}
EMAIL_EXTENSIONS = (".eml", ".msg")

# ── Production output ──
PLACEHOLDER_WIDTH = 612
PLACEHOLDER_HEIGHT = 792
PLACEHOLDER_TEXT = "Document produced in native format"
DEFAULT_BATES_PREFIX = "PROD"
IMAGE_VOLUME = "images"

LOADFILE_COLUMNS = ("BEGBATES", "ENDBATES", "IMAGEPATH", "NATIVEPATH", "PAGECOUNT")
