"""
Metadata and body-text extraction.

Backends:
  - TikaExtractor: Apache Tika server (PUT /meta for metadata, PUT /tika for text)
  - LocalExtractor: in-process PDF / DOCX / TXT extractors
When TIKA_SERVER_URL is set the Tika backend runs first and the local one
is the fallback; otherwise only the local backend is used.
"""
import logging
from dataclasses import dataclass, field
from typing import Optional

import httpx

from config import settings
from utils.text_extractor import (
    TextExtractionError,
    detect_kind,
    extract_text_from_docx,
    extract_text_from_pdf,
    extract_text_from_txt,
)

logger = logging.getLogger(__name__)


@dataclass
class ExtractionResult:
    metadata: dict = field(default_factory=dict)
    text: Optional[str] = None


class MetadataExtractor:
    """Interface implemented by every extraction backend."""

    def extract(self, content: bytes, mime_type: Optional[str], filename: str) -> ExtractionResult:
        raise NotImplementedError


class LocalExtractor(MetadataExtractor):
    def extract(self, content, mime_type, filename):
        metadata = {
            "source": "local",
            "content_type": mime_type,
            "size_bytes": len(content),
            "original_filename": filename,
        }
        text = None
        kind = detect_kind(mime_type, filename)

        # Per-format failures are recorded, never raised
        if kind == "pdf":
            try:
                text, pdf_meta = extract_text_from_pdf(content)
                metadata.update(pdf_meta)
            except TextExtractionError as e:
                metadata["pdf_error"] = str(e)
        elif kind == "docx":
            try:
                text = extract_text_from_docx(content)
            except TextExtractionError as e:
                metadata["docx_error"] = str(e)
        elif kind == "txt":
            text = extract_text_from_txt(content)

        return ExtractionResult(metadata=metadata, text=text or None)


class TikaExtractor(MetadataExtractor):
    def __init__(self, base_url: str, timeout: float = 60.0, transport: Optional[httpx.BaseTransport] = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport

    def extract(self, content, mime_type, filename):
        headers = {"Content-Type": mime_type} if mime_type else {}
        with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
            meta_res = client.put(
                f"{self.base_url}/meta",
                content=content,
                headers={**headers, "Accept": "application/json"},
            )
            text_res = client.put(
                f"{self.base_url}/tika",
                content=content,
                headers={**headers, "Accept": "text/plain"},
            )

        metadata = {"source": "tika"}
        if meta_res.is_success:
            try:
                metadata = {**meta_res.json(), "source": "tika"}
            except ValueError:
                logger.warning("Tika /meta returned non-JSON body")
        else:
            meta_res.raise_for_status()

        text = text_res.text if text_res.is_success else None
        return ExtractionResult(metadata=metadata, text=(text or "").strip() or None)


class FallbackExtractor(MetadataExtractor):
    """Try the primary backend; on any error use the fallback."""

    def __init__(self, primary: MetadataExtractor, fallback: MetadataExtractor):
        self.primary = primary
        self.fallback = fallback

    def extract(self, content, mime_type, filename):
        try:
            return self.primary.extract(content, mime_type, filename)
        except Exception as e:
            logger.warning(f"{type(self.primary).__name__} failed, falling back: {e}")
            return self.fallback.extract(content, mime_type, filename)


_extractor: Optional[MetadataExtractor] = None


def get_metadata_extractor() -> MetadataExtractor:
    """Return the extractor selected by configuration (built on first use)."""
    global _extractor
    if _extractor is None:
        if settings.TIKA_SERVER_URL:
            _extractor = FallbackExtractor(
                TikaExtractor(settings.TIKA_SERVER_URL, settings.TIKA_TIMEOUT_SECONDS),
                LocalExtractor(),
            )
        else:
            _extractor = LocalExtractor()
        logger.info(f"Metadata extractor: {type(_extractor).__name__}")
    return _extractor


def set_metadata_extractor(extractor: Optional[MetadataExtractor]) -> None:
    global _extractor
    _extractor = extractor
