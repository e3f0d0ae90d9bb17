"""
Local Text Extraction Layer

Pulls plain text and format metadata out of PDF, DOCX and TXT buffers.
Used directly when no content-analysis server is configured, and as the
fallback when that server is unreachable.
"""

import io
import logging
from pathlib import Path
from typing import Optional, Tuple

from PyPDF2 import PdfReader
from docx import Document as DocxDocument

from constants import DOCX_MIME, PDF_MIME

logger = logging.getLogger(__name__)


class TextExtractionError(Exception):
    """Raised when text extraction fails."""
    pass


def extract_text_from_pdf(file_content: bytes) -> Tuple[str, dict]:
    """
    Extract text and document info from a PDF file.

    Args:
        file_content: PDF file content as bytes

    Returns:
        (text, metadata) where metadata carries numpages and the PDF info dict

    Raises:
        TextExtractionError: If the PDF cannot be read
    """
    try:
        pdf_reader = PdfReader(io.BytesIO(file_content))

        text_parts = []
        for page_num, page in enumerate(pdf_reader.pages):
            try:
                page_text = page.extract_text()
                if page_text:
                    text_parts.append(page_text)
            except Exception as e:
                logger.warning(f"Failed to extract text from page {page_num + 1}: {e}")
                continue

        info = {}
        if pdf_reader.metadata:
            info = {str(k).lstrip("/"): str(v) for k, v in pdf_reader.metadata.items()}

        metadata = {"numpages": len(pdf_reader.pages), "pdf_info": info}
        return "\n\n".join(text_parts).strip(), metadata

    except Exception as e:
        raise TextExtractionError(f"Failed to extract text from PDF: {str(e)}")


def extract_text_from_docx(file_content: bytes) -> str:
    """
    Extract text from a DOCX file (paragraphs, then table cells).

    Raises:
        TextExtractionError: If DOCX extraction fails
    """
    try:
        doc = DocxDocument(io.BytesIO(file_content))

        text_parts = [p.text for p in doc.paragraphs if p.text.strip()]
        for table in doc.tables:
            for row in table.rows:
                for cell in row.cells:
                    if cell.text.strip():
                        text_parts.append(cell.text)

        return "\n\n".join(text_parts).strip()

    except Exception as e:
        raise TextExtractionError(f"Failed to extract text from DOCX: {str(e)}")


def extract_text_from_txt(file_content: bytes) -> str:
    """Decode a text file as UTF-8, falling back to latin-1."""
    try:
        return file_content.decode("utf-8").strip()
    except UnicodeDecodeError:
        return file_content.decode("latin-1").strip()


def detect_kind(mime_type: Optional[str], filename: str) -> Optional[str]:
    """Return "pdf", "docx", "txt" or None for formats without a local extractor."""
    ext = Path(filename or "").suffix.lower()
    if mime_type == PDF_MIME or ext == ".pdf":
        return "pdf"
    if mime_type == DOCX_MIME or ext == ".docx":
        return "docx"
    if mime_type == "text/plain" or ext == ".txt":
        return "txt"
    return None
