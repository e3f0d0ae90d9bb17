"""
OCR stage.

Runs only when a document has no extractable text and is image-like, or when
OCR is explicitly forced. PDFs are rasterized first, one recognition per page.
"""
import io
import logging
from pathlib import Path
from typing import Optional

import pytesseract
from PIL import Image, ImageSequence

from config import settings
from constants import IMAGE_EXTENSIONS, IMAGE_MIME_TYPES
from services.rasterizer import PdfRasterizer, RasterizationError, classify_format, get_pdf_rasterizer

logger = logging.getLogger(__name__)


class OcrError(Exception):
    """Raised when recognition cannot run on a document."""
    pass


def needs_ocr(mime_type: Optional[str], filename: str, has_extracted_text: bool) -> bool:
    """True for image-like files that produced no text through extraction."""
    if has_extracted_text:
        return False
    if mime_type and mime_type in IMAGE_MIME_TYPES:
        return True
    return Path(filename or "").suffix.lower() in IMAGE_EXTENSIONS


class OcrEngine:
    def recognize(self, image: Image.Image) -> str:
        raise NotImplementedError


class TesseractOcr(OcrEngine):
    def __init__(self, language: str = "eng"):
        self.language = language

    def recognize(self, image):
        try:
            return pytesseract.image_to_string(image, lang=self.language) or ""
        except pytesseract.TesseractError as e:
            raise OcrError(f"Tesseract failed: {e}") from e
        except pytesseract.TesseractNotFoundError as e:
            raise OcrError("Tesseract binary not found on PATH") from e


class DisabledOcr(OcrEngine):
    def recognize(self, image):
        logger.debug("OCR disabled; returning empty text")
        return ""


_engine: Optional[OcrEngine] = None


def get_ocr_engine() -> OcrEngine:
    global _engine
    if _engine is None:
        backend = settings.OCR_BACKEND.lower()
        if backend == "tesseract":
            _engine = TesseractOcr(settings.OCR_LANGUAGE)
        elif backend == "none":
            _engine = DisabledOcr()
        else:
            raise ValueError(f"Unknown OCR_BACKEND: {settings.OCR_BACKEND}")
        logger.info(f"OCR engine: {type(_engine).__name__}")
    return _engine


def set_ocr_engine(engine: Optional[OcrEngine]) -> None:
    global _engine
    _engine = engine


def ocr_document(
    content: bytes,
    mime_type: Optional[str],
    filename: str,
    engine: Optional[OcrEngine] = None,
    rasterizer: Optional[PdfRasterizer] = None,
) -> str:
    """Recognize text on every page of an image or PDF buffer."""
    engine = engine or get_ocr_engine()
    page_texts = []

    kind = classify_format(mime_type)
    if kind == "placeholder" and Path(filename or "").suffix.lower() == ".pdf":
        kind = "pdf"

    try:
        if kind == "pdf":
            rasterizer = rasterizer or get_pdf_rasterizer()
            for _, image in rasterizer.iter_pages(content):
                page_texts.append(engine.recognize(image))
        else:
            with Image.open(io.BytesIO(content)) as img:
                for frame in ImageSequence.Iterator(img):
                    page_texts.append(engine.recognize(frame.convert("RGB")))
    except (RasterizationError, OSError) as e:
        raise OcrError(f"Cannot prepare pages for OCR: {e}") from e

    return "\n\n".join(t.strip() for t in page_texts if t and t.strip())
