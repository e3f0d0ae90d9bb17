"""
Page rasterization for productions.

Every produced page is one RGB raster. Images pass through (first frame),
PDFs are rendered page by page, and anything else becomes a generated
placeholder page that points at the native file.
"""
import io
import logging
from typing import Iterator, Optional, Tuple

import fitz  # PyMuPDF
from PIL import Image, ImageDraw, ImageFont

from config import settings
from constants import (
    IMAGE_MIME_TYPES,
    PDF_MIME,
    PLACEHOLDER_HEIGHT,
    PLACEHOLDER_TEXT,
    PLACEHOLDER_WIDTH,
)
from services.bates import stamp_bates

logger = logging.getLogger(__name__)


class RasterizationError(Exception):
    """Raised when a source cannot be decoded into page images."""
    pass


def classify_format(mime_type: Optional[str]) -> str:
    """Return "image", "pdf" or "placeholder" for a declared MIME type."""
    try:
        mime = (mime_type or "").split(";")[0].strip().lower()
    except AttributeError:
        return "placeholder"
    if mime in IMAGE_MIME_TYPES:
        return "image"
    if mime == PDF_MIME:
        return "pdf"
    return "placeholder"


def load_image(content: bytes) -> Image.Image:
    """Decode the first frame of an image buffer into RGB."""
    try:
        with Image.open(io.BytesIO(content)) as img:
            img.seek(0)
            return img.convert("RGB")
    except Exception as e:
        raise RasterizationError(f"Cannot decode image: {e}") from e


class PdfRasterizer:
    """Interface: yield (page_number, image) for each PDF page, 1-based."""

    def iter_pages(self, content: bytes) -> Iterator[Tuple[int, Image.Image]]:
        raise NotImplementedError


class PyMuPdfRasterizer(PdfRasterizer):
    def __init__(self, dpi: int = 300):
        self.dpi = dpi

    def iter_pages(self, content):
        try:
            doc = fitz.open(stream=content, filetype="pdf")
        except Exception as e:
            raise RasterizationError(f"Cannot open PDF: {e}") from e
        try:
            for index, page in enumerate(doc):
                try:
                    pix = page.get_pixmap(dpi=self.dpi, alpha=False)
                    image = Image.frombytes("RGB", (pix.width, pix.height), pix.samples)
                except Exception as e:
                    raise RasterizationError(f"Cannot render PDF page {index + 1}: {e}") from e
                yield index + 1, image
        finally:
            doc.close()


class UnavailablePdfRasterizer(PdfRasterizer):
    """Used when PDF rendering is switched off; callers fall back to a placeholder."""

    def iter_pages(self, content):
        return iter(())


_pdf_rasterizer: Optional[PdfRasterizer] = None


def get_pdf_rasterizer() -> PdfRasterizer:
    global _pdf_rasterizer
    if _pdf_rasterizer is None:
        backend = settings.PDF_RASTERIZER.lower()
        if backend == "pymupdf":
            _pdf_rasterizer = PyMuPdfRasterizer(dpi=settings.PDF_RENDER_DPI)
        elif backend == "none":
            _pdf_rasterizer = UnavailablePdfRasterizer()
        else:
            raise ValueError(f"Unknown PDF_RASTERIZER: {settings.PDF_RASTERIZER}")
        logger.info(f"PDF rasterizer: {type(_pdf_rasterizer).__name__}")
    return _pdf_rasterizer


def set_pdf_rasterizer(rasterizer: Optional[PdfRasterizer]) -> None:
    global _pdf_rasterizer
    _pdf_rasterizer = rasterizer


def create_placeholder_page(bates_number: str, native_filename: Optional[str] = None) -> Image.Image:
    """Letter-size stand-in page naming the native file, already Bates-stamped."""
    page = Image.new("RGB", (PLACEHOLDER_WIDTH, PLACEHOLDER_HEIGHT), "#f5f5f5")
    draw = ImageDraw.Draw(page)
    draw.text((50, 320), PLACEHOLDER_TEXT, fill="#333333", font=ImageFont.load_default(size=18))
    if native_filename:
        draw.text((50, 350), f"File: {native_filename}", fill="#666666", font=ImageFont.load_default(size=14))
    return stamp_bates(page, bates_number)


def encode_tiff(image: Image.Image) -> bytes:
    buf = io.BytesIO()
    image.save(buf, format="TIFF", compression="tiff_lzw")
    return buf.getvalue()
