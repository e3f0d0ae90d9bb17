import io

import fitz
from PIL import Image

from services.rasterizer import (
    PyMuPdfRasterizer,
    UnavailablePdfRasterizer,
    classify_format,
    create_placeholder_page,
    encode_tiff,
    load_image,
)
from conftest import png_bytes


def _pdf_bytes(page_sizes):
    doc = fitz.open()
    for width, height in page_sizes:
        doc.new_page(width=width, height=height)
    data = doc.tobytes()
    doc.close()
    return data


def test_classify_format():
    assert classify_format("image/png") == "image"
    assert classify_format("image/tiff") == "image"
    assert classify_format("application/pdf") == "pdf"
    assert classify_format("application/vnd.openxmlformats-officedocument.wordprocessingml.document") == "placeholder"
    assert classify_format(None) == "placeholder"
    assert classify_format(42) == "placeholder"


def test_load_image_converts_to_rgb():
    buf = io.BytesIO()
    Image.new("L", (10, 20), 0).save(buf, format="PNG")
    image = load_image(buf.getvalue())
    assert image.mode == "RGB"
    assert image.size == (10, 20)


def test_pymupdf_renders_each_page():
    pages = list(PyMuPdfRasterizer(dpi=72).iter_pages(_pdf_bytes([(200, 100), (300, 400)])))
    assert [n for n, _ in pages] == [1, 2]
    assert pages[0][1].size == (200, 100)
    assert pages[1][1].size == (300, 400)


def test_unavailable_rasterizer_yields_nothing():
    assert list(UnavailablePdfRasterizer().iter_pages(_pdf_bytes([(100, 100)]))) == []


def test_placeholder_page():
    page = create_placeholder_page("ABC000001", "contract.docx")
    assert page.size == (612, 792)
    assert page.mode == "RGB"


def test_tiff_encoding_round_trips_size():
    image = load_image(png_bytes(33, 44))
    with Image.open(io.BytesIO(encode_tiff(image))) as tiff:
        assert tiff.format == "TIFF"
        assert tiff.size == (33, 44)
