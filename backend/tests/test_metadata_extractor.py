import io

import httpx
from docx import Document as DocxDocument

from services.metadata_extractor import FallbackExtractor, LocalExtractor, TikaExtractor


def _docx_bytes(text):
    buf = io.BytesIO()
    doc = DocxDocument()
    doc.add_paragraph(text)
    doc.save(buf)
    return buf.getvalue()


def test_local_text_file():
    result = LocalExtractor().extract(b"hello", "text/plain", "a.txt")
    assert result.text == "hello"
    assert result.metadata["source"] == "local"
    assert result.metadata["size_bytes"] == 5


def test_local_docx():
    result = LocalExtractor().extract(_docx_bytes("Board minutes"), None, "minutes.docx")
    assert result.text == "Board minutes"


def test_local_broken_pdf_is_annotated():
    result = LocalExtractor().extract(b"%PDF-garbage", "application/pdf", "x.pdf")
    assert result.text is None
    assert "pdf_error" in result.metadata


def test_local_unknown_format_has_no_text():
    result = LocalExtractor().extract(b"\x00\x01", "application/octet-stream", "blob.bin")
    assert result.text is None


def test_tika_metadata_and_text():
    def handler(request):
        if request.url.path == "/meta":
            return httpx.Response(200, json={"Content-Type": "application/pdf", "xmpTPg:NPages": "2"})
        return httpx.Response(200, text="  extracted body \n")

    extractor = TikaExtractor("http://tika:9998/", transport=httpx.MockTransport(handler))
    result = extractor.extract(b"%PDF", "application/pdf", "a.pdf")

    assert result.metadata["source"] == "tika"
    assert result.metadata["xmpTPg:NPages"] == "2"
    assert result.text == "extracted body"


def test_tika_failure_falls_back_to_local():
    def handler(request):
        return httpx.Response(503)

    extractor = FallbackExtractor(
        TikaExtractor("http://tika:9998", transport=httpx.MockTransport(handler)),
        LocalExtractor(),
    )
    result = extractor.extract(b"plain", "text/plain", "a.txt")

    assert result.metadata["source"] == "local"
    assert result.text == "plain"
