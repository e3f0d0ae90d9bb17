import io
import uuid

import fitz
import pytest
from PIL import Image

import workers.production_worker as production_worker
from models.audit_log import AuditLog
from models.folder import DocumentFolder, Folder
from models.production import Production, ProductionDocument, ProductionPage
from models.redaction import Redaction
from workers.production_worker import (
    ProductionError,
    get_production_audit_report,
    resolve_scope,
    run_production_job,
)
from services.storage import LocalStorage, StorageError, set_storage
from conftest import png_bytes

DOCX_MIME = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"


def _production(db, prefix="ABC", start=1, matter_id="matter-1", **fields):
    production = Production(
        id=str(uuid.uuid4()),
        name="First production",
        matter_id=matter_id,
        bates_prefix=prefix,
        bates_start_number=start,
        status="pending",
        **fields,
    )
    db.add(production)
    db.commit()
    return production


def _pages(db, production):
    return (
        db.query(ProductionPage)
        .filter(ProductionPage.production_id == production.id)
        .order_by(ProductionPage.position)
        .all()
    )


def _produced_docs(db, production):
    return (
        db.query(ProductionDocument)
        .filter(ProductionDocument.production_id == production.id)
        .order_by(ProductionDocument.position)
        .all()
    )


def _open_tiff(storage, path):
    return Image.open(io.BytesIO(storage.download(path)))


def _pdf_bytes(pages):
    doc = fitz.open()
    for _ in range(pages):
        doc.new_page(width=200, height=200)
    data = doc.tobytes()
    doc.close()
    return data


def test_two_images_are_numbered_and_loaded(db, storage, make_document):
    older = make_document(png_bytes(), "a.png", "image/png")
    newer = make_document(png_bytes(), "b.png", "image/png")
    production = _production(db)

    run_production_job(production.id, db=db)
    db.refresh(production)

    assert production.status == "complete"
    assert production.completed_at is not None
    assert production.output_storage_path == f"productions/{production.id}"
    assert [p.bates_number for p in _pages(db, production)] == ["ABC000001", "ABC000002"]
    assert [d.document_id for d in _produced_docs(db, production)] == [newer.id, older.id]

    dat = storage.download(f"productions/{production.id}/loadfile.dat").decode("utf-8")
    assert dat == (
        "BEGBATES\tENDBATES\tIMAGEPATH\tNATIVEPATH\tPAGECOUNT\r\n"
        "ABC000001\tABC000001\timages/ABC000001.tif\tb.png\t1\r\n"
        "ABC000002\tABC000002\timages/ABC000002.tif\ta.png\t1\r\n"
    )
    opt = storage.download(f"productions/{production.id}/loadfile.opt").decode("utf-8")
    assert opt.count("\r\n") == 3

    page = _open_tiff(storage, f"productions/{production.id}/images/ABC000001.tif")
    assert page.format == "TIFF"
    assert page.size == (40, 30)


def test_download_failure_becomes_placeholder(db, storage, make_document):
    make_document(png_bytes(), "missing.png", "image/png", store=False)
    production = _production(db, prefix="PRD", start=100)

    run_production_job(production.id, db=db)
    db.refresh(production)

    assert production.status == "complete"
    [produced] = _produced_docs(db, production)
    assert produced.is_placeholder is True
    assert produced.bates_begin == produced.bates_end == "PRD000100"
    page = _open_tiff(storage, f"productions/{production.id}/images/PRD000100.tif")
    assert page.size == (612, 792)


def test_corrupt_image_becomes_placeholder(db, make_document):
    make_document(b"not really a png", "bad.png", "image/png")
    production = _production(db)

    run_production_job(production.id, db=db)

    [produced] = _produced_docs(db, production)
    assert produced.is_placeholder is True
    assert produced.page_count == 1


def test_native_formats_get_one_placeholder_page(db, make_document):
    make_document(b"PK\x03\x04docx", "contract.docx", DOCX_MIME)
    production = _production(db)

    run_production_job(production.id, db=db)

    [produced] = _produced_docs(db, production)
    assert produced.is_placeholder is True
    assert produced.native_filename == "contract.docx"


def test_bates_numbers_are_contiguous_across_documents(db, make_document):
    make_document(png_bytes(), "a.png", "image/png")
    make_document(_pdf_bytes(3), "report.pdf", "application/pdf")
    make_document(b"x", "native.docx", DOCX_MIME)
    make_document(png_bytes(), "gone.png", "image/png", store=False)
    production = _production(db, start=7)

    run_production_job(production.id, db=db)

    numbers = [int(p.bates_number[3:]) for p in _pages(db, production)]
    assert numbers == list(range(7, 7 + 6))
    docs = _produced_docs(db, production)
    assert sum(d.page_count for d in docs) == 6
    pdf_entry = next(d for d in docs if d.native_filename == "report.pdf")
    assert pdf_entry.page_count == 3
    assert pdf_entry.is_placeholder is False


def test_pdf_without_rasterizer_falls_back(db, make_document):
    from services.rasterizer import UnavailablePdfRasterizer, set_pdf_rasterizer

    set_pdf_rasterizer(UnavailablePdfRasterizer())
    make_document(_pdf_bytes(2), "report.pdf", "application/pdf")
    production = _production(db)

    run_production_job(production.id, db=db)

    [produced] = _produced_docs(db, production)
    assert produced.is_placeholder is True
    assert produced.page_count == 1


def test_pdf_failing_midway_leaves_no_orphan_pages(db, storage, make_document):
    from services.rasterizer import PdfRasterizer, RasterizationError, set_pdf_rasterizer

    class FailsOnThirdPage(PdfRasterizer):
        def iter_pages(self, content):
            yield 1, Image.new("RGB", (100, 100), "white")
            yield 2, Image.new("RGB", (100, 100), "white")
            raise RasterizationError("page 3 is damaged")

    set_pdf_rasterizer(FailsOnThirdPage())
    make_document(_pdf_bytes(3), "report.pdf", "application/pdf")
    production = _production(db)

    run_production_job(production.id, db=db)

    assert [p.bates_number for p in _pages(db, production)] == ["ABC000001"]
    assert _open_tiff(storage, f"productions/{production.id}/images/ABC000001.tif").size == (612, 792)
    with pytest.raises(StorageError):
        storage.download(f"productions/{production.id}/images/ABC000002.tif")


def test_failed_page_upload_removes_written_pages(db, tmp_path, make_document):
    class FlakyStorage(LocalStorage):
        def __init__(self, root):
            super().__init__(root)
            self.failures = 0

        def upload(self, file_bytes, file_path, content_type="application/octet-stream", upsert=False):
            if file_path.endswith("ABC000003.tif") and self.failures == 0:
                self.failures += 1
                raise StorageError("bucket unavailable")
            return super().upload(file_bytes, file_path, content_type, upsert)

    flaky = FlakyStorage(tmp_path / "flaky")
    doc = make_document(_pdf_bytes(3), "report.pdf", "application/pdf", store=False)
    flaky.upload(_pdf_bytes(3), doc.storage_path, "application/pdf")
    set_storage(flaky)
    production = _production(db)

    run_production_job(production.id, db=db)

    [produced] = _produced_docs(db, production)
    assert produced.is_placeholder is True
    assert produced.bates_begin == "ABC000001"
    with pytest.raises(StorageError):
        flaky.download(f"productions/{production.id}/images/ABC000002.tif")


def test_redactions_are_burned_into_produced_copy_only(db, storage, make_document):
    original = png_bytes(1000, 800, "white")
    doc = make_document(original, "scan.png", "image/png")
    db.add(Redaction(id=str(uuid.uuid4()), document_id=doc.id, page_number=1,
                     x=0.1, y=0.1, width=0.2, height=0.1, reason_code="PII"))
    db.commit()
    production = _production(db)

    run_production_job(production.id, db=db)

    page = _open_tiff(storage, f"productions/{production.id}/images/ABC000001.tif").convert("RGB")
    assert page.getpixel((100, 80)) == (0, 0, 0)
    assert page.getpixel((299, 159)) == (0, 0, 0)
    assert page.getpixel((300, 80)) == (255, 255, 255)
    assert page.getpixel((100, 160)) == (255, 255, 255)
    assert storage.download(doc.storage_path) == original


def test_only_family_roots_of_the_matter_are_produced(db, make_document):
    root = make_document(png_bytes(), "root.png", "image/png")
    make_document(png_bytes(), "child.png", "image/png", parent=root, family_index=1)
    make_document(png_bytes(), "other.png", "image/png", matter_id="matter-2")
    production = _production(db)

    assert [d.id for d in resolve_scope(db, production)] == [root.id]


def test_production_without_matter_or_folder_is_empty(db, storage, make_document):
    make_document(png_bytes(), "a.png", "image/png", matter_id="matter-a")
    make_document(png_bytes(), "b.png", "image/png", matter_id="matter-b")
    production = _production(db, matter_id=None)

    assert resolve_scope(db, production) == []

    run_production_job(production.id, db=db)
    db.refresh(production)

    assert production.status == "complete"
    assert _pages(db, production) == []
    dat = storage.download(f"productions/{production.id}/loadfile.dat").decode("utf-8")
    assert dat == "BEGBATES\tENDBATES\tIMAGEPATH\tNATIVEPATH\tPAGECOUNT\r\n"


def _folder(db, name, parent=None):
    folder = Folder(id=str(uuid.uuid4()), name=name, matter_id="matter-1", parent_id=parent.id if parent else None)
    db.add(folder)
    db.commit()
    return folder


def _file(db, folder, *docs):
    for doc in docs:
        db.add(DocumentFolder(document_id=doc.id, folder_id=folder.id))
    db.commit()


def test_folder_scope_includes_subfolders(db, make_document):
    top = _folder(db, "Responsive")
    sub = _folder(db, "Hot", parent=top)
    deeper = _folder(db, "Hotter", parent=sub)
    a = make_document(png_bytes(), "a.png", "image/png")
    b = make_document(png_bytes(), "b.png", "image/png")
    c = make_document(png_bytes(), "c.png", "image/png")
    make_document(png_bytes(), "unfiled.png", "image/png")
    _file(db, top, a)
    _file(db, sub, b, a)
    _file(db, deeper, c)

    with_subfolders = _production(db, source_folder_id=top.id, include_subfolders=True)
    top_only = _production(db, source_folder_id=top.id, include_subfolders=False)

    assert [d.id for d in resolve_scope(db, with_subfolders)] == [c.id, b.id, a.id]
    assert [d.id for d in resolve_scope(db, top_only)] == [a.id]


def test_folder_scope_restricts_to_roots(db, make_document):
    folder = _folder(db, "Mixed")
    root = make_document(png_bytes(), "root.png", "image/png")
    child = make_document(png_bytes(), "child.png", "image/png", parent=root, family_index=1)
    _file(db, folder, root, child)

    production = _production(db, source_folder_id=folder.id)

    assert [d.id for d in resolve_scope(db, production)] == [root.id]


def test_folder_scope_falls_back_when_no_roots(db, make_document):
    folder = _folder(db, "Attachments only")
    root = make_document(png_bytes(), "root.png", "image/png")
    child = make_document(png_bytes(), "child.png", "image/png", parent=root, family_index=1)
    _file(db, folder, child)

    production = _production(db, source_folder_id=folder.id)

    assert [d.id for d in resolve_scope(db, production)] == [child.id]


def test_empty_folder_produces_header_only_load_files(db, storage):
    folder = _folder(db, "Empty")
    production = _production(db, source_folder_id=folder.id)

    run_production_job(production.id, db=db)
    db.refresh(production)

    assert production.status == "complete"
    dat = storage.download(f"productions/{production.id}/loadfile.dat")
    assert dat == b"BEGBATES\tENDBATES\tIMAGEPATH\tNATIVEPATH\tPAGECOUNT\r\n"


def test_each_produced_document_is_audited(db, make_document):
    a = make_document(png_bytes(), "a.png", "image/png")
    b = make_document(b"x", "b.docx", DOCX_MIME)
    production = _production(db)

    run_production_job(production.id, db=db)

    entries = db.query(AuditLog).filter(AuditLog.action_type == "produce").all()
    assert {e.document_id for e in entries} == {a.id, b.id}
    for entry in entries:
        assert entry.metadata_snapshot["production_id"] == production.id
        assert entry.metadata_snapshot["bates_begin"].startswith("ABC")


def test_only_pending_or_processing_productions_run(db):
    production = _production(db)
    production.status = "complete"
    db.commit()

    with pytest.raises(ProductionError):
        run_production_job(production.id, db=db)
    db.refresh(production)
    assert production.status == "complete"


def test_unknown_production_raises(db):
    with pytest.raises(ProductionError):
        run_production_job("nope", db=db)


def test_interrupted_production_is_rebuilt(db, make_document):
    doc = make_document(png_bytes(), "a.png", "image/png")
    production = _production(db)
    production.status = "processing"
    db.add(ProductionPage(id="stale", production_id=production.id, document_id=doc.id, position=0,
                          page_number=1, bates_number="ABC000099", image_storage_path=None))
    db.commit()

    run_production_job(production.id, db=db)
    db.refresh(production)

    assert production.status == "complete"
    assert [p.bates_number for p in _pages(db, production)] == ["ABC000001"]


def test_unexpected_error_marks_production_failed(db, make_document, monkeypatch):
    make_document(png_bytes(), "a.png", "image/png")
    production = _production(db)

    def boom(records):
        raise RuntimeError("load file writer exploded")

    monkeypatch.setattr(production_worker, "generate_dat", boom)

    with pytest.raises(RuntimeError):
        run_production_job(production.id, db=db)
    db.refresh(production)

    assert production.status == "failed"
    assert production.error_message == "load file writer exploded"


def test_audit_report_carries_fingerprints(db, make_document):
    doc = make_document(png_bytes(), "a.png", "image/png")
    production = _production(db)
    run_production_job(production.id, db=db)

    report = get_production_audit_report(db, production.id)

    assert report["production"]["status"] == "complete"
    [entry] = report["documents"]
    assert entry["document_id"] == doc.id
    assert entry["md5_hash"] == doc.md5_hash
    assert entry["sha1_hash"] == doc.sha1_hash
    assert entry["original_filename"] == "a.png"
    assert entry["bates_begin"] == "ABC000001"
