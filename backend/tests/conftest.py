import io
import uuid
from datetime import datetime, timedelta, timezone
from email.message import EmailMessage

import pytest
from PIL import Image
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import models  # noqa: F401  registers every mapped class
from core.hashing import compute_hashes
from db.base import Base
from models.document import Document
from services.metadata_extractor import LocalExtractor, set_metadata_extractor
from services.ocr import OcrEngine, set_ocr_engine
from services.rasterizer import set_pdf_rasterizer
from services.storage import LocalStorage, set_storage
from workers.queue import JobQueue, set_queue


class RecordingQueue(JobQueue):
    """Collects enqueued jobs instead of running them."""

    def __init__(self):
        self.ingestion = []
        self.productions = []

    def enqueue_ingestion(self, document_id, force_ocr=False):
        self.ingestion.append((document_id, force_ocr))

    def enqueue_production(self, production_id):
        self.productions.append(production_id)


class FakeOcr(OcrEngine):
    def __init__(self, text="RECOGNIZED TEXT"):
        self.text = text
        self.calls = 0

    def recognize(self, image):
        self.calls += 1
        return self.text


def png_bytes(width=40, height=30, color="white"):
    buf = io.BytesIO()
    Image.new("RGB", (width, height), color).save(buf, format="PNG")
    return buf.getvalue()


def eml_bytes(attachments=(), body="Please see attached.", subject="Quarterly numbers"):
    msg = EmailMessage()
    msg["Subject"] = subject
    msg["From"] = "alice@example.com"
    msg["To"] = "bob@example.com"
    msg["Date"] = "Mon, 02 Oct 2023 10:15:00 +0000"
    msg.set_content(body)
    for filename, content, maintype, subtype in attachments:
        msg.add_attachment(content, maintype=maintype, subtype=subtype, filename=filename)
    return msg.as_bytes()


@pytest.fixture
def db():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    session = sessionmaker(bind=engine, autocommit=False, autoflush=False)()
    yield session
    session.close()
    engine.dispose()


@pytest.fixture
def storage(tmp_path):
    backend = LocalStorage(tmp_path / "objects")
    set_storage(backend)
    yield backend
    set_storage(None)


@pytest.fixture(autouse=True)
def job_queue():
    queue = RecordingQueue()
    set_queue(queue)
    yield queue
    set_queue(None)


@pytest.fixture(autouse=True)
def ocr_engine():
    engine = FakeOcr()
    set_metadata_extractor(LocalExtractor())
    set_ocr_engine(engine)
    yield engine
    set_ocr_engine(None)
    set_metadata_extractor(None)
    set_pdf_rasterizer(None)


@pytest.fixture
def make_document(db, storage):
    """Store bytes and insert a pending root (or child) document pointing at them."""
    base_time = datetime(2024, 1, 1, tzinfo=timezone.utc)
    counter = {"n": 0}

    def _make(content=b"plain text body", filename="doc.txt", mime_type="text/plain",
              matter_id="matter-1", parent=None, family_index=0, store=True, created_at=None, **fields):
        counter["n"] += 1
        doc_id = str(uuid.uuid4())
        storage_path = f"{matter_id}/{doc_id}/{filename}"
        if store:
            storage.upload(content, storage_path, mime_type)
        md5_hash, sha1_hash = compute_hashes(content)
        doc = Document(
            id=doc_id,
            matter_id=matter_id,
            parent_id=parent.id if parent else None,
            family_id=parent.family_id if parent else doc_id,
            family_index=family_index,
            storage_path=storage_path,
            filename=filename,
            original_filename=filename,
            mime_type=mime_type,
            size=len(content),
            md5_hash=md5_hash,
            sha1_hash=sha1_hash,
            doc_metadata={},
            processing_status="pending",
            created_at=created_at or base_time + timedelta(minutes=counter["n"]),
            **fields,
        )
        db.add(doc)
        db.commit()
        return doc

    return _make


@pytest.fixture
def client(db, storage):
    from fastapi.testclient import TestClient

    import api.documents
    import api.productions
    from dependencies import get_db
    from main import app

    for limiter in (api.documents.limiter, api.productions.limiter, app.state.limiter):
        limiter.enabled = False
    app.dependency_overrides[get_db] = lambda: db
    # No context manager: startup hooks would build the real database and queue
    yield TestClient(app)
    app.dependency_overrides.clear()
