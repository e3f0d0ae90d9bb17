"""
Job dispatch for the ingestion and production workers.

Two backends behind one enqueue contract, chosen at startup by init_queue():
  - InProcessQueue: thread pool inside the API process (no REDIS_URL)
  - CeleryQueue: durable Celery tasks over Redis (REDIS_URL set)
"""
import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor, wait
from typing import Optional

from config import settings

logger = logging.getLogger(__name__)


class JobQueue:
    """Interface implemented by every queue backend."""

    def enqueue_ingestion(self, document_id: str, force_ocr: bool = False) -> None:
        raise NotImplementedError

    def enqueue_production(self, production_id: str) -> None:
        raise NotImplementedError


class InProcessQueue(JobQueue):
    """Runs jobs on a local thread pool. Failures are logged, never retried."""

    def __init__(self, max_workers: int = 4):
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="job")
        self._pending = set()
        self._lock = threading.Lock()

    def _submit(self, name: str, fn, *args) -> Future:
        def run():
            try:
                fn(*args)
            except Exception as e:
                logger.error(f"Job {name}{args} failed: {e}", exc_info=True)

        future = self._executor.submit(run)
        with self._lock:
            self._pending.add(future)
        future.add_done_callback(self._discard)
        return future

    def _discard(self, future: Future) -> None:
        with self._lock:
            self._pending.discard(future)

    def enqueue_ingestion(self, document_id, force_ocr=False):
        from workers.processing_worker import process_document

        self._submit("ingestion", process_document, document_id, force_ocr)

    def enqueue_production(self, production_id):
        from workers.production_worker import run_production_job

        self._submit("production", run_production_job, production_id)

    def drain(self, timeout: Optional[float] = None) -> None:
        """Block until every submitted job, including jobs those jobs enqueued, has finished."""
        while True:
            with self._lock:
                pending = list(self._pending)
            if not pending:
                return
            wait(pending, timeout=timeout)

    def shutdown(self) -> None:
        self._executor.shutdown(wait=True)


class CeleryQueue(JobQueue):
    def enqueue_ingestion(self, document_id, force_ocr=False):
        from workers.celery_app import ingest_document_task

        ingest_document_task.delay(document_id, force_ocr)

    def enqueue_production(self, production_id):
        from workers.celery_app import run_production_task

        run_production_task.delay(production_id)


_queue: Optional[JobQueue] = None


def init_queue() -> JobQueue:
    """Build the queue backend from configuration."""
    global _queue
    if settings.REDIS_URL:
        _queue = CeleryQueue()
    else:
        _queue = InProcessQueue(max_workers=settings.INPROCESS_QUEUE_WORKERS)
    logger.info(f"Job queue: {type(_queue).__name__}")
    return _queue


def get_queue() -> JobQueue:
    if _queue is None:
        return init_queue()
    return _queue


def set_queue(queue: Optional[JobQueue]) -> None:
    global _queue
    _queue = queue


def enqueue_document_processing(document_id: str, force_ocr: bool = False) -> None:
    logger.info(f"Enqueue ingestion document={document_id} force_ocr={force_ocr}")
    get_queue().enqueue_ingestion(document_id, force_ocr)


def enqueue_production(production_id: str) -> None:
    logger.info(f"Enqueue production {production_id}")
    get_queue().enqueue_production(production_id)
