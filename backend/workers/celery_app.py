"""
Celery application for durable job execution.

Start a worker from the backend directory:
    celery -A workers.celery_app worker --loglevel=info
"""
from celery import Celery

from config import settings
from workers.processing_worker import process_document
from workers.production_worker import run_production_job

celery_app = Celery(
    "discovery",
    broker=settings.REDIS_URL or "redis://localhost:6379/0",
)
celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    worker_concurrency=settings.INGESTION_WORKER_CONCURRENCY,
    task_acks_late=True,
    worker_prefetch_multiplier=1,
)


# Two attempts in total, first retry after 2 s
@celery_app.task(
    name="ingestion.process_document",
    autoretry_for=(Exception,),
    max_retries=1,
    retry_backoff=2,
    retry_jitter=False,
)
def ingest_document_task(document_id: str, force_ocr: bool = False):
    process_document(document_id, force_ocr=force_ocr)


# A failed production is terminal; never retried
@celery_app.task(name="production.run")
def run_production_task(production_id: str):
    run_production_job(production_id)
