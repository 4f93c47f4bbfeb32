"""
HomeMatch Embedding Celery Tasks

Background wrappers around PropertyIndexer.  Retry and backoff for the
embedding service live here and nowhere else.

Tasks:
    index_property_task    — Embed and upsert one property record
    index_properties_task  — Sequential batch reprocessing (fire-and-forget)

Rules:
    - Retry only on transient OpenAI errors (APIConnectionError,
      RateLimitError, APITimeoutError)
    - Do NOT retry on permanent errors (AuthenticationError, NotFoundError)
      or on records without an identifier
    - Never crash the worker on indexing failure
"""

import time

import openai
import structlog

from homematch.celery_app import celery
from homematch.db.session import SessionLocal
from homematch.main import build_indexer

logger = structlog.get_logger(__name__)

_TRANSIENT_ERRORS = (
    openai.APIConnectionError,
    openai.RateLimitError,
    openai.APITimeoutError,
)


@celery.task(
    name="homematch.search.tasks.index_property_task",
    bind=True,
    max_retries=3,
    default_retry_delay=10,
    autoretry_for=_TRANSIENT_ERRORS,
    retry_backoff=True,
    retry_jitter=True,
)
def index_property_task(self, record: dict) -> dict:
    """
    Embed one property record and upsert its property_embeddings row.

    Retry policy:
        - Retries on transient OpenAI errors with exponential backoff
        - max_retries=3, default_retry_delay=10s

    Returns:
        Dict with keys: property_id, indexed (bool), and error on failure.
    """
    start_time = time.time()
    logger.info("index_property_task_started", retry_count=self.request.retries)

    db = SessionLocal()
    try:
        indexer = build_indexer(session_factory=SessionLocal)
        property_id = indexer.index_property(record, db)

        logger.info(
            "index_property_task_complete",
            property_id=property_id,
            elapsed_seconds=round(time.time() - start_time, 3),
        )
        return {"property_id": property_id, "indexed": True}

    except _TRANSIENT_ERRORS:
        # Let autoretry_for handle the retry
        raise

    except (openai.AuthenticationError, openai.NotFoundError) as exc:
        # Permanent errors — do NOT retry
        logger.error(
            "index_property_task_permanent_error",
            error_type=type(exc).__name__,
            error=str(exc),
        )
        return {"property_id": None, "indexed": False, "error": str(exc)}

    except Exception as exc:
        logger.error(
            "index_property_task_unexpected_error",
            error_type=type(exc).__name__,
            error=str(exc),
        )
        return {"property_id": None, "indexed": False, "error": str(exc)}

    finally:
        db.close()


@celery.task(name="homematch.search.tasks.index_properties_task")
def index_properties_task(records: list[dict]) -> dict:
    """
    Reprocess a batch of property records one at a time.

    Per-record failures are logged by the indexer and do not stop the batch.

    Returns:
        Dict with keys: total, succeeded, failed.
    """
    logger.info("index_properties_task_started", record_count=len(records))
    indexer = build_indexer(session_factory=SessionLocal)
    return indexer.index_batch(records)
