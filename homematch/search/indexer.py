"""
HomeMatch Indexer Module

Builds embedding texts from property records and persists the vectors to
the property_embeddings table.  Calls embeddings.py for all OpenAI API
interactions and dal.py for all writes.

Class:
    PropertyIndexer
        index_property                      — Embed and upsert one record
        index_batch                         — Sequential batch, returns counts
        process_properties_for_embeddings   — Batch entry point, returns None

Rules:
    - Upserts use INSERT ... ON CONFLICT (property_id) DO UPDATE
    - The snapshot stored alongside the vectors is the record as received
    - Batches run one record at a time; a failing record is logged and skipped
    - Each record gets its own session from the injected factory
"""

import time
from typing import Any, Iterable

import structlog
from sqlalchemy.orm import Session

from homematch.db import dal
from homematch.search.normalizer import adapt_record, build_embedding_texts

logger = structlog.get_logger(__name__)


class PropertyIndexer:
    """Turns property records into stored embeddings."""

    def __init__(self, session_factory, embedder):
        self._session_factory = session_factory
        self._embedder = embedder

    def index_property(self, record: dict[str, Any], db: Session) -> str:
        """
        Embed one record and upsert its row in property_embeddings.

        Args:
            record: Property record in either the nested provider shape or
                the flat table shape.
            db: SQLAlchemy session.

        Returns:
            The property id that was written.

        Raises:
            ValueError: If the record carries no property identifier.
            openai.APIError: If the embedding call fails.
            RuntimeError: If the upsert fails.
        """
        start_time = time.time()

        listing = adapt_record(record)
        if not listing.property_id:
            raise ValueError("Property record has no identifier")

        texts = build_embedding_texts(listing)
        vectors = self._embedder.embed_property(texts)

        dal.upsert_property_embedding(
            listing.property_id,
            record,
            {
                "description": vectors.description,
                "features": vectors.features,
                "combined": vectors.combined,
            },
            db=db,
        )

        logger.info(
            "index_property_complete",
            property_id=listing.property_id,
            shape=listing.shape,
            has_description_embedding=bool(vectors.description),
            has_features_embedding=bool(vectors.features),
            combined_text_length=len(texts.combined_text),
            elapsed_seconds=round(time.time() - start_time, 3),
        )
        return listing.property_id

    def index_batch(self, records: Iterable[dict[str, Any]]) -> dict:
        """
        Index records one after another.

        A failing record is logged and processing continues with the next.

        Returns:
            Dict with keys: total, succeeded, failed.
        """
        start_time = time.time()
        result = {"total": 0, "succeeded": 0, "failed": 0}

        for position, record in enumerate(records):
            result["total"] += 1
            try:
                with self._session_factory() as db:
                    property_id = self.index_property(record, db)
                result["succeeded"] += 1
                logger.info(
                    "batch_item_indexed", position=position, property_id=property_id
                )
            except Exception as exc:
                result["failed"] += 1
                logger.error(
                    "batch_item_failed",
                    position=position,
                    property_id=adapt_record(record).property_id,
                    error=str(exc),
                )

        logger.info(
            "batch_indexing_complete",
            total=result["total"],
            succeeded=result["succeeded"],
            failed=result["failed"],
            elapsed_seconds=round(time.time() - start_time, 3),
        )
        return result

    def process_properties_for_embeddings(self, records: Iterable[dict[str, Any]]) -> None:
        """Best-effort sequential reprocessing; outcomes are only logged."""
        self.index_batch(records)
