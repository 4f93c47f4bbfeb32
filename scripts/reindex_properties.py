#!/usr/bin/env python3
"""
Re-embed active properties into the property_embeddings table.

Usage:
    python scripts/reindex_properties.py              # every active property
    python scripts/reindex_properties.py --missing    # only those without a combined embedding

Pages through the properties table REINDEX_BATCH_LIMIT rows at a time and
hands each page to the indexer, which processes records one by one.

The script is idempotent: embeddings are upserted on property_id, so
re-runs simply overwrite the previous vectors.

Requires:
    - DATABASE_URL and OPENAI_API_KEY environment variables (or .env)
    - The property_embeddings table must already exist (migration 001)
"""

from __future__ import annotations

import argparse
import os
import sys
from typing import Any

import structlog

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from homematch.config import settings
from homematch.db import dal
from homematch.db.session import SessionLocal
from homematch.main import build_indexer, configure_logging

logger = structlog.get_logger("reindex_properties")


def to_index_record(row: dict[str, Any]) -> dict[str, Any]:
    """
    Pick the richest record shape for a properties row.

    Rows whose raw_data holds the provider payload (a ``details`` object)
    are indexed from that payload, keyed by the row's property_id; all
    other rows are indexed from their flat columns.
    """
    raw = row.get("raw_data")
    if isinstance(raw, dict) and isinstance(raw.get("details"), dict):
        return {**raw, "mlsId": row["property_id"]}
    return {k: v for k, v in row.items() if k != "raw_data"}


def reindex(missing_only: bool = False) -> dict[str, int]:
    indexer = build_indexer(session_factory=SessionLocal)
    totals = {"total": 0, "succeeded": 0, "failed": 0, "skipped": 0}
    offset = 0

    while True:
        with SessionLocal() as db:
            rows = dal.get_active_properties(settings.REINDEX_BATCH_LIMIT, offset, db=db)
            if missing_only:
                pending = [
                    r for r in rows
                    if not dal.has_property_embedding(r["property_id"], db=db)
                ]
            else:
                pending = rows
        if not rows:
            break

        totals["skipped"] += len(rows) - len(pending)
        page = indexer.index_batch([to_index_record(r) for r in pending])
        for key in ("total", "succeeded", "failed"):
            totals[key] += page[key]

        logger.info("reindex_page_complete", offset=offset, rows=len(rows), **page)
        offset += len(rows)

    logger.info("reindex_complete", **totals)
    return totals


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[1])
    parser.add_argument(
        "--missing",
        action="store_true",
        help="only index properties that have no combined embedding yet",
    )
    args = parser.parse_args()

    configure_logging()
    logger.info("starting_reindex", db=settings.DATABASE_URL.split("@")[-1])  # host only
    reindex(missing_only=args.missing)


if __name__ == "__main__":
    main()
