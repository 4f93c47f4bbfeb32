"""
HomeMatch Data Access Layer (DAL)

The single module where all database queries live.  No other part of the
application is allowed to write raw SQL — everything goes through here.

Every public function:
    - Accepts a SQLAlchemy ``Session`` as the keyword argument ``db``.
    - Logs the function name and wall-clock execution time (ms) via structlog.
    - Returns plain Python dicts (never SQLAlchemy model instances).
    - Raises ``ValueError`` for invalid / missing inputs.
    - Raises ``RuntimeError`` for unexpected database errors.

The ``properties`` table is read-only from here; ``property_embeddings`` is
written exclusively through ``upsert_property_embedding``.
"""

from __future__ import annotations

import json
import time
from decimal import Decimal
from typing import Any, Optional

import structlog
from sqlalchemy import func, or_, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.orm import Session

from homematch.config import settings
from homematch.db.models import Property, PropertyEmbedding
from homematch.search.filters import SearchFilters, map_property_type

logger = structlog.get_logger(__name__)

# Columns copied from properties into every search candidate dict
_PROPERTY_COLUMNS: tuple[str, ...] = (
    "property_id",
    "address",
    "city",
    "province",
    "postal_code",
    "price",
    "bedrooms",
    "bathrooms",
    "property_type",
    "square_footage",
    "year_built",
    "description",
    "status",
    "days_on_market",
    "features",
    "amenities",
    "raw_data",
)

_VECTOR_FIELDS = ("description", "features", "combined")


# ── Helpers ────────────────────────────────────────────────────────────────

def _plain(value: Any) -> Any:
    if isinstance(value, Decimal):
        return float(value)
    return value


def _property_to_dict(row: Any) -> dict[str, Any]:
    """Convert a properties row (ORM instance or result row) to a plain dict."""
    return {name: _plain(getattr(row, name, None)) for name in _PROPERTY_COLUMNS}


def _vector_to_list(value: Any) -> Optional[list[float]]:
    # pgvector hands back numpy arrays
    if value is None:
        return None
    return [float(v) for v in value]


def _embedding_to_dict(row: PropertyEmbedding) -> dict[str, Any]:
    """Convert a PropertyEmbedding ORM instance to a plain dict."""
    return {
        "embedding_id": row.embedding_id,
        "property_id": row.property_id,
        "property_data": row.property_data,
        "description_embedding": _vector_to_list(row.description_embedding),
        "features_embedding": _vector_to_list(row.features_embedding),
        "combined_embedding": _vector_to_list(row.combined_embedding),
        "created_at": row.created_at.isoformat() if row.created_at else None,
        "updated_at": row.updated_at.isoformat() if row.updated_at else None,
    }


def _checked_vector(name: str, vector: Optional[list[float]]) -> Optional[list[float]]:
    """Empty vectors are stored as NULL; anything else must be full length."""
    if not vector:
        return None
    if len(vector) != settings.EMBEDDING_DIMENSIONS:
        raise ValueError(
            f"{name} embedding has {len(vector)} dimensions, "
            f"expected {settings.EMBEDDING_DIMENSIONS}"
        )
    return [float(v) for v in vector]


def _json_snapshot(snapshot: dict[str, Any]) -> dict[str, Any]:
    """Make a record JSONB-safe (Decimal, datetime and friends become strings)."""
    return json.loads(json.dumps(snapshot, default=str))


def _timed(fn_name: str, start: float) -> None:
    """Log elapsed time in milliseconds."""
    elapsed_ms = round((time.perf_counter() - start) * 1000, 2)
    logger.info("dal_query", function=fn_name, elapsed_ms=elapsed_ms)


# ── Public API ─────────────────────────────────────────────────────────────


def upsert_property_embedding(
    property_id: str,
    snapshot: dict[str, Any],
    vectors: dict[str, Optional[list[float]]],
    *,
    db: Session,
) -> None:
    """
    Insert or replace the embedding row for *property_id*.

    *vectors* maps ``description`` / ``features`` / ``combined`` to a vector,
    ``[]`` or ``None``; the latter two are stored as NULL.  Repeating the call
    with the same input leaves exactly one row (last write wins) and bumps
    ``updated_at``.

    Raises ``ValueError`` if *property_id* is empty or a vector has the wrong
    number of dimensions.
    """
    start = time.perf_counter()
    try:
        if not property_id:
            raise ValueError("property_id is required")

        values = {
            f"{name}_embedding": _checked_vector(name, vectors.get(name))
            for name in _VECTOR_FIELDS
        }
        values["property_data"] = _json_snapshot(snapshot)

        stmt = pg_insert(PropertyEmbedding).values(
            property_id=property_id,
            **values,
        ).on_conflict_do_update(
            index_elements=["property_id"],
            set_={**values, "updated_at": func.now()},
        )
        db.execute(stmt)
        db.commit()
    except ValueError:
        raise
    except Exception as exc:
        db.rollback()
        raise RuntimeError(f"upsert_property_embedding failed: {exc}") from exc
    finally:
        _timed("upsert_property_embedding", start)


def get_property_embedding(property_id: str, *, db: Session) -> Optional[dict[str, Any]]:
    """Return the embedding row for *property_id*, or ``None`` if it has none."""
    start = time.perf_counter()
    try:
        row = db.execute(
            select(PropertyEmbedding).where(PropertyEmbedding.property_id == property_id)
        ).scalar_one_or_none()
        return _embedding_to_dict(row) if row is not None else None
    except Exception as exc:
        raise RuntimeError(f"get_property_embedding failed: {exc}") from exc
    finally:
        _timed("get_property_embedding", start)


def has_property_embedding(property_id: str, *, db: Session) -> bool:
    """True when a combined embedding exists for *property_id*."""
    start = time.perf_counter()
    try:
        count = db.execute(
            select(func.count())
            .select_from(PropertyEmbedding)
            .where(PropertyEmbedding.property_id == property_id)
            .where(PropertyEmbedding.combined_embedding.isnot(None))
        ).scalar()
        return bool(count)
    except Exception as exc:
        raise RuntimeError(f"has_property_embedding failed: {exc}") from exc
    finally:
        _timed("has_property_embedding", start)


def nearest_properties(
    query_vector: list[float],
    limit: int,
    *,
    db: Session,
) -> list[dict[str, Any]]:
    """
    Return up to *limit* active properties ordered by cosine distance between
    their combined embedding and *query_vector* (ties by ``property_id``).

    Each dict carries the property columns plus ``cosine_distance``.
    Properties without a combined embedding are never returned.
    """
    start = time.perf_counter()
    try:
        if limit < 1:
            raise ValueError(f"limit must be positive, got {limit}")

        cosine_distance = PropertyEmbedding.combined_embedding.cosine_distance(query_vector)
        stmt = (
            select(
                *(getattr(Property, name) for name in _PROPERTY_COLUMNS),
                cosine_distance.label("cosine_distance"),
            )
            .join(PropertyEmbedding, PropertyEmbedding.property_id == Property.property_id)
            .where(Property.status == settings.ACTIVE_STATUS)
            .where(PropertyEmbedding.combined_embedding.isnot(None))
            .order_by(cosine_distance.asc(), Property.property_id.asc())
            .limit(limit)
        )
        rows = db.execute(stmt).all()

        results = []
        for row in rows:
            item = _property_to_dict(row)
            item["cosine_distance"] = float(row.cosine_distance)
            results.append(item)
        return results
    except ValueError:
        raise
    except Exception as exc:
        raise RuntimeError(f"nearest_properties failed: {exc}") from exc
    finally:
        _timed("nearest_properties", start)


def filter_properties(
    filters: SearchFilters,
    limit: int,
    *,
    db: Session,
) -> list[dict[str, Any]]:
    """
    Return up to *limit* active properties matching the structured filters,
    cheapest first (ties by ``property_id``).

    Location is a case-insensitive substring match on city, province or
    address; bedroom and bathroom filters are minimums.
    """
    start = time.perf_counter()
    try:
        if limit < 1:
            raise ValueError(f"limit must be positive, got {limit}")

        stmt = select(Property).where(Property.status == settings.ACTIVE_STATUS)

        if filters.location:
            pattern = f"%{filters.location.strip()}%"
            stmt = stmt.where(
                or_(
                    Property.city.ilike(pattern),
                    Property.province.ilike(pattern),
                    Property.address.ilike(pattern),
                )
            )
        if filters.min_price:
            stmt = stmt.where(Property.price >= filters.min_price)
        if filters.max_price:
            stmt = stmt.where(Property.price <= filters.max_price)
        if filters.bedrooms:
            stmt = stmt.where(Property.bedrooms >= filters.bedrooms)
        if filters.bathrooms:
            stmt = stmt.where(Property.bathrooms >= filters.bathrooms)
        if filters.property_type:
            stmt = stmt.where(
                func.lower(Property.property_type).in_(
                    map_property_type(filters.property_type)
                )
            )

        stmt = stmt.order_by(Property.price.asc(), Property.property_id.asc()).limit(limit)
        rows = db.execute(stmt).scalars().all()
        return [_property_to_dict(r) for r in rows]
    except ValueError:
        raise
    except Exception as exc:
        raise RuntimeError(f"filter_properties failed: {exc}") from exc
    finally:
        _timed("filter_properties", start)


def get_active_properties(
    limit: int,
    offset: int = 0,
    *,
    db: Session,
) -> list[dict[str, Any]]:
    """Page through active properties in ``property_id`` order (used by reindexing)."""
    start = time.perf_counter()
    try:
        stmt = (
            select(Property)
            .where(Property.status == settings.ACTIVE_STATUS)
            .order_by(Property.property_id.asc())
            .offset(offset)
            .limit(limit)
        )
        rows = db.execute(stmt).scalars().all()
        return [_property_to_dict(r) for r in rows]
    except Exception as exc:
        raise RuntimeError(f"get_active_properties failed: {exc}") from exc
    finally:
        _timed("get_active_properties", start)
