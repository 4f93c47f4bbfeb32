"""
HomeMatch Database Models

SQLAlchemy 2.x ORM models for the property matching engine.

Tables:
    1. properties - Property listings (owned by the listing service, read-only here)
    2. property_embeddings - One row per property: snapshot + three pgvector columns

The properties table is mapped so that search queries can join against it;
this package never inserts, updates or deletes property rows.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from pgvector.sqlalchemy import Vector
from sqlalchemy import (
    DateTime,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.sql import func

from homematch.config import settings


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""
    pass


# =============================================================================
# Table 1: properties (read-only reflection of the listing service's table)
# =============================================================================
class Property(Base):
    """
    One record per listing, keyed by MLS number.

    ``raw_data`` holds the provider payload (details, rooms, nearby amenities,
    valuation estimate, image insights) with no guaranteed shape.
    """
    __tablename__ = "properties"

    property_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    address: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    city: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)
    province: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)
    postal_code: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    price: Mapped[Optional[Decimal]] = mapped_column(Numeric(14, 2), nullable=True)
    bedrooms: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    bathrooms: Mapped[Optional[Decimal]] = mapped_column(Numeric(4, 1), nullable=True)
    property_type: Mapped[Optional[str]] = mapped_column(String(60), nullable=True)
    square_footage: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    year_built: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(30), nullable=False, default="active")
    days_on_market: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    features: Mapped[Optional[list[str]]] = mapped_column(JSONB, nullable=True)
    amenities: Mapped[Optional[list[str]]] = mapped_column(JSONB, nullable=True)
    raw_data: Mapped[Optional[dict[str, Any]]] = mapped_column(JSONB, nullable=True)
    updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )


# =============================================================================
# Table 2: property_embeddings
# =============================================================================
class PropertyEmbedding(Base):
    """
    Embedding vectors for one property plus the record snapshot they were
    computed from.

    Each vector column holds either a full EMBEDDING_DIMENSIONS-length vector
    or NULL. Rows are only ever written through dal.upsert_property_embedding.
    """
    __tablename__ = "property_embeddings"

    embedding_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    property_id: Mapped[str] = mapped_column(String(64), nullable=False)
    property_data: Mapped[dict[str, Any]] = mapped_column(JSONB, nullable=False)
    description_embedding = mapped_column(
        Vector(settings.EMBEDDING_DIMENSIONS), nullable=True
    )
    features_embedding = mapped_column(
        Vector(settings.EMBEDDING_DIMENSIONS), nullable=True
    )
    combined_embedding = mapped_column(
        Vector(settings.EMBEDDING_DIMENSIONS), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    __table_args__ = (
        UniqueConstraint("property_id", name="uq_property_embeddings_property_id"),
        Index(
            "idx_property_embeddings_combined",
            "combined_embedding",
            postgresql_using="hnsw",
            postgresql_with={"m": 16, "ef_construction": 64},
            postgresql_ops={"combined_embedding": "vector_cosine_ops"},
        ),
    )
