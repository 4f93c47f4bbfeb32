"""
001 - Property Embeddings

Adds the pgvector extension and the property_embeddings table used for
semantic property search.

New tables:
    - property_embeddings — one row per property: record snapshot plus
      description, features and combined embeddings (each nullable)

Indexes:
    - HNSW index on property_embeddings.combined_embedding (cosine distance)

The properties table belongs to the listing service and is not created
here; property_embeddings.property_id refers to it without a foreign key.

IMPORTANT: vector columns and the HNSW index are created via op.execute()
with raw SQL because Alembic does not support pgvector types natively.

Revision ID: 001
Revises: None
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# Revision identifiers
revision = "001"
down_revision = None
branch_labels = None
depends_on = None

EMBEDDING_COLUMNS = ("description_embedding", "features_embedding", "combined_embedding")


def upgrade() -> None:
    """Create pgvector extension, property_embeddings, and HNSW index."""

    # =========================================================================
    # Step 1: Enable pgvector extension
    # =========================================================================
    op.execute("CREATE EXTENSION IF NOT EXISTS vector")

    # =========================================================================
    # Step 2: Create property_embeddings table
    # =========================================================================
    op.create_table(
        "property_embeddings",
        sa.Column("embedding_id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("property_id", sa.String(64), nullable=False),
        sa.Column("property_data", postgresql.JSONB(), nullable=False),
        # vector columns added below via raw SQL
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("embedding_id"),
        sa.UniqueConstraint("property_id", name="uq_property_embeddings_property_id"),
    )

    for column in EMBEDDING_COLUMNS:
        op.execute(f"ALTER TABLE property_embeddings ADD COLUMN {column} vector(1536)")

    # =========================================================================
    # Step 3: HNSW index on the combined embedding
    # Parameters: m=16, ef_construction=64, cosine distance (vector_cosine_ops)
    # =========================================================================
    op.execute("""
        CREATE INDEX idx_property_embeddings_combined
        ON property_embeddings
        USING hnsw (combined_embedding vector_cosine_ops)
        WITH (m = 16, ef_construction = 64)
    """)


def downgrade() -> None:
    """Drop HNSW index and property_embeddings. The vector extension stays."""
    op.execute("DROP INDEX IF EXISTS idx_property_embeddings_combined")
    op.drop_table("property_embeddings")
