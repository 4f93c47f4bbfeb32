"""
HomeMatch Embedding Generation

Centralized module for all OpenAI embedding API calls. This is the ONLY
module in the codebase that calls the embedding API.

Functions / classes:
    embed_texts          — Batch-embed a list of texts via OpenAI API
    embed_single         — Convenience wrapper to embed one text
    EmbeddingGenerator   — Field-aware embedding for queries and properties
    PropertyVectors      — The three vectors computed for one property

Rules:
    - The three property fields go out in one batched request, never one call each
    - Empty combined text is replaced by COMBINED_PLACEHOLDER_TEXT so every
      property gets a combined vector; other empty fields embed to []
    - Never log embedding vectors — only metadata
    - No DB access in this module
    - Raise errors immediately; retry logic lives in the Celery task
"""

import time
from dataclasses import dataclass, field

import structlog

from homematch.config import settings
from homematch.search.normalizer import EmbeddingTexts

logger = structlog.get_logger(__name__)

DESCRIPTION_FIELD = "description"
FEATURES_FIELD = "features"
COMBINED_FIELD = "combined"
QUERY_FIELD = "query"


def embed_texts(texts: list[str], client) -> list[list[float]]:
    """
    Embed a list of texts using the OpenAI embedding API with batching.

    Splits texts into batches of settings.EMBEDDING_BATCH_SIZE and makes
    one API call per batch. Returns a flat list of embedding vectors in
    the same order as the input texts.

    Args:
        texts: List of strings to embed.
        client: An openai.OpenAI client instance.

    Returns:
        List of embedding vectors (each a list of floats), same length
        and order as input texts.

    Raises:
        openai.APIError and subclasses on API failure — caller handles retries.
    """
    if not texts:
        return []

    batch_size = settings.EMBEDDING_BATCH_SIZE
    all_embeddings: list[list[float]] = []
    total_tokens = 0
    start_time = time.time()

    for i in range(0, len(texts), batch_size):
        batch = texts[i : i + batch_size]

        response = client.embeddings.create(
            input=batch,
            model=settings.EMBEDDING_MODEL,
        )

        # API returns items sorted by index
        batch_embeddings = [item.embedding for item in response.data]
        all_embeddings.extend(batch_embeddings)

        if response.usage:
            total_tokens += response.usage.total_tokens

    elapsed = time.time() - start_time

    logger.info(
        "embeddings_generated",
        text_count=len(texts),
        batch_count=(len(texts) + batch_size - 1) // batch_size,
        total_tokens=total_tokens,
        elapsed_seconds=round(elapsed, 3),
    )

    return all_embeddings


def embed_single(text: str, client) -> list[float]:
    """
    Embed a single text string. Convenience wrapper around embed_texts.

    Used at query time for embedding search queries.
    """
    results = embed_texts([text], client)
    return results[0] if results else []


@dataclass
class PropertyVectors:
    """Vectors for one property. An empty list means the field has no vector."""
    description: list[float] = field(default_factory=list)
    features: list[float] = field(default_factory=list)
    combined: list[float] = field(default_factory=list)


class EmbeddingGenerator:
    """
    Turns query and property text into vectors through an injected
    OpenAI client.
    """

    def __init__(self, client):
        self._client = client

    @staticmethod
    def _prepare(text: str, field_name: str) -> str:
        stripped = (text or "").strip()
        if not stripped and field_name == COMBINED_FIELD:
            return settings.COMBINED_PLACEHOLDER_TEXT
        return stripped

    def embed(self, text: str, field_name: str = QUERY_FIELD) -> list[float]:
        """
        Embed one text for the given field.

        Returns [] without calling the API when the text is empty, unless
        the field is ``combined`` (placeholder text is embedded instead).
        """
        prepared = self._prepare(text, field_name)
        if not prepared:
            return []
        return embed_single(prepared, self._client)

    def embed_property(self, texts: EmbeddingTexts) -> PropertyVectors:
        """
        Embed description, features and combined text in a single request.

        Empty description/features texts are skipped and come back as [];
        the combined vector is always present.
        """
        prepared = {
            DESCRIPTION_FIELD: self._prepare(texts.description_text, DESCRIPTION_FIELD),
            FEATURES_FIELD: self._prepare(texts.features_text, FEATURES_FIELD),
            COMBINED_FIELD: self._prepare(texts.combined_text, COMBINED_FIELD),
        }
        names = [name for name, text in prepared.items() if text]
        vectors = embed_texts([prepared[name] for name in names], self._client)
        by_field = dict(zip(names, vectors))

        return PropertyVectors(
            description=by_field.get(DESCRIPTION_FIELD, []),
            features=by_field.get(FEATURES_FIELD, []),
            combined=by_field.get(COMBINED_FIELD, []),
        )
