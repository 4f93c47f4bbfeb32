"""
Tests for the property indexer.

Tests:
    1. index_property embeds and upserts with the raw record as snapshot
    2. Records without an identifier raise ValueError
    3. Embedding errors propagate from index_property
    4. Batch processing is sequential and continues past failures
    5. process_properties_for_embeddings returns None
"""

from unittest.mock import MagicMock, patch

import openai
import pytest

from homematch.search.embeddings import EmbeddingGenerator, PropertyVectors
from homematch.search.indexer import PropertyIndexer


def _nested(mls_id, description="Lake house"):
    return {
        "mlsId": mls_id,
        "description": description,
        "address": {"city": "Nelson", "state": "BC"},
        "details": {"numBedrooms": 3, "heating": "Heat pump"},
    }


# ── Test 1–3: index_property ─────────────────────────────────────────────────


class TestIndexProperty:
    @patch("homematch.search.indexer.dal.upsert_property_embedding")
    def test_embeds_and_upserts(self, mock_upsert, fake_openai_client):
        indexer = PropertyIndexer(MagicMock(), EmbeddingGenerator(fake_openai_client))
        record = _nested("MLS-1")
        db = MagicMock()

        property_id = indexer.index_property(record, db)

        assert property_id == "MLS-1"
        assert fake_openai_client.embeddings.create.call_count == 1
        args, kwargs = mock_upsert.call_args
        assert args[0] == "MLS-1"
        assert args[1] is record
        assert kwargs["db"] is db
        vectors = args[2]
        assert len(vectors["description"]) == 1536
        assert len(vectors["features"]) == 1536
        assert len(vectors["combined"]) == 1536

    @patch("homematch.search.indexer.dal.upsert_property_embedding")
    def test_record_without_text_still_gets_combined_vector(self, mock_upsert, fake_openai_client):
        indexer = PropertyIndexer(MagicMock(), EmbeddingGenerator(fake_openai_client))

        indexer.index_property({"property_id": "BARE"}, MagicMock())

        _, kwargs = fake_openai_client.embeddings.create.call_args
        assert kwargs["input"] == ["property listing"]
        vectors = mock_upsert.call_args[0][2]
        assert vectors["description"] == []
        assert len(vectors["combined"]) == 1536

    @patch("homematch.search.indexer.dal.upsert_property_embedding")
    def test_missing_id_raises(self, mock_upsert):
        embedder = MagicMock()
        indexer = PropertyIndexer(MagicMock(), embedder)

        with pytest.raises(ValueError):
            indexer.index_property({"description": "No id here"}, MagicMock())

        embedder.embed_property.assert_not_called()
        mock_upsert.assert_not_called()

    @patch("homematch.search.indexer.dal.upsert_property_embedding")
    def test_embedding_error_propagates(self, mock_upsert):
        embedder = MagicMock()
        embedder.embed_property.side_effect = openai.APIConnectionError(request=MagicMock())
        indexer = PropertyIndexer(MagicMock(), embedder)

        with pytest.raises(openai.APIConnectionError):
            indexer.index_property(_nested("MLS-2"), MagicMock())
        mock_upsert.assert_not_called()


# ── Test 4 & 5: batches ──────────────────────────────────────────────────────


class TestBatchProcessing:
    @patch("homematch.search.indexer.dal.upsert_property_embedding")
    def test_sequential_and_continues_after_failure(self, mock_upsert):
        embedder = MagicMock()
        embedder.embed_property.side_effect = [
            PropertyVectors(combined=[0.1] * 1536),
            openai.RateLimitError(
                "slow down", response=MagicMock(status_code=429), body=None
            ),
            PropertyVectors(combined=[0.2] * 1536),
        ]
        indexer = PropertyIndexer(MagicMock(), embedder)

        result = indexer.index_batch([_nested("A"), _nested("B"), _nested("C")])

        assert result == {"total": 3, "succeeded": 2, "failed": 1}
        upserted = [c.args[0] for c in mock_upsert.call_args_list]
        assert upserted == ["A", "C"]

    @patch("homematch.search.indexer.dal.upsert_property_embedding")
    def test_bad_records_counted_as_failures(self, mock_upsert, fake_openai_client):
        indexer = PropertyIndexer(MagicMock(), EmbeddingGenerator(fake_openai_client))

        result = indexer.index_batch([{"no": "id"}, "not a record", _nested("OK")])

        assert result == {"total": 3, "succeeded": 1, "failed": 2}

    def test_each_record_gets_its_own_session(self):
        session_factory = MagicMock()
        indexer = PropertyIndexer(session_factory, MagicMock())

        with patch.object(indexer, "index_property", return_value="X") as mock_index:
            indexer.index_batch([_nested("A"), _nested("B")])

        assert session_factory.call_count == 2
        assert mock_index.call_count == 2

    def test_process_properties_returns_none(self):
        indexer = PropertyIndexer(MagicMock(), MagicMock())
        with patch.object(indexer, "index_batch") as mock_batch:
            assert indexer.process_properties_for_embeddings([_nested("A")]) is None
        mock_batch.assert_called_once()

    def test_empty_batch(self):
        indexer = PropertyIndexer(MagicMock(), MagicMock())
        assert indexer.index_batch([]) == {"total": 0, "succeeded": 0, "failed": 0}
