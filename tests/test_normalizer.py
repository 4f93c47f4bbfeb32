"""
Tests for the text normalizer.

Tests:
    1. Nested provider records and flat rows resolve to the same canonical fields
    2. Sentinel values ("N/A", "null", "") are treated as absent
    3. Malformed values are omitted, never raised
    4. Embedding texts render numeric attributes as phrases only when present
    5. The payload walker follows the allow-list and ignores malformed branches
    6. searchable_text is a lower-cased blob including payload text
"""

import pytest

from homematch.search.normalizer import (
    adapt_record,
    build_embedding_texts,
    clean_number,
    clean_text,
    extract_payload_text,
    searchable_text,
)


# ── Helpers ──────────────────────────────────────────────────────────────────


def _nested_record(**overrides):
    record = {
        "mlsId": "MLS-100",
        "class": "ResidentialProperty",
        "status": "A",
        "listPrice": 875000,
        "description": "Timber-frame home with covered deck and mountain views.",
        "address": {
            "streetNumber": "12",
            "streetName": "Alder",
            "streetSuffix": "Way",
            "city": "Whitefish",
            "state": "MT",
            "zip": "59937",
            "neighborhood": "Iron Horse",
        },
        "details": {
            "propertyType": "Residential",
            "style": "Craftsman",
            "numBedrooms": 4,
            "numBathrooms": 3.5,
            "sqft": "2,850",
            "yearBuilt": 2016,
            "heating": "Radiant floor",
            "airConditioning": "N/A",
            "extras": "Gourmet kitchen",
        },
        "amenities": ["Golf", "Clubhouse"],
        "estimate": {"value": 910000, "confidence": "high"},
        "imageInsights": [{"description": "Stone fireplace in great room"}],
    }
    record.update(overrides)
    return record


def _flat_record(**overrides):
    record = {
        "property_id": "MLS-200",
        "address": "45 Lake Rd",
        "city": "Kelowna",
        "province": "BC",
        "postal_code": "V1Y 1A1",
        "property_type": "residential",
        "bedrooms": 3,
        "bathrooms": 2,
        "square_footage": 1800,
        "price": 640000,
        "description": "Lake view bungalow",
        "heating": "Forced air",
        "cooling": "null",
        "parking": "Double garage",
        "features": ["Patio", "Hot tub"],
        "amenities": "Marina",
    }
    record.update(overrides)
    return record


# ── Test 1: shape adaptation ─────────────────────────────────────────────────


class TestAdaptRecord:
    def test_nested_shape_detected_by_details_mapping(self):
        listing = adapt_record(_nested_record())

        assert listing.shape == "nested"
        assert listing.property_id == "MLS-100"
        assert listing.street == "12 Alder Way"
        assert listing.city == "Whitefish"
        assert listing.province == "MT"
        assert listing.bedrooms == 4
        assert listing.bathrooms == 3.5
        assert listing.square_feet == 2850
        assert listing.price == 875000
        assert listing.amenities == ["Golf", "Clubhouse"]

    def test_flat_shape(self):
        listing = adapt_record(_flat_record())

        assert listing.shape == "flat"
        assert listing.property_id == "MLS-200"
        assert listing.street == "45 Lake Rd"
        assert listing.square_feet == 1800
        assert listing.features == ["Forced air", "Double garage", "Patio", "Hot tub"]
        assert listing.amenities == ["Marina"]

    def test_details_that_is_not_a_mapping_means_flat(self):
        listing = adapt_record(_flat_record(details="see remarks"))
        assert listing.shape == "flat"

    def test_non_mapping_input_yields_empty_listing(self):
        listing = adapt_record(["not", "a", "record"])
        assert listing.property_id is None
        assert listing.features == []

    def test_nested_description_falls_back_to_remarks(self):
        record = _nested_record(description="N/A", remarks="Quiet cul-de-sac")
        assert adapt_record(record).description == "Quiet cul-de-sac"


# ── Test 2 & 3: sentinels and malformed values ───────────────────────────────


class TestValueCleaning:
    @pytest.mark.parametrize("value", [None, "", "  ", "N/A", "n/a", "null", "NULL"])
    def test_sentinels_are_absent(self, value):
        assert clean_text(value) is None

    def test_sentinel_features_are_omitted(self):
        listing = adapt_record(_nested_record())
        assert "N/A" not in listing.features
        assert listing.features == ["Gourmet kitchen", "Radiant floor"]

    def test_numbers_render_without_trailing_zero(self):
        assert clean_text(3.0) == "3"
        assert clean_text(2.5) == "2.5"

    @pytest.mark.parametrize("value", ["three", float("nan"), float("inf"), True, {}, []])
    def test_unusable_numbers_are_none(self, value):
        assert clean_number(value) is None

    def test_malformed_fields_do_not_raise(self):
        record = _nested_record(
            address="somewhere",
            details={"numBedrooms": "many", "sqft": {"value": 10}},
            amenities=42,
            imageInsights="blurry",
        )
        listing = adapt_record(record)

        assert listing.city is None
        assert listing.bedrooms is None
        assert listing.square_feet is None
        assert listing.image_insights == []


# ── Test 4: embedding texts ──────────────────────────────────────────────────


class TestBuildEmbeddingTexts:
    def test_combined_text_contains_location_structure_and_remarks(self):
        texts = build_embedding_texts(adapt_record(_nested_record()))

        assert "Whitefish" in texts.combined_text
        assert "4 bedroom" in texts.combined_text
        assert "3.5 bathroom" in texts.combined_text
        assert "2850 square feet" in texts.combined_text
        assert "built 2016" in texts.combined_text
        assert "covered deck" in texts.combined_text
        assert "Golf" in texts.combined_text
        assert "Stone fireplace" in texts.combined_text

    def test_description_and_features_texts(self):
        texts = build_embedding_texts(adapt_record(_flat_record()))

        assert texts.description_text == "Lake view bungalow"
        assert texts.features_text == "Forced air Double garage Patio Hot tub"

    def test_missing_counts_produce_no_phrases(self):
        texts = build_embedding_texts(adapt_record({"property_id": "X1", "city": "Banff"}))

        assert texts.combined_text == "Banff"
        assert "bedroom" not in texts.combined_text

    def test_empty_record_gives_empty_texts(self):
        texts = build_embedding_texts(adapt_record({}))

        assert texts.description_text == ""
        assert texts.features_text == ""
        assert texts.combined_text == ""


# ── Test 5: payload walker ───────────────────────────────────────────────────


class TestExtractPayloadText:
    def test_collects_allow_listed_paths(self):
        payload = {
            "details": {"extras": "Wine cellar", "numBedrooms": 4},
            "rooms": [
                {"description": "Primary suite", "features": "Walk-in closet"},
                {"description": "Den"},
            ],
            "nearby": {"amenities": [{"name": "Lakeview Golf", "type": "golf"}]},
            "estimate": {"value": 500000},
        }
        parts = extract_payload_text(payload)

        assert "Wine cellar" in parts
        assert "Primary suite" in parts
        assert "Walk-in closet" in parts
        assert "Den" in parts
        assert "Lakeview Golf" in parts
        assert "500000" in parts
        # not on the allow-list
        assert "4" not in parts

    def test_malformed_branches_contribute_nothing(self):
        payload = {
            "rooms": "none",
            "nearby": {"amenities": {"name": "not a list"}},
            "details": ["wrong"],
        }
        assert extract_payload_text(payload) == []

    def test_non_mapping_payload(self):
        assert extract_payload_text(None) == []
        assert extract_payload_text("text") == []


# ── Test 6: searchable_text ──────────────────────────────────────────────────


class TestSearchableText:
    def test_lower_cased_blob(self):
        row = {
            "description": "Bright CONDO",
            "address": "1 Main St",
            "city": "Calgary",
            "province": "AB",
            "features": ["Rooftop Patio"],
            "raw_data": {"rooms": [{"description": "Gourmet Kitchen"}]},
        }
        blob = searchable_text(row)

        assert blob == blob.lower()
        assert "bright condo" in blob
        assert "calgary" in blob
        assert "rooftop patio" in blob
        assert "gourmet kitchen" in blob
