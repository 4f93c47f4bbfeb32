"""
HomeMatch Text Normalizer

Turns heterogeneous property records into canonical text for embedding and
keyword matching. No DB or network access in this module.

Record shapes:
    nested — provider payload with ``details`` / ``address`` sub-objects
             (numBedrooms, airConditioning, address.city, ...)
    flat   — listing-service row with attributes at the top level
             (bedrooms, heating, city, ...)

The shape is detected structurally by ``adapt_record`` (a ``details``
mapping means nested) and resolved into one ``PropertyListing`` before any
text is built.

Functions:
    adapt_record            — Raw record (either shape) → PropertyListing
    build_embedding_texts   — PropertyListing → description / features / combined text
    extract_payload_text    — Allow-listed walk over a raw nested payload
    searchable_text         — Lower-cased keyword blob for a properties row

Rules:
    - Never raise on malformed input; unusable fields are omitted
    - None, "", "N/A" and "null" are treated as absent
"""

import math
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Optional

_SENTINELS = {"", "n/a", "null", "none"}


# ── Canonical record ───────────────────────────────────────────────────────


@dataclass
class PropertyListing:
    """Canonical view of a property record, independent of source shape."""
    property_id: Optional[str] = None
    shape: str = "flat"
    street: Optional[str] = None
    city: Optional[str] = None
    province: Optional[str] = None
    postal_code: Optional[str] = None
    neighborhood: list[str] = field(default_factory=list)
    property_type: Optional[str] = None
    style: Optional[str] = None
    listing_class: Optional[str] = None
    status: Optional[str] = None
    bedrooms: Optional[float] = None
    bathrooms: Optional[float] = None
    half_bathrooms: Optional[float] = None
    square_feet: Optional[float] = None
    year_built: Optional[float] = None
    lot_size: Optional[float] = None
    price: Optional[float] = None
    description: Optional[str] = None
    features: list[str] = field(default_factory=list)
    amenities: list[str] = field(default_factory=list)
    valuation: list[str] = field(default_factory=list)
    image_insights: list[str] = field(default_factory=list)


@dataclass
class EmbeddingTexts:
    """The three texts embedded for every property."""
    description_text: str
    features_text: str
    combined_text: str


# ── Value helpers ──────────────────────────────────────────────────────────


def clean_text(value: Any) -> Optional[str]:
    """Return a stripped string, or None for sentinels and non-scalar values."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float, Decimal)):
        number = float(value)
        return _format_number(number) if math.isfinite(number) else None
    if not isinstance(value, str):
        return None
    text = value.strip()
    if text.lower() in _SENTINELS:
        return None
    return text


def clean_number(value: Any) -> Optional[float]:
    """Return a float, or None when the value is absent or not numeric."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float, Decimal)):
        number = float(value)
    else:
        text = clean_text(value)
        if text is None:
            return None
        try:
            number = float(text.replace(",", ""))
        except ValueError:
            return None
    return number if math.isfinite(number) else None


def _format_number(value: float) -> str:
    return str(int(value)) if value.is_integer() else str(value)


def _mapping(value: Any) -> Mapping:
    return value if isinstance(value, Mapping) else {}


def _text_list(value: Any) -> list[str]:
    """Clean every scalar element of a list; a bare string becomes one item."""
    if isinstance(value, (list, tuple)):
        items = (clean_text(v) for v in value)
        return [v for v in items if v]
    single = clean_text(value)
    return [single] if single else []


def _pick_text(record: Mapping, *keys: str) -> Optional[str]:
    for key in keys:
        text = clean_text(record.get(key))
        if text:
            return text
    return None


def _pick_number(record: Mapping, *keys: str) -> Optional[float]:
    for key in keys:
        number = clean_number(record.get(key))
        if number is not None:
            return number
    return None


def _compact(values: list[Optional[str]]) -> list[str]:
    return [v for v in values if v]


# ── Shape adapters ─────────────────────────────────────────────────────────


def _valuation_terms(record: Mapping) -> list[str]:
    estimate = _mapping(record.get("estimate"))
    return _compact([clean_text(estimate.get("value")), clean_text(estimate.get("confidence"))])


def _image_insight_terms(record: Mapping) -> list[str]:
    insights = record.get("imageInsights")
    if not isinstance(insights, list):
        return []
    return _compact([clean_text(_mapping(i).get("description")) for i in insights])


def _adapt_nested(record: Mapping) -> PropertyListing:
    details = _mapping(record.get("details"))
    address = _mapping(record.get("address"))

    street = " ".join(_compact([
        clean_text(address.get("streetNumber")),
        clean_text(address.get("streetName")),
        clean_text(address.get("streetSuffix")),
    ])) or None

    return PropertyListing(
        property_id=_pick_text(record, "mlsId", "mlsNumber", "id"),
        shape="nested",
        street=street,
        city=clean_text(address.get("city")),
        province=_pick_text(address, "state", "province"),
        postal_code=_pick_text(address, "zip", "postalCode"),
        neighborhood=_compact([
            clean_text(address.get("neighborhood")),
            clean_text(address.get("area")),
            clean_text(address.get("district")),
            clean_text(address.get("majorIntersection")),
        ]),
        property_type=clean_text(details.get("propertyType")),
        style=clean_text(details.get("style")),
        listing_class=clean_text(record.get("class")),
        status=_pick_text(record, "status", "lastStatus"),
        bedrooms=clean_number(details.get("numBedrooms")),
        bathrooms=clean_number(details.get("numBathrooms")),
        half_bathrooms=clean_number(details.get("numBathroomsHalf")),
        square_feet=clean_number(details.get("sqft")),
        year_built=clean_number(details.get("yearBuilt")),
        lot_size=clean_number(details.get("lotSize")),
        price=_pick_number(record, "listPrice", "price"),
        description=(
            _pick_text(record, "description", "remarks", "publicRemarks")
            or clean_text(details.get("description"))
        ),
        features=_compact([
            clean_text(details.get("extras")),
            clean_text(details.get("airConditioning")),
            clean_text(details.get("heating")),
            clean_text(details.get("flooringType")),
            clean_text(details.get("foundationType")),
            clean_text(details.get("HOAFee")),
            clean_text(details.get("sewer")),
            clean_text(details.get("waterSource")),
            clean_text(details.get("zoning")),
        ]),
        amenities=_text_list(record.get("amenities")),
        valuation=_valuation_terms(record),
        image_insights=_image_insight_terms(record),
    )


def _adapt_flat(record: Mapping) -> PropertyListing:
    return PropertyListing(
        property_id=_pick_text(record, "mlsId", "propertyId", "property_id", "id"),
        shape="flat",
        street=clean_text(record.get("address")),
        city=clean_text(record.get("city")),
        province=_pick_text(record, "province", "state"),
        postal_code=_pick_text(record, "postalCode", "postal_code", "zip"),
        neighborhood=_text_list(record.get("neighborhood")),
        property_type=_pick_text(record, "propertyType", "property_type"),
        style=clean_text(record.get("style")),
        status=clean_text(record.get("status")),
        bedrooms=clean_number(record.get("bedrooms")),
        bathrooms=clean_number(record.get("bathrooms")),
        square_feet=_pick_number(record, "squareFootage", "square_footage", "sqft"),
        year_built=_pick_number(record, "yearBuilt", "year_built"),
        lot_size=_pick_number(record, "lotSize", "lot_size"),
        price=clean_number(record.get("price")),
        description=_pick_text(record, "description", "remarks"),
        features=_compact([
            clean_text(record.get("heating")),
            clean_text(record.get("cooling")),
            clean_text(record.get("parking")),
            clean_text(record.get("extras")),
            _pick_text(record, "flooringType", "flooring_type"),
            _pick_text(record, "foundationType", "foundation_type"),
        ]) + _text_list(record.get("features")),
        amenities=_text_list(record.get("amenities")),
        valuation=_valuation_terms(record),
        image_insights=_image_insight_terms(record),
    )


def adapt_record(raw: Any) -> PropertyListing:
    """
    Resolve a raw record of either shape into a PropertyListing.

    Anything that is not a mapping yields an empty listing.
    """
    if not isinstance(raw, Mapping):
        return PropertyListing()
    if isinstance(raw.get("details"), Mapping):
        return _adapt_nested(raw)
    return _adapt_flat(raw)


# ── Text builders ──────────────────────────────────────────────────────────


def _count_phrase(value: Optional[float], noun: str) -> Optional[str]:
    if value is None:
        return None
    return f"{_format_number(value)} {noun}"


def build_embedding_texts(listing: PropertyListing) -> EmbeddingTexts:
    """
    Build the description, features and combined texts for one listing.

    Combined text concatenates location, structural attributes, features,
    amenities, remarks, the valuation estimate and image notes. Any of the
    three may be empty; the embedding generator substitutes a placeholder
    for an empty combined text.
    """
    description_text = listing.description or ""
    features_text = " ".join(listing.features)

    location = _compact([
        listing.street,
        listing.city,
        listing.province,
        listing.postal_code,
    ]) + listing.neighborhood

    structure = _compact([
        listing.property_type,
        listing.style,
        listing.listing_class,
        _count_phrase(listing.bedrooms, "bedroom"),
        _count_phrase(listing.bathrooms, "bathroom"),
        _count_phrase(listing.half_bathrooms, "half bathroom"),
        _count_phrase(listing.square_feet, "square feet"),
        f"built {_format_number(listing.year_built)}" if listing.year_built else None,
        _count_phrase(listing.lot_size, "lot"),
    ])

    combined_parts = (
        location
        + structure
        + listing.features
        + listing.amenities
        + _compact([listing.description])
        + listing.valuation
        + listing.image_insights
    )

    return EmbeddingTexts(
        description_text=description_text,
        features_text=features_text,
        combined_text=" ".join(combined_parts),
    )


# ── Payload walker (fallback keyword search) ───────────────────────────────

# Paths into the raw provider payload that carry descriptive text.
# "*" iterates a list at that position.
PAYLOAD_TEXT_PATHS: tuple[tuple[str, ...], ...] = (
    ("details", "extras"),
    ("details", "airConditioning"),
    ("details", "heating"),
    ("details", "flooringType"),
    ("details", "foundationType"),
    ("details", "HOAFee"),
    ("details", "sewer"),
    ("details", "waterSource"),
    ("details", "zoning"),
    ("details", "style"),
    ("address", "neighborhood"),
    ("address", "area"),
    ("address", "district"),
    ("address", "majorIntersection"),
    ("rooms", "*", "description"),
    ("rooms", "*", "features"),
    ("rooms", "*", "features2"),
    ("nearby", "amenities", "*", "name"),
    ("nearby", "amenities", "*", "type"),
    ("lot", "legalDescription"),
    ("lot", "features"),
    ("taxes", "description"),
    ("estimate", "value"),
    ("estimate", "confidence"),
    ("imageInsights", "*", "description"),
    ("neighborhood",),
    ("heating",),
    ("cooling",),
    ("parking",),
    ("features",),
    ("amenities",),
)


def _walk(node: Any, path: tuple[str, ...]) -> Iterator[str]:
    if not path:
        yield from _text_list(node)
        return
    head, rest = path[0], path[1:]
    if head == "*":
        if isinstance(node, list):
            for item in node:
                yield from _walk(item, rest)
        return
    if isinstance(node, Mapping) and head in node:
        yield from _walk(node[head], rest)


def extract_payload_text(raw_data: Any) -> list[str]:
    """
    Collect every string found at a PAYLOAD_TEXT_PATHS location.

    Paths that are missing or point at the wrong kind of value contribute
    nothing.
    """
    parts: list[str] = []
    for path in PAYLOAD_TEXT_PATHS:
        parts.extend(_walk(raw_data, path))
    return parts


def searchable_text(row: Mapping) -> str:
    """
    Lower-cased keyword blob for a properties row: description, address,
    city, province, feature and amenity lists, and the descriptive parts of
    its raw payload.
    """
    parts = _compact([
        clean_text(row.get("description")),
        clean_text(row.get("address")),
        clean_text(row.get("city")),
        clean_text(row.get("province")),
    ])
    parts.extend(_text_list(row.get("features")))
    parts.extend(_text_list(row.get("amenities")))
    parts.extend(extract_payload_text(row.get("raw_data")))
    return " ".join(parts).lower()
