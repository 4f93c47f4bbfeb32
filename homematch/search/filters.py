"""
HomeMatch Search Filters

Hard filters shared by the vector and fallback search paths.

Contents:
    SearchFilters            — Optional location / price / type / room filters
    PROPERTY_TYPE_MAP        — Colloquial type terms → stored property_type values
    map_property_type        — Resolve a requested type through the taxonomy
    passes_post_filters      — Local predicate applied to vector-search candidates
    filters_from_lead_text   — Pull filters out of a lead's free-text summary

Rules:
    - A filter left as None (or 0) does not constrain results
    - Type matching is case-insensitive against the mapped taxonomy values
"""

import re
from dataclasses import asdict, dataclass
from decimal import Decimal
from typing import Any, Optional

# Requested term → values stored in properties.property_type
PROPERTY_TYPE_MAP: dict[str, list[str]] = {
    "house": ["residential"],
    "home": ["residential"],
    "residential": ["residential"],
    "land": ["land"],
    "lease": ["residential lease"],
}


@dataclass
class SearchFilters:
    """Hard filters for a property search. Every field is optional."""
    location: Optional[str] = None
    min_price: Optional[float] = None
    max_price: Optional[float] = None
    property_type: Optional[str] = None
    bedrooms: Optional[int] = None
    bathrooms: Optional[float] = None

    @classmethod
    def from_dict(cls, data: Optional[dict[str, Any]]) -> "SearchFilters":
        """
        Build filters from a plain dict, accepting both snake_case and the
        camelCase keys used by the listing front-end (minPrice, propertyType).
        """
        if not data:
            return cls()
        aliases = {
            "minPrice": "min_price",
            "maxPrice": "max_price",
            "propertyType": "property_type",
        }
        values = {}
        for key, value in data.items():
            name = aliases.get(key, key)
            if name in cls.__dataclass_fields__:
                values[name] = value
        return cls(**values)

    def active_keys(self) -> list[str]:
        """Names of filters that constrain results (used for logging)."""
        return [k for k, v in asdict(self).items() if v]


def map_property_type(requested: str) -> list[str]:
    """
    Resolve a requested property type through PROPERTY_TYPE_MAP.

    Unknown terms map to themselves so that exact stored values still work.
    """
    key = requested.strip().lower()
    return PROPERTY_TYPE_MAP.get(key, [key])


def _as_number(value: Any, default: float) -> float:
    """Coerce a numeric column value; anything unusable becomes ``default``."""
    if isinstance(value, bool):
        return default
    if isinstance(value, (int, float, Decimal)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.replace(",", ""))
        except ValueError:
            return default
    return default


def passes_post_filters(row: dict[str, Any], filters: SearchFilters) -> bool:
    """
    Check a candidate row against the filters the vector query cannot express.

    Missing bedroom/bathroom counts are treated as 0; a missing price fails
    a minimum-price bound and a maximum-price bound alike.
    """
    if filters.property_type:
        allowed = map_property_type(filters.property_type)
        stored = str(row.get("property_type") or "").strip().lower()
        if stored not in allowed:
            return False

    if filters.bedrooms:
        if _as_number(row.get("bedrooms"), 0.0) < filters.bedrooms:
            return False

    if filters.bathrooms:
        if _as_number(row.get("bathrooms"), 0.0) < filters.bathrooms:
            return False

    if filters.min_price:
        if _as_number(row.get("price"), 0.0) < filters.min_price:
            return False

    if filters.max_price:
        if _as_number(row.get("price"), float("inf")) > filters.max_price:
            return False

    return True


# ── Lead text extraction ───────────────────────────────────────────────────

_BEDROOMS_RE = re.compile(r"(\d+)\s*(?:bedrooms|bedroom|beds|bed|br)\b", re.IGNORECASE)
_BATHROOMS_RE = re.compile(
    r"(\d+(?:\.\d+)?)\s*(?:bathrooms|bathroom|baths|bath|ba)\b", re.IGNORECASE
)
_PRICE_RE = re.compile(r"\$\s?(\d{1,3}(?:,\d{3})+|\d+(?:\.\d+)?)\s?([kKmM])?\b")
_LOCATION_RE = re.compile(
    r"\b(?i:in|at|near|around)\s+([A-Z][a-z]+(?:\s+[A-Z][a-z]+)*)"
)
_PRICE_SUFFIX = {"k": 1_000, "m": 1_000_000}


def _parse_prices(text: str) -> list[float]:
    prices = []
    for amount, suffix in _PRICE_RE.findall(text):
        value = Decimal(amount.replace(",", ""))
        if suffix:
            value *= _PRICE_SUFFIX[suffix.lower()]
        prices.append(float(value))
    return prices


def filters_from_lead_text(text: Optional[str]) -> SearchFilters:
    """
    Derive search filters from a lead's message or AI summary.

    Recognises "3 bed", "2.5 baths", dollar amounts ("$450,000", "$1.2M";
    with two or more, the smallest and largest become the price bounds) and
    a capitalised place name after in/at/near/around.
    """
    filters = SearchFilters()
    if not text:
        return filters

    match = _BEDROOMS_RE.search(text)
    if match:
        filters.bedrooms = int(match.group(1))

    match = _BATHROOMS_RE.search(text)
    if match:
        filters.bathrooms = float(match.group(1))

    prices = _parse_prices(text)
    if len(prices) > 1:
        filters.min_price = min(prices)
        filters.max_price = max(prices)
    elif prices:
        # a single figure is a budget ceiling
        filters.max_price = prices[0]

    match = _LOCATION_RE.search(text)
    if match:
        filters.location = match.group(1)

    return filters
