from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping


class EmptyAddressQueryError(ValueError):
    """Raised when an address query has no searchable text."""


class FeatureType(str, Enum):
    ADDRESS = "address"
    POI = "poi"
    PLACE = "place"
    LOCALITY = "locality"
    NEIGHBORHOOD = "neighborhood"
    DISTRICT = "district"
    POSTCODE = "postcode"
    REGION = "region"
    COUNTRY = "country"


class ContextKind(str, Enum):
    POSTCODE = "postcode"
    STREET = "street"
    ADDRESS = "address"
    PLACE = "place"
    LOCALITY = "locality"
    DISTRICT = "district"
    NEIGHBORHOOD = "neighborhood"
    REGION = "region"
    COUNTRY = "country"


PLACE_LIKE_TYPES = frozenset(
    {
        FeatureType.PLACE,
        FeatureType.LOCALITY,
        FeatureType.NEIGHBORHOOD,
        FeatureType.DISTRICT,
    }
)

# Search filters, kept in the order they are sent to the provider.
POI_TYPES = (
    FeatureType.POI,
    FeatureType.ADDRESS,
    FeatureType.PLACE,
    FeatureType.LOCALITY,
    FeatureType.NEIGHBORHOOD,
)
HOUSE_NUMBER_TYPES = (FeatureType.ADDRESS,)
AREA_TYPES = (
    FeatureType.ADDRESS,
    FeatureType.PLACE,
    FeatureType.LOCALITY,
    FeatureType.NEIGHBORHOOD,
)

_FEATURE_TYPES = {member.value: member for member in FeatureType}
_CONTEXT_KINDS = {member.value: member for member in ContextKind}
_DIGIT_PATTERN = re.compile(r"\d")


@dataclass(frozen=True, slots=True)
class Coordinate:
    longitude: float
    latitude: float


@dataclass(frozen=True, slots=True)
class AddressQuery:
    """A single resolution attempt: search text plus the fields it must match."""

    free_text: str
    required_postcode: str | None = None
    required_street: str | None = None
    required_city: str | None = None
    # Reserved; not enforced during validation.
    required_country: str | None = None
    country_code_hint: str | None = None
    has_house_number: bool = False
    allow_poi: bool = False

    def __post_init__(self) -> None:
        if not self.free_text or not self.free_text.strip():
            raise EmptyAddressQueryError("Address query text must not be empty")


@dataclass(frozen=True, slots=True)
class Candidate:
    """One feature returned by the place-search provider."""

    coordinate: Coordinate | None
    types: frozenset[FeatureType] = frozenset()
    context: Mapping[ContextKind, str] = field(default_factory=dict)
    place_name: str | None = None
    text: str | None = None
    relevance: float | None = None

    @classmethod
    def from_feature(cls, feature: Mapping[str, Any]) -> "Candidate":
        place_types = feature.get("place_type")
        types = frozenset(
            _FEATURE_TYPES[value]
            for value in (place_types if isinstance(place_types, list) else [])
            if isinstance(value, str) and value in _FEATURE_TYPES
        )

        context: dict[ContextKind, str] = {}
        entries = feature.get("context")
        for entry in entries if isinstance(entries, list) else []:
            if not isinstance(entry, Mapping):
                continue
            entry_id = entry.get("id")
            text = entry.get("text")
            if not isinstance(entry_id, str) or not isinstance(text, str):
                continue
            kind = _CONTEXT_KINDS.get(entry_id.split(".", 1)[0])
            if kind is not None:
                context.setdefault(kind, text)

        if ContextKind.POSTCODE not in context:
            properties = feature.get("properties")
            if isinstance(properties, Mapping):
                postcode = properties.get("postcode")
                if isinstance(postcode, str) and postcode:
                    context[ContextKind.POSTCODE] = postcode

        relevance = feature.get("relevance")
        return cls(
            coordinate=_parse_center(feature.get("center")),
            types=types,
            context=context,
            place_name=_optional_str(feature.get("place_name")),
            text=_optional_str(feature.get("text")),
            relevance=float(relevance) if isinstance(relevance, (int, float)) else None,
        )


@dataclass(frozen=True, slots=True)
class AddressRecord:
    """Structured address fields as kept by the record store."""

    building: str | None = None
    street: str | None = None
    city: str | None = None
    area: str | None = None
    postcode: str | None = None
    country: str | None = None


def select_primary_types(query: AddressQuery) -> tuple[FeatureType, ...]:
    """Choose the result types requested by the first, filtered search."""

    if query.allow_poi:
        return POI_TYPES
    if query.has_house_number:
        return HOUSE_NUMBER_TYPES
    return AREA_TYPES


def compose_free_text(record: AddressRecord) -> str:
    parts = [
        record.building,
        record.street,
        record.city,
        record.area,
        record.postcode,
        record.country,
    ]
    return ", ".join(part.strip() for part in parts if part and part.strip())


def has_numeric_building(record: AddressRecord) -> bool:
    return bool(record.building and _DIGIT_PATTERN.search(record.building))


def build_address_query(
    record: AddressRecord, free_text: str | None = None
) -> AddressQuery:
    """
    Turn a stored address into a query that must match its own fields.

    The search text defaults to the record fields joined in postal order.
    """
    numbered = has_numeric_building(record)
    return AddressQuery(
        free_text=free_text or compose_free_text(record),
        required_postcode=_clean(record.postcode),
        required_street=_clean(record.street),
        required_city=_clean(record.city),
        has_house_number=numbered,
        allow_poi=not numbered,
    )


def _parse_center(value: Any) -> Coordinate | None:
    if not isinstance(value, (list, tuple)) or len(value) < 2:
        return None
    longitude, latitude = value[0], value[1]
    if isinstance(longitude, bool) or isinstance(latitude, bool):
        return None
    if not isinstance(longitude, (int, float)) or not isinstance(latitude, (int, float)):
        return None
    return Coordinate(longitude=float(longitude), latitude=float(latitude))


def _optional_str(value: Any) -> str | None:
    return value if isinstance(value, str) and value else None


def _clean(value: str | None) -> str | None:
    if value is None:
        return None
    return value.strip() or None
