from __future__ import annotations

from dataclasses import dataclass

from pinpoint.domain.geocoding import (
    PLACE_LIKE_TYPES,
    AddressQuery,
    Candidate,
    ContextKind,
    Coordinate,
    FeatureType,
)
from pinpoint.domain.text import normalize, normalize_street


_STREET_CONTEXTS = (ContextKind.STREET, ContextKind.ADDRESS)
_CITY_CONTEXTS = (
    ContextKind.PLACE,
    ContextKind.LOCALITY,
    ContextKind.DISTRICT,
    ContextKind.NEIGHBORHOOD,
)


@dataclass(slots=True)
class CandidateValidation:
    is_valid: bool
    reason: str | None = None
    coordinate: Coordinate | None = None


def validate_candidate(candidate: Candidate, query: AddressQuery) -> CandidateValidation:
    """
    Decide whether a provider candidate can stand in for the queried address.

    A matching postcode still needs the street to agree. Without a postcode
    match both street and city must agree, unless the candidate is itself a
    postcode feature.
    """
    types = candidate.types
    if not (
        FeatureType.ADDRESS in types
        or FeatureType.POI in types
        or types & PLACE_LIKE_TYPES
    ):
        return CandidateValidation(False, reason="unsupported_type")

    postcode_ok = _postcode_matches(candidate, query.required_postcode)
    street_ok = _street_matches(candidate, query.required_street)

    if postcode_ok:
        if not street_ok:
            return CandidateValidation(False, reason="street_mismatch")
    else:
        city_ok = _city_matches(candidate, query.required_city)
        if not (street_ok and city_ok) and FeatureType.POSTCODE not in types:
            return CandidateValidation(False, reason="street_or_city_mismatch")

    if candidate.coordinate is None:
        return CandidateValidation(False, reason="missing_coordinate")

    return CandidateValidation(True, coordinate=candidate.coordinate)


def _postcode_matches(candidate: Candidate, required: str | None) -> bool:
    # No required postcode means nothing matched: street and city must agree.
    target = normalize(required)
    if not target:
        return False
    return normalize(candidate.context.get(ContextKind.POSTCODE)) == target


def _street_matches(candidate: Candidate, required: str | None) -> bool:
    if not required:
        return True
    target = normalize_street(required)
    signals = [candidate.context.get(kind) for kind in _STREET_CONTEXTS]
    signals.extend([candidate.place_name, candidate.text])
    for signal in signals:
        key = normalize_street(signal)
        if key and target in key:
            return True
    return False


def _city_matches(candidate: Candidate, required: str | None) -> bool:
    if not required:
        return True
    target = normalize(required)
    return any(
        normalize(candidate.context.get(kind)) == target for kind in _CITY_CONTEXTS
    )
