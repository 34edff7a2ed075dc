from __future__ import annotations

import json
from typing import Any, Iterable
from urllib.parse import quote

import httpx

from pinpoint.core.logging import get_logger
from pinpoint.domain.geocoding import Candidate, FeatureType


_logger = get_logger(__name__)
_DEFAULT_ENDPOINT = "https://api.mapbox.com/geocoding/v5/mapbox.places"


class GeocodeConfigurationError(RuntimeError):
    """Raised when the place-search client cannot be configured with provided settings."""


class MapboxPlacesClient:
    """Thin wrapper over the Mapbox forward geocoding endpoint."""

    def __init__(
        self,
        access_token: str,
        *,
        endpoint: str = _DEFAULT_ENDPOINT,
        timeout: float = 8.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        if not access_token or not access_token.strip():
            raise GeocodeConfigurationError("Mapbox access token is required")
        if timeout <= 0:
            raise GeocodeConfigurationError("Geocoder timeout must be positive")

        self._access_token = access_token.strip()
        self._endpoint = endpoint.rstrip("/")
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._timeout = timeout

    async def __aenter__(self) -> "MapboxPlacesClient":
        return self

    async def __aexit__(self, *_exc: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def fetch(
        self,
        query: str,
        *,
        types: Iterable[FeatureType] | None = None,
        limit: int = 5,
        country: str | None = None,
    ) -> list[Candidate]:
        params: dict[str, str] = {
            "access_token": self._access_token,
            "limit": str(limit),
            "autocomplete": "false",
        }
        type_filter = _format_types(types)
        if type_filter:
            params["types"] = type_filter
        if country:
            params["country"] = country

        url = f"{self._endpoint}/{quote(query, safe='')}.json"
        _logger.info(
            "Place search request", query=query, types=type_filter, country=country
        )

        try:
            response = await self._client.get(url, params=params, timeout=self._timeout)
        except httpx.HTTPError as exc:
            _logger.warning(
                "Place search request failed", query=query, error=type(exc).__name__
            )
            return []

        if not response.is_success:
            _logger.warning(
                "Place search rejected", query=query, status=response.status_code
            )
            return []

        features = _parse_features(response)
        _logger.info("Place search completed", query=query, candidates=len(features))
        return [Candidate.from_feature(feature) for feature in features]


def _format_types(types: Iterable[FeatureType] | None) -> str | None:
    if types is None:
        return None
    values = dict.fromkeys(FeatureType(value).value for value in types)
    return ",".join(values) or None


def _parse_features(response: httpx.Response) -> list[dict[str, Any]]:
    try:
        payload = response.json()
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        _logger.warning("Place search parse error", error=str(exc))
        return []

    if not isinstance(payload, dict):
        return []

    features = payload.get("features")
    if not isinstance(features, list):
        return []
    return [feature for feature in features if isinstance(feature, dict)]
