from __future__ import annotations

import asyncio
from typing import Iterable, Protocol, Sequence

from pinpoint.core.config import get_settings
from pinpoint.core.logging import get_logger
from pinpoint.domain.country import infer_country_code
from pinpoint.domain.geocoding import (
    AddressQuery,
    Candidate,
    Coordinate,
    FeatureType,
    select_primary_types,
)
from pinpoint.domain.validation import validate_candidate
from pinpoint.services.mapbox import MapboxPlacesClient


_logger = get_logger(__name__)
_resolver_lock = asyncio.Lock()
_resolver: "AddressResolver | None" = None


class CandidateFetcher(Protocol):
    async def fetch(
        self,
        query: str,
        *,
        types: Iterable[FeatureType] | None = None,
        limit: int = 5,
        country: str | None = None,
    ) -> list[Candidate]: ...


class AddressResolver:
    """Resolve an address query to one verified coordinate, or nothing."""

    def __init__(
        self,
        fetcher: CandidateFetcher | None,
        *,
        require_postcode: bool = True,
        result_limit: int = 5,
        max_concurrency: int = 4,
    ) -> None:
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        self._fetcher = fetcher
        self._require_postcode = require_postcode
        self._result_limit = result_limit
        # Caps provider requests in flight across every resolution on this resolver.
        self._fetch_slots = asyncio.Semaphore(max_concurrency)

    async def resolve(self, query: AddressQuery) -> Coordinate | None:
        fetcher = self._fetcher
        if fetcher is None:
            _logger.info("Address resolution skipped", reason="missing_credential")
            return None
        if self._require_postcode and not query.required_postcode:
            _logger.info("Address resolution skipped", reason="missing_postcode")
            return None

        country = infer_country_code(query.country_code_hint, query.required_postcode)

        primary = await self._fetch(
            fetcher,
            query.free_text,
            types=select_primary_types(query),
            country=country,
        )
        coordinate = self._first_accepted(primary, query, stage="primary")
        if coordinate is not None:
            return coordinate

        fallback = await self._fetch(
            fetcher, query.free_text, types=None, country=country
        )
        coordinate = self._first_accepted(fallback, query, stage="fallback")
        if coordinate is not None:
            return coordinate

        _logger.info("Address not found", query=query.free_text)
        return None

    async def aclose(self) -> None:
        close = getattr(self._fetcher, "aclose", None)
        if close is not None:
            await close()

    async def resolve_many(
        self, queries: Sequence[AddressQuery]
    ) -> list[Coordinate | None]:
        """Resolve independent queries concurrently, keeping input order.

        Each resolution still runs its two passes in sequence; provider calls
        share the resolver-wide concurrency cap.
        """
        return list(await asyncio.gather(*(self.resolve(query) for query in queries)))

    async def _fetch(
        self,
        fetcher: CandidateFetcher,
        text: str,
        *,
        types: Sequence[FeatureType] | None,
        country: str | None,
    ) -> list[Candidate]:
        async with self._fetch_slots:
            return await fetcher.fetch(
                text, types=types, limit=self._result_limit, country=country
            )

    def _first_accepted(
        self,
        candidates: Sequence[Candidate],
        query: AddressQuery,
        *,
        stage: str,
    ) -> Coordinate | None:
        for index, candidate in enumerate(candidates):
            validation = validate_candidate(candidate, query)
            if validation.is_valid:
                _logger.info(
                    "Address resolved",
                    query=query.free_text,
                    stage=stage,
                    rank=index,
                    longitude=validation.coordinate.longitude,
                    latitude=validation.coordinate.latitude,
                )
                return validation.coordinate
            _logger.debug(
                "Candidate rejected",
                stage=stage,
                rank=index,
                reason=validation.reason,
                place_name=candidate.place_name,
            )
        return None


async def get_address_resolver() -> AddressResolver:
    global _resolver
    async with _resolver_lock:
        if _resolver is None:
            _resolver = _create_resolver()
        return _resolver


async def resolve_address(query: AddressQuery) -> Coordinate | None:
    """Resolve the query with the resolver built from application settings."""

    resolver = await get_address_resolver()
    return await resolver.resolve(query)


def _create_resolver() -> AddressResolver:
    settings = get_settings()
    fetcher: CandidateFetcher | None = None
    if settings.mapbox_access_token:
        fetcher = MapboxPlacesClient(
            settings.mapbox_access_token,
            endpoint=settings.geocoder_endpoint,
            timeout=settings.geocoder_timeout,
        )
    return AddressResolver(
        fetcher,
        require_postcode=settings.geocoder_require_postcode,
        result_limit=settings.geocoder_result_limit,
        max_concurrency=settings.geocoder_max_concurrency,
    )


async def close_address_resolver() -> None:
    """Release the provider client held by the default resolver, if any."""

    global _resolver
    async with _resolver_lock:
        resolver, _resolver = _resolver, None
    if resolver is not None:
        await resolver.aclose()
