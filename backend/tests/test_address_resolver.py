from __future__ import annotations

import asyncio

import pytest

from pinpoint.domain.geocoding import (
    AddressQuery,
    Candidate,
    ContextKind,
    Coordinate,
    FeatureType,
    HOUSE_NUMBER_TYPES,
)
from pinpoint.services.geocoding import AddressResolver


_DOWNING_STREET = Coordinate(longitude=-0.127647, latitude=51.503364)


class _StubFetcher:
    def __init__(self, primary: list[Candidate], fallback: list[Candidate] | None = None):
        self._responses = [primary, fallback or []]
        self.calls: list[dict[str, object]] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def fetch(self, query, *, types=None, limit=5, country=None):
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        self.calls.append(
            {"query": query, "types": types, "limit": limit, "country": country}
        )
        await asyncio.sleep(0)
        self.in_flight -= 1
        index = min(len(self.calls) - 1, len(self._responses) - 1)
        return list(self._responses[index])


def _downing_street_query(**overrides) -> AddressQuery:
    fields = {
        "free_text": "10 Downing Street, London, SW1A 2AA",
        "required_postcode": "SW1A 2AA",
        "required_street": "Downing Street",
        "has_house_number": True,
    }
    fields.update(overrides)
    return AddressQuery(**fields)


def _downing_street_candidate(**overrides) -> Candidate:
    fields = {
        "coordinate": _DOWNING_STREET,
        "types": frozenset({FeatureType.ADDRESS}),
        "context": {
            ContextKind.POSTCODE: "SW1A 2AA",
            ContextKind.STREET: "Downing Street",
            ContextKind.PLACE: "London",
        },
        "text": "Downing Street",
    }
    fields.update(overrides)
    return Candidate(**fields)


_CITY_CENTROID = Candidate(
    coordinate=Coordinate(longitude=-0.1276, latitude=51.5072),
    types=frozenset({FeatureType.PLACE}),
    context={ContextKind.COUNTRY: "United Kingdom"},
    text="London",
)


@pytest.mark.asyncio
async def test_primary_match_returns_without_fallback():
    fetcher = _StubFetcher([_downing_street_candidate()])
    resolver = AddressResolver(fetcher)

    result = await resolver.resolve(_downing_street_query())

    assert result == _DOWNING_STREET
    assert len(fetcher.calls) == 1
    call = fetcher.calls[0]
    assert call["query"] == "10 Downing Street, London, SW1A 2AA"
    assert call["types"] == HOUSE_NUMBER_TYPES
    assert call["limit"] == 5
    assert call["country"] == "GB"


@pytest.mark.asyncio
async def test_first_accepted_candidate_wins_in_provider_order():
    second = _downing_street_candidate(
        coordinate=Coordinate(longitude=-0.1, latitude=51.5)
    )
    fetcher = _StubFetcher([_CITY_CENTROID, _downing_street_candidate(), second])
    resolver = AddressResolver(fetcher)

    assert await resolver.resolve(_downing_street_query()) == _DOWNING_STREET


@pytest.mark.asyncio
async def test_fallback_runs_unfiltered_after_primary_rejects():
    fetcher = _StubFetcher([_CITY_CENTROID], [_downing_street_candidate()])
    resolver = AddressResolver(fetcher)

    result = await resolver.resolve(_downing_street_query(country_code_hint="GB"))

    assert result == _DOWNING_STREET
    assert [call["types"] for call in fetcher.calls] == [HOUSE_NUMBER_TYPES, None]
    assert fetcher.max_in_flight == 1


@pytest.mark.asyncio
async def test_exhausted_passes_return_not_found():
    fetcher = _StubFetcher([_CITY_CENTROID], [_CITY_CENTROID])
    resolver = AddressResolver(fetcher)

    assert await resolver.resolve(_downing_street_query()) is None
    assert len(fetcher.calls) == 2


@pytest.mark.asyncio
async def test_missing_credential_makes_no_calls():
    resolver = AddressResolver(None)

    assert await resolver.resolve(_downing_street_query()) is None


@pytest.mark.asyncio
async def test_missing_postcode_short_circuits_in_strict_mode():
    fetcher = _StubFetcher([_downing_street_candidate()])
    resolver = AddressResolver(fetcher, require_postcode=True)

    result = await resolver.resolve(_downing_street_query(required_postcode=None))

    assert result is None
    assert fetcher.calls == []


@pytest.mark.asyncio
async def test_relaxed_mode_requires_street_and_city_without_postcode():
    fetcher = _StubFetcher([_downing_street_candidate()])
    resolver = AddressResolver(fetcher, require_postcode=False)

    query = _downing_street_query(required_postcode=None, required_city="London")
    result = await resolver.resolve(query)

    assert result == _DOWNING_STREET
    assert fetcher.calls[0]["country"] is None


@pytest.mark.asyncio
async def test_resolve_is_repeatable():
    fetcher = _StubFetcher([_CITY_CENTROID], [_downing_street_candidate()])
    resolver = AddressResolver(fetcher)
    query = _downing_street_query()

    first = await resolver.resolve(query)
    fetcher.calls.clear()
    second = await resolver.resolve(query)

    assert first == second == _DOWNING_STREET


@pytest.mark.asyncio
async def test_resolve_many_preserves_order():
    class _ByQueryFetcher:
        async def fetch(self, query, *, types=None, limit=5, country=None):
            if query.startswith("10 Downing"):
                return [_downing_street_candidate()]
            return []

    resolver = AddressResolver(_ByQueryFetcher())
    queries = [
        AddressQuery("Nowhere Lane, ZZ1 1ZZ", required_postcode="ZZ1 1ZZ"),
        _downing_street_query(),
    ]

    assert await resolver.resolve_many(queries) == [None, _DOWNING_STREET]


@pytest.mark.asyncio
async def test_default_resolver_without_token_never_fetches(monkeypatch):
    from pinpoint.core.config import Settings
    from pinpoint.services import geocoding

    settings = Settings(PINPOINT_MAPBOX_ACCESS_TOKEN="   ")
    monkeypatch.setattr(geocoding, "get_settings", lambda: settings)
    monkeypatch.setattr(geocoding, "_resolver", None)

    def _fail(*_args, **_kwargs):
        raise AssertionError("provider client must not be created")

    monkeypatch.setattr(geocoding, "MapboxPlacesClient", _fail)

    assert settings.mapbox_access_token is None
    assert await geocoding.resolve_address(_downing_street_query()) is None

    await geocoding.close_address_resolver()
    assert geocoding._resolver is None


@pytest.mark.asyncio
async def test_resolve_many_caps_provider_requests_in_flight():
    fetcher = _StubFetcher([_CITY_CENTROID], [_CITY_CENTROID])
    resolver = AddressResolver(fetcher, max_concurrency=3)

    results = await resolver.resolve_many([_downing_street_query()] * 12)

    assert results == [None] * 12
    assert len(fetcher.calls) == 24
    assert fetcher.max_in_flight == 3


@pytest.mark.asyncio
async def test_single_slot_serialises_provider_requests():
    fetcher = _StubFetcher([_downing_street_candidate()], [_downing_street_candidate()])
    resolver = AddressResolver(fetcher, max_concurrency=1)

    results = await resolver.resolve_many([_downing_street_query()] * 5)

    assert results == [_DOWNING_STREET] * 5
    assert fetcher.max_in_flight == 1


def test_resolver_rejects_non_positive_concurrency():
    with pytest.raises(ValueError):
        AddressResolver(None, max_concurrency=0)


@pytest.mark.asyncio
async def test_cancelled_resolution_stops_before_fallback():
    class _BlockingFetcher:
        def __init__(self) -> None:
            self.calls: list[object] = []
            self.started = asyncio.Event()
            self.release = asyncio.Event()

        async def fetch(self, query, *, types=None, limit=5, country=None):
            self.calls.append(types)
            self.started.set()
            await self.release.wait()
            return []

    fetcher = _BlockingFetcher()
    resolver = AddressResolver(fetcher)

    task = asyncio.create_task(resolver.resolve(_downing_street_query()))
    await fetcher.started.wait()
    task.cancel()

    with pytest.raises(asyncio.CancelledError):
        await task
    assert len(fetcher.calls) == 1
