from __future__ import annotations

from dataclasses import replace

from pydantic import BaseModel, Field, field_validator

from pinpoint.domain.geocoding import (
    AddressQuery,
    AddressRecord,
    Coordinate,
    build_address_query,
)


MAX_BATCH_SIZE = 100


class AddressResolutionRequest(BaseModel):
    query: str | None = None
    building: str | None = None
    street: str | None = None
    city: str | None = None
    area: str | None = None
    postcode: str | None = None
    country: str | None = None
    country_code_hint: str | None = Field(default=None, min_length=2, max_length=2)
    has_house_number: bool | None = None
    allow_poi: bool | None = None

    @field_validator(
        "query",
        "building",
        "street",
        "city",
        "area",
        "postcode",
        "country",
        "country_code_hint",
        mode="before",
    )
    def _blank_to_none(cls, value: str | None) -> str | None:
        if value is None:
            return None
        cleaned = str(value).strip()
        return cleaned or None

    def to_record(self) -> AddressRecord:
        return AddressRecord(
            building=self.building,
            street=self.street,
            city=self.city,
            area=self.area,
            postcode=self.postcode,
            country=self.country,
        )

    def to_query(self) -> AddressQuery:
        """Build the engine query; raises EmptyAddressQueryError without text."""
        query = build_address_query(self.to_record(), free_text=self.query)
        overrides: dict[str, object] = {"required_country": self.country}
        if self.country_code_hint:
            overrides["country_code_hint"] = self.country_code_hint.upper()
        if self.has_house_number is not None:
            overrides["has_house_number"] = self.has_house_number
        if self.allow_poi is not None:
            overrides["allow_poi"] = self.allow_poi
        return replace(query, **overrides)


class AddressResolutionResponse(BaseModel):
    found: bool
    longitude: float | None = None
    latitude: float | None = None

    @classmethod
    def from_coordinate(
        cls, coordinate: Coordinate | None
    ) -> "AddressResolutionResponse":
        if coordinate is None:
            return cls(found=False)
        return cls(
            found=True,
            longitude=coordinate.longitude,
            latitude=coordinate.latitude,
        )


class BatchResolutionRequest(BaseModel):
    addresses: list[AddressResolutionRequest] = Field(
        ..., min_length=1, max_length=MAX_BATCH_SIZE
    )


class BatchResolutionResponse(BaseModel):
    results: list[AddressResolutionResponse] = Field(default_factory=list)
