from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status

from pinpoint.domain.geocoding import AddressQuery, EmptyAddressQueryError
from pinpoint.schemas.resolution import (
    AddressResolutionRequest,
    AddressResolutionResponse,
    BatchResolutionRequest,
    BatchResolutionResponse,
)
from pinpoint.services.geocoding import AddressResolver, get_address_resolver


router = APIRouter()


async def get_resolver() -> AddressResolver:
    return await get_address_resolver()


@router.post(
    "/resolve",
    response_model=AddressResolutionResponse,
    status_code=status.HTTP_200_OK,
)
async def resolve_address(
    payload: AddressResolutionRequest,
    resolver: AddressResolver = Depends(get_resolver),
) -> AddressResolutionResponse:
    query = _to_query(payload)
    coordinate = await resolver.resolve(query)
    return AddressResolutionResponse.from_coordinate(coordinate)


@router.post(
    "/resolve/batch",
    response_model=BatchResolutionResponse,
    status_code=status.HTTP_200_OK,
)
async def resolve_addresses(
    payload: BatchResolutionRequest,
    resolver: AddressResolver = Depends(get_resolver),
) -> BatchResolutionResponse:
    queries = [_to_query(item, index) for index, item in enumerate(payload.addresses)]
    coordinates = await resolver.resolve_many(queries)
    return BatchResolutionResponse(
        results=[AddressResolutionResponse.from_coordinate(c) for c in coordinates]
    )


def _to_query(
    payload: AddressResolutionRequest, index: int | None = None
) -> AddressQuery:
    try:
        return payload.to_query()
    except EmptyAddressQueryError as exc:
        detail = str(exc) if index is None else f"Address {index}: {exc}"
        raise HTTPException(status.HTTP_422_UNPROCESSABLE_ENTITY, detail) from exc
