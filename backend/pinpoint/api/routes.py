from __future__ import annotations

from fastapi import APIRouter

from pinpoint.api.v1 import addresses

router = APIRouter()
router.include_router(addresses.router, prefix="/v1/addresses", tags=["addresses"])
