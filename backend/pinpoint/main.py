from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from pinpoint.api.routes import router
from pinpoint.core.config import get_settings
from pinpoint.core.logging import configure_logging, get_logger
from pinpoint.services.geocoding import close_address_resolver


settings = get_settings()
configure_logging(settings.debug)
_logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    _logger.info(
        "Resolver service starting",
        geocoding_enabled=settings.mapbox_access_token is not None,
        require_postcode=settings.geocoder_require_postcode,
    )
    yield
    await close_address_resolver()


app = FastAPI(
    title="Pinpoint API",
    version="0.1.0",
    debug=settings.debug,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
)

app.include_router(router)


@app.get("/health", tags=["system"])
async def health_check() -> dict[str, str]:
    """Return basic service health."""

    return {"status": "ok"}
