"""Prometheus metrics endpoint."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.responses import PlainTextResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from share_gateway.api.deps import get_immich_client
from share_gateway.core.config import get_settings
from share_gateway.core.metrics import init_app_info
from share_gateway.services.immich_client import ImmichClient

router = APIRouter(tags=["metrics"])


@router.get("/metrics", response_class=PlainTextResponse)
async def metrics(client: ImmichClient = Depends(get_immich_client)) -> PlainTextResponse:
    """
    Prometheus metrics endpoint.

    Refreshes the backend probe gauge before exporting.
    """
    settings = get_settings()
    init_app_info(settings.api_version)

    await client.accessible()

    return PlainTextResponse(
        content=generate_latest().decode("utf-8"),
        media_type=CONTENT_TYPE_LATEST,
    )
