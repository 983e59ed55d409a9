from __future__ import annotations

from fastapi import APIRouter, Depends, Response, status
from fastapi.responses import PlainTextResponse

from share_gateway.api.deps import get_immich_client
from share_gateway.core.logging import get_logger
from share_gateway.services.immich_client import ImmichClient

logger = get_logger(__name__)

router = APIRouter(tags=["meta"])


@router.get("/healthcheck")
@router.get("/share/healthcheck")
async def healthcheck(client: ImmichClient = Depends(get_immich_client)) -> Response:
    """
    Liveness probe.
    Returns 200 "ok" while the backend answers its ping, otherwise an empty 503.
    """
    if await client.accessible():
        return PlainTextResponse("ok")
    logger.warning("Backend not reachable")
    return Response(status_code=status.HTTP_503_SERVICE_UNAVAILABLE)
