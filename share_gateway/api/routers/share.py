"""Public share gateway endpoints: unlock, asset streaming, listing and share view."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Request, Response, status
from fastapi.responses import HTMLResponse, JSONResponse
from pydantic import ValidationError as PayloadError

from share_gateway.api.deps import (
    get_cipher,
    get_immich_client,
    get_session_store,
    get_share_password,
)
from share_gateway.api.responses import add_response_headers, invalid_response
from share_gateway.core.config import get_settings
from share_gateway.core.exceptions import GatewayError, ResolutionError, ValidationError
from share_gateway.core.logging import get_logger
from share_gateway.core.security import SessionCipher
from share_gateway.schemas.session import UnlockRequest
from share_gateway.schemas.share import (
    GalleryError,
    GalleryPage,
    MediaRoute,
    PasswordRequired,
    ShareLookup,
    ShareView,
)
from share_gateway.services import asset_service, gallery_service, media_service
from share_gateway.services.credential_service import issue_credential
from share_gateway.services.immich_client import ImmichClient, is_key
from share_gateway.utils.url import get_base_url

logger = get_logger(__name__)

router = APIRouter(tags=["share"])
fallback_router = APIRouter(include_in_schema=False)

HOME_PAGE = """<!doctype html>
<html lang="en">
  <head>
    <meta charset="utf-8" />
    <meta name="viewport" content="width=device-width, initial-scale=1" />
    <title>Shared photos</title>
  </head>
  <body>
    <main>
      <h1>Shared photos</h1>
      <p>Open the share link you were given to view its photos and videos.</p>
    </main>
  </body>
</html>
"""


async def _read_unlock_request(request: Request) -> UnlockRequest:
    try:
        body = await request.json()
    except ValueError:
        return UnlockRequest()
    try:
        return UnlockRequest.model_validate(body)
    except PayloadError:
        return UnlockRequest()


@router.post("/share/unlock")
async def unlock_share(
    request: Request,
    cipher: SessionCipher = Depends(get_cipher),
) -> Response:
    """
    Remember a share password in the caller's session for a limited time.

    The password is not checked here; a wrong one simply fails to resolve
    the share later. Always answers an empty 200.
    """
    settings = get_settings()
    store = get_session_store(request)
    payload = await _read_unlock_request(request)

    if store is not None and payload.key:
        issue_credential(
            store,
            payload.key,
            payload.password,
            cipher,
            ttl_minutes=settings.credential_ttl_minutes,
        )
        logger.info("Share unlocked", extra={"share_key": payload.key})

    return Response(status_code=status.HTTP_200_OK)


MEDIA_METHODS = ["GET", "HEAD"]


async def _stream_media(
    route: MediaRoute,
    key: str,
    asset_id: str,
    size: str | None,
    request: Request,
    password: str | None,
    client: ImmichClient,
) -> Response:
    settings = get_settings()
    resolved = await asset_service.resolve_asset(
        client, route, key, asset_id, size=size, password=password
    )
    return await media_service.stream_asset(
        client,
        resolved.view,
        resolved.size,
        range_header=request.headers.get("range"),
        download_original=settings.download_original_photo,
        extra_headers=settings.response_headers,
    )


@router.api_route("/share/photo/{key}/{asset_id}", methods=MEDIA_METHODS)
@router.api_route("/share/photo/{key}/{asset_id}/{size}", methods=MEDIA_METHODS)
async def stream_photo(
    key: str,
    asset_id: str,
    request: Request,
    size: str | None = None,
    password: str | None = Depends(get_share_password),
    client: ImmichClient = Depends(get_immich_client),
) -> Response:
    """Stream a share asset as an image in the requested size variant."""
    return await _stream_media(MediaRoute.PHOTO, key, asset_id, size, request, password, client)


@router.api_route("/share/video/{key}/{asset_id}", methods=MEDIA_METHODS)
@router.api_route("/share/video/{key}/{asset_id}/{size}", methods=MEDIA_METHODS)
async def stream_video(
    key: str,
    asset_id: str,
    request: Request,
    size: str | None = None,
    password: str | None = Depends(get_share_password),
    client: ImmichClient = Depends(get_immich_client),
) -> Response:
    """Stream a share asset as video, honouring Range requests for seeking."""
    return await _stream_media(MediaRoute.VIDEO, key, asset_id, size, request, password, client)


@router.get(
    "/share/{key}/api",
    response_model=GalleryPage,
    responses={404: {"model": GalleryError}},
)
async def list_share_media(
    key: str,
    request: Request,
    page: str | None = Query(default=None),
    page_size: str | None = Query(default=None, alias="pageSize"),
    client: ImmichClient = Depends(get_immich_client),
) -> GalleryPage | JSONResponse:
    """
    Paginated JSON listing of a share's media.

    Resolved without a password: only derived URLs are exposed, the bytes
    behind them stay behind the password gate.
    """
    settings = get_settings()
    page_number = gallery_service.parse_positive_int(page, 1)
    page_length = gallery_service.parse_positive_int(page_size, settings.listing_default_page_size)
    base_url = settings.public_base_url or get_base_url(request)

    try:
        if not is_key(key):
            raise ValidationError("Invalid share key")
        return await gallery_service.list_share_media(
            client, key, base_url, page=page_number, page_size=page_length
        )
    except GatewayError as exc:
        logger.info(
            "Failed to serve JSON gallery",
            extra={"share_key": key, "error_message": str(exc)},
        )
        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND,
            content={"error": gallery_service.INVALID_SHARE_MESSAGE},
        )


async def _lookup_share(client: ImmichClient, key: str, password: str | None) -> ShareLookup:
    if not is_key(key):
        raise ValidationError("Invalid share key")
    return await client.resolve_share(key, password)


def _password_prompt(key: str) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_401_UNAUTHORIZED,
        content=PasswordRequired(key=key).model_dump(by_alias=True),
    )


@router.get("/share/{key}/download")
async def download_share(
    key: str,
    password: str | None = Depends(get_share_password),
    client: ImmichClient = Depends(get_immich_client),
) -> Response:
    """Download every original in the share as a single zip archive."""
    settings = get_settings()
    lookup = await _lookup_share(client, key, password)
    if lookup.password_required:
        return _password_prompt(key)
    if not lookup.assets:
        raise ResolutionError("Share not found or empty")
    if not settings.allow_download_all or not lookup.link or not lookup.link.allow_download:
        raise ResolutionError("Downloads are disabled for this share")
    return await media_service.download_all(client, lookup, settings.response_headers)


@router.get(
    "/share/{key}",
    response_model=ShareView,
    response_model_exclude_none=True,
    responses={401: {"model": PasswordRequired}},
)
async def view_share(
    key: str,
    password: str | None = Depends(get_share_password),
    client: ImmichClient = Depends(get_immich_client),
) -> ShareView | JSONResponse:
    """
    Describe a share for the page layer.

    Returns 401 with ``passwordRequired`` when the share is locked and the
    caller holds no valid credential for it.
    """
    lookup = await _lookup_share(client, key, password)
    if lookup.password_required:
        return _password_prompt(key)
    if not lookup.assets:
        raise ResolutionError("Share not found or empty")
    return gallery_service.build_share_view(lookup, base_url="")


def _home_page() -> Response:
    return add_response_headers(HTMLResponse(HOME_PAGE))


def register_home_page(target: APIRouter) -> None:
    for path in ("/", "/share", "/share/"):
        target.add_api_route(path, _home_page, methods=["GET"], include_in_schema=False)


@fallback_router.api_route(
    "/{path:path}",
    methods=["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE"],
)
async def fallback(path: str) -> Response:
    logger.info("Invalid route", extra={"path": f"/{path}"})
    return invalid_response()
