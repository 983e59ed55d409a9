"""Media streaming adapter: relays asset bytes from the backend to the client."""

from __future__ import annotations

import re
import tempfile
import zipfile
from collections.abc import AsyncIterator
from functools import partial
from pathlib import PurePosixPath
from typing import IO

import anyio
import anyio.to_thread
import httpx
from starlette.responses import StreamingResponse

from share_gateway.core.exceptions import StreamingError
from share_gateway.core.logging import get_logger
from share_gateway.core.metrics import ASSET_STREAMS_TOTAL
from share_gateway.schemas.share import Asset, AssetType, AssetView, ImageSize, ShareLookup
from share_gateway.services.immich_client import ImmichClient, build_params

logger = get_logger(__name__)

CHUNK_SIZE = 256 * 1024
SPOOL_MAX_SIZE = 32 * 1024 * 1024

IMAGE_HEADERS = ("content-type", "content-length", "content-encoding", "last-modified", "etag")
VIDEO_HEADERS = IMAGE_HEADERS + ("cache-control", "content-range", "accept-ranges")


def backend_target(
    client: ImmichClient,
    view: AssetView,
    size: ImageSize,
    download_original: bool = True,
) -> tuple[str, dict[str, str]]:
    """Pick the backend URL and query for an asset view and size variant."""
    size_param: str | None = None
    if view.media_type is AssetType.VIDEO:
        subpath = "/video/playback"
    elif size is ImageSize.ORIGINAL and download_original:
        subpath = "/original"
    elif size in (ImageSize.PREVIEW, ImageSize.ORIGINAL):
        subpath = "/thumbnail"
        size_param = ImageSize.PREVIEW.value
    else:
        subpath = "/thumbnail"
        size_param = ImageSize.THUMBNAIL.value

    params = build_params(key=view.key, size=size_param, password=view.password)
    return client.asset_url(view.id, subpath), params


async def stream_asset(
    client: ImmichClient,
    view: AssetView,
    size: ImageSize,
    range_header: str | None = None,
    download_original: bool = True,
    extra_headers: dict[str, str] | None = None,
) -> StreamingResponse:
    """Open the backend stream for ``view`` and wrap it in a response.

    Status and range headers mirror the backend, so a ranged video request
    comes back as 206. The backend connection is released when the body is
    exhausted or the client goes away.

    Raises:
        StreamingError: The backend could not be reached or refused the asset.
    """
    url, params = backend_target(client, view, size, download_original)
    request_headers = {"range": range_header} if range_header else {}

    try:
        upstream = await client.open_stream(url, params=params, headers=request_headers)
    except httpx.HTTPError as exc:
        raise StreamingError(f"Backend stream failed for asset {view.id}") from exc

    if upstream.status_code >= 400 and upstream.status_code != 416:
        await upstream.aclose()
        raise StreamingError(f"Backend answered {upstream.status_code} for asset {view.id}")

    copied = VIDEO_HEADERS if view.media_type is AssetType.VIDEO else IMAGE_HEADERS
    headers = dict(extra_headers or {})
    for name in copied:
        if name in upstream.headers:
            headers[name] = upstream.headers[name]

    ASSET_STREAMS_TOTAL.labels(media_type=view.media_type.value, size=size.value).inc()
    return StreamingResponse(
        _relay(upstream, view.id),
        status_code=upstream.status_code,
        headers=headers,
    )


async def _relay(upstream: httpx.Response, asset_id: str) -> AsyncIterator[bytes]:
    try:
        async for chunk in upstream.aiter_raw(CHUNK_SIZE):
            yield chunk
    except httpx.HTTPError as exc:
        # Headers are already sent; all that is left is to end the body.
        logger.warning(
            "Backend stream interrupted",
            extra={"asset_id": asset_id, "error": str(exc)},
        )
    finally:
        with anyio.CancelScope(shield=True):
            await upstream.aclose()


_UNSAFE_FILENAME = re.compile(r"[^\w .()-]+")


def archive_name(share_name: str) -> str:
    cleaned = _UNSAFE_FILENAME.sub("", share_name).strip() or "share"
    return f"{cleaned}.zip"


def unique_entry_name(name: str, used: set[str]) -> str:
    candidate = name
    path = PurePosixPath(name)
    counter = 1
    while candidate in used:
        candidate = f"{path.stem} ({counter}){path.suffix}"
        counter += 1
    used.add(candidate)
    return candidate


async def download_all(
    client: ImmichClient,
    lookup: ShareLookup,
    extra_headers: dict[str, str] | None = None,
) -> StreamingResponse:
    """Bundle every asset original of a resolved share into one zip download.

    Zip and spool file I/O run in worker threads; only the backend reads
    happen on the event loop.
    """
    if lookup.link is None or lookup.key is None:
        raise StreamingError("Share not resolved")

    params = build_params(key=lookup.key, password=lookup.password)
    spool = tempfile.SpooledTemporaryFile(max_size=SPOOL_MAX_SIZE)
    used: set[str] = set()
    try:
        archive = zipfile.ZipFile(spool, mode="w", compression=zipfile.ZIP_STORED)
        for asset in lookup.assets:
            await _add_entry(client, archive, asset, params, used)
        await anyio.to_thread.run_sync(archive.close)
        await anyio.to_thread.run_sync(spool.seek, 0)
    except BaseException:
        spool.close()
        raise

    headers = dict(extra_headers or {})
    filename = archive_name(lookup.link.description or lookup.key)
    headers["Content-Disposition"] = f'attachment; filename="{filename}"'
    return StreamingResponse(_iter_spool(spool), media_type="application/zip", headers=headers)


async def _add_entry(
    client: ImmichClient,
    archive: zipfile.ZipFile,
    asset: Asset,
    params: dict[str, str],
    used: set[str],
) -> None:
    name = PurePosixPath(asset.original_file_name or asset.id).name
    try:
        upstream = await client.open_stream(client.asset_url(asset.id, "/original"), params=params)
    except httpx.HTTPError as exc:
        raise StreamingError(f"Backend unreachable for asset {asset.id}") from exc

    try:
        if upstream.status_code != 200:
            logger.warning(
                "Skipping asset missing from backend",
                extra={"asset_id": asset.id, "status_code": upstream.status_code},
            )
            return
        entry_name = unique_entry_name(name, used)
        entry = await anyio.to_thread.run_sync(
            partial(archive.open, entry_name, mode="w", force_zip64=True)
        )
        try:
            async for chunk in upstream.aiter_raw(CHUNK_SIZE):
                await anyio.to_thread.run_sync(entry.write, chunk)
        finally:
            await anyio.to_thread.run_sync(entry.close)
    finally:
        await upstream.aclose()


async def _iter_spool(spool: IO[bytes]) -> AsyncIterator[bytes]:
    try:
        while True:
            chunk = await anyio.to_thread.run_sync(spool.read, CHUNK_SIZE)
            if not chunk:
                break
            yield chunk
    finally:
        spool.close()
