"""Paginated JSON projection of a share for gallery clients."""

from __future__ import annotations

from share_gateway.core.exceptions import ResolutionError
from share_gateway.schemas.share import (
    Asset,
    AssetType,
    GalleryMedia,
    GalleryPage,
    ImageSize,
    ShareLookup,
    ShareView,
    ShareViewAsset,
)
from share_gateway.services.immich_client import ImmichClient

INVALID_SHARE_MESSAGE = "Invalid or expired share key"


def parse_positive_int(value: str | None, default: int) -> int:
    """Lenient query parsing: anything that is not a positive integer falls back to ``default``."""
    if value is None:
        return default
    try:
        parsed = int(value.strip())
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def photo_url(base: str, key: str, asset_id: str, size: ImageSize | None = None) -> str:
    url = f"{base}/share/photo/{key}/{asset_id}"
    return f"{url}/{size.value}" if size else url


def video_url(base: str, key: str, asset_id: str) -> str:
    return f"{base}/share/video/{key}/{asset_id}"


def project_media(base: str, key: str, asset: Asset) -> GalleryMedia:
    return GalleryMedia(
        id=asset.id,
        thumb_url=photo_url(base, key, asset.id, ImageSize.THUMBNAIL),
        preview_url=photo_url(base, key, asset.id, ImageSize.PREVIEW),
        original_url=photo_url(base, key, asset.id, ImageSize.ORIGINAL),
    )


def paginate(assets: list[Asset], page: int, page_size: int) -> list[Asset]:
    start = (page - 1) * page_size
    return assets[start : start + page_size]


async def list_share_media(
    client: ImmichClient,
    key: str,
    base_url: str,
    page: int = 1,
    page_size: int = 20,
) -> GalleryPage:
    """Resolve ``key`` without a password and return one page of derived URLs.

    Raises:
        ResolutionError: The share did not resolve or holds no assets.
    """
    lookup = await client.resolve_share(key, "")
    assets = lookup.assets
    if not assets:
        raise ResolutionError(INVALID_SHARE_MESSAGE)

    base = base_url.rstrip("/")
    media = [project_media(base, key, asset) for asset in paginate(assets, page, page_size)]
    return GalleryPage(media=media, page=page, page_size=page_size, total=len(assets))


def build_share_view(lookup: ShareLookup, base_url: str) -> ShareView:
    """Describe a resolved share for the page layer."""
    if lookup.link is None or lookup.key is None:
        raise ResolutionError("Share not resolved")

    base = base_url.rstrip("/")
    key = lookup.key
    assets = []
    for asset in lookup.assets:
        media = project_media(base, key, asset)
        assets.append(
            ShareViewAsset(
                id=asset.id,
                type=asset.type,
                thumb_url=media.thumb_url,
                preview_url=media.preview_url,
                original_url=media.original_url,
                video_url=(
                    video_url(base, key, asset.id) if asset.type == AssetType.VIDEO.value else None
                ),
            )
        )

    link = lookup.link
    return ShareView(
        key=key,
        type=link.type,
        description=link.description,
        expires_at=link.expires_at,
        allow_download=link.allow_download,
        assets=assets,
    )
