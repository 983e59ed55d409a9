"""Resolve a (key, id, route, size) request into a streamable asset view."""

from __future__ import annotations

from dataclasses import dataclass

from share_gateway.core.exceptions import ResolutionError, ValidationError
from share_gateway.schemas.share import AssetView, ImageSize, MediaRoute
from share_gateway.services.immich_client import ImmichClient, is_id, is_key


@dataclass(frozen=True)
class ResolvedAsset:
    view: AssetView
    size: ImageSize


def parse_size(size: str | None) -> ImageSize:
    """Map the optional size segment to a variant; absent means original."""
    if size is None or size == "":
        return ImageSize.ORIGINAL
    try:
        return ImageSize(size)
    except ValueError as exc:
        raise ValidationError(f"Invalid size parameter {size!r}") from exc


async def resolve_asset(
    client: ImmichClient,
    route: MediaRoute,
    key: str,
    asset_id: str,
    size: str | None = None,
    password: str | None = None,
) -> ResolvedAsset:
    """Validate the request and find the asset in the share's current asset list.

    Checks run in order and stop at the first failure: key and id syntax,
    size variant, share resolution, then asset lookup.

    Raises:
        ValidationError: Malformed key, id or size.
        ResolutionError: Share invalid, empty, locked, or asset not in the share.
    """
    if not is_key(key) or not is_id(asset_id):
        raise ValidationError("Invalid key or ID")

    variant = parse_size(size)

    lookup = await client.resolve_share(key, password)
    if not lookup.assets:
        raise ResolutionError("Share not found or empty")

    asset = next((item for item in lookup.assets if item.id == asset_id), None)
    if asset is None:
        raise ResolutionError("Asset not in share")

    view = AssetView(asset=asset, media_type=route.asset_type, key=key, password=lookup.password)
    return ResolvedAsset(view=view, size=variant)
