"""Tests for share resolution against the backend and asset request planning."""

from __future__ import annotations

import asyncio
from datetime import timedelta

import httpx
import pytest

from share_gateway.core.exceptions import ResolutionError, ValidationError
from share_gateway.core.security import utcnow
from share_gateway.schemas.share import Asset, AssetType, AssetView, ImageSize, MediaRoute
from share_gateway.services.asset_service import parse_size, resolve_asset
from share_gateway.services.immich_client import ImmichClient, build_params, is_id, is_key
from share_gateway.services.media_service import archive_name, backend_target, unique_entry_name
from tests.immich_fake import (
    IMMICH_URL,
    LOCKED_KEY,
    PASSWORD,
    SHARE_KEY,
    FakeImmich,
    make_asset,
    make_id,
)


def run_with_client(fake: FakeImmich, action):
    async def runner():
        async with httpx.AsyncClient(transport=httpx.MockTransport(fake.handler)) as http:
            return await action(ImmichClient(http, f"{IMMICH_URL}/api"))

    return asyncio.run(runner())


class TestSyntax:
    @pytest.mark.parametrize("value", ["abc", "A-b_9", "x" * 80])
    def test_valid_keys(self, value: str) -> None:
        assert is_key(value) is True

    @pytest.mark.parametrize("value", ["", None, "a b", "a.b", "a/b", "ключ", "abc\n"])
    def test_invalid_keys(self, value: str | None) -> None:
        assert is_key(value) is False

    def test_valid_id(self) -> None:
        assert is_id("3fa85f64-5717-4562-b3fc-2c963f66afa6") is True

    @pytest.mark.parametrize(
        "value",
        [
            "",
            None,
            "3FA85F64-5717-4562-B3FC-2C963F66AFA6",
            "3fa85f64571745 62b3fc2c963f66afa6",
            "3fa85f64-5717-4562-b3fc-2c963f66afa6x",
            "zfa85f64-5717-4562-b3fc-2c963f66afa6",
        ],
    )
    def test_invalid_ids(self, value: str | None) -> None:
        assert is_id(value) is False

    def test_build_params_drops_empty_values(self) -> None:
        assert build_params(key="abc", password="", size=None) == {"key": "abc"}


class TestResolveShare:
    def test_open_share(self, fake_immich: FakeImmich) -> None:
        lookup = run_with_client(fake_immich, lambda client: client.resolve_share(SHARE_KEY))

        assert lookup.valid
        assert not lookup.password_required
        assert lookup.password is None
        assert [asset.id for asset in lookup.assets] == [make_id(1), make_id(2), make_id(3)]

    def test_locked_share_without_password(self, fake_immich: FakeImmich) -> None:
        lookup = run_with_client(fake_immich, lambda client: client.resolve_share(LOCKED_KEY))

        assert not lookup.valid
        assert lookup.password_required
        assert lookup.assets == []

    def test_locked_share_with_password(self, fake_immich: FakeImmich) -> None:
        lookup = run_with_client(
            fake_immich, lambda client: client.resolve_share(LOCKED_KEY, PASSWORD)
        )

        assert lookup.valid
        assert lookup.password == PASSWORD
        assert fake_immich.requests[-1].url.params["password"] == PASSWORD

    def test_unknown_share(self, fake_immich: FakeImmich) -> None:
        lookup = run_with_client(fake_immich, lambda client: client.resolve_share("nope"))

        assert not lookup.valid
        assert not lookup.password_required

    def test_expired_share(self, fake_immich: FakeImmich) -> None:
        fake_immich.add_share(
            "expired", [make_asset(5)], expiresAt=(utcnow() - timedelta(seconds=1)).isoformat()
        )

        lookup = run_with_client(fake_immich, lambda client: client.resolve_share("expired"))

        assert not lookup.valid

    def test_naive_expiry_is_treated_as_utc(self, fake_immich: FakeImmich) -> None:
        future = (utcnow() + timedelta(hours=1)).replace(tzinfo=None).isoformat()
        fake_immich.add_share("naive", [make_asset(5)], expiresAt=future)

        lookup = run_with_client(fake_immich, lambda client: client.resolve_share("naive"))

        assert lookup.valid

    def test_album_share(self, fake_immich: FakeImmich) -> None:
        fake_immich.add_album_share("album", "album-9", [make_asset(30), make_asset(31, "VIDEO")])

        lookup = run_with_client(fake_immich, lambda client: client.resolve_share("album"))

        assert lookup.valid
        assert [asset.type for asset in lookup.assets] == ["IMAGE", "VIDEO"]
        assert fake_immich.requests[-1].url.path == "/api/albums/album-9"

    def test_unreadable_body(self, fake_immich: FakeImmich) -> None:
        fake_immich.links["broken"] = {"assets": "not a list"}

        lookup = run_with_client(fake_immich, lambda client: client.resolve_share("broken"))

        assert not lookup.valid

    def test_backend_unreachable(self) -> None:
        def refuse(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        async def runner():
            async with httpx.AsyncClient(transport=httpx.MockTransport(refuse)) as http:
                client = ImmichClient(http, f"{IMMICH_URL}/api")
                return await client.resolve_share(SHARE_KEY), await client.accessible()

        lookup, up = asyncio.run(runner())

        assert not lookup.valid
        assert up is False


class TestResolveAsset:
    def test_route_sets_media_type(self, fake_immich: FakeImmich) -> None:
        resolved = run_with_client(
            fake_immich,
            lambda client: resolve_asset(client, MediaRoute.VIDEO, SHARE_KEY, make_id(1), "preview"),
        )

        assert resolved.view.type is AssetType.VIDEO
        assert resolved.view.asset.type == "IMAGE"
        assert resolved.size is ImageSize.PREVIEW

    def test_validation_happens_before_resolution(self, fake_immich: FakeImmich) -> None:
        with pytest.raises(ValidationError):
            run_with_client(
                fake_immich,
                lambda client: resolve_asset(client, MediaRoute.PHOTO, "no-such-share", make_id(1), "big"),
            )
        assert fake_immich.requests == []

    def test_asset_not_in_share(self, fake_immich: FakeImmich) -> None:
        with pytest.raises(ResolutionError):
            run_with_client(
                fake_immich,
                lambda client: resolve_asset(client, MediaRoute.PHOTO, SHARE_KEY, make_id(9)),
            )

    @pytest.mark.parametrize(
        ("value", "expected"),
        [(None, ImageSize.ORIGINAL), ("", ImageSize.ORIGINAL), ("thumbnail", ImageSize.THUMBNAIL)],
    )
    def test_parse_size(self, value: str | None, expected: ImageSize) -> None:
        assert parse_size(value) is expected

    @pytest.mark.parametrize("value", ["THUMBNAIL", "fullsize", "0"])
    def test_parse_size_rejects_unknown(self, value: str) -> None:
        with pytest.raises(ValidationError):
            parse_size(value)


class TestBackendTarget:
    def view(self, media_type: AssetType, password: str | None = None) -> AssetView:
        return AssetView(
            asset=Asset(id=make_id(1), type="IMAGE"),
            media_type=media_type,
            key=SHARE_KEY,
            password=password,
        )

    @pytest.mark.parametrize(
        ("media_type", "size", "download_original", "subpath", "size_param"),
        [
            (AssetType.IMAGE, ImageSize.THUMBNAIL, True, "/thumbnail", "thumbnail"),
            (AssetType.IMAGE, ImageSize.PREVIEW, True, "/thumbnail", "preview"),
            (AssetType.IMAGE, ImageSize.ORIGINAL, True, "/original", None),
            (AssetType.IMAGE, ImageSize.ORIGINAL, False, "/thumbnail", "preview"),
            (AssetType.VIDEO, ImageSize.THUMBNAIL, True, "/video/playback", None),
        ],
    )
    def test_targets(
        self,
        media_type: AssetType,
        size: ImageSize,
        download_original: bool,
        subpath: str,
        size_param: str | None,
    ) -> None:
        client = ImmichClient(http=None, api_url=f"{IMMICH_URL}/api/")

        url, params = backend_target(client, self.view(media_type), size, download_original)

        assert url == f"{IMMICH_URL}/api/assets/{make_id(1)}{subpath}"
        assert params.get("size") == size_param
        assert params["key"] == SHARE_KEY
        assert "password" not in params

    def test_password_attached(self) -> None:
        client = ImmichClient(http=None, api_url=f"{IMMICH_URL}/api")

        _, params = backend_target(client, self.view(AssetType.IMAGE, PASSWORD), ImageSize.ORIGINAL)

        assert params["password"] == PASSWORD


class TestArchiveNames:
    def test_archive_name(self) -> None:
        assert archive_name("Summer 2025 (best)") == "Summer 2025 (best).zip"
        assert archive_name("a/b:c") == "abc.zip"
        assert archive_name("***") == "share.zip"

    def test_unique_entry_name(self) -> None:
        used: set[str] = set()

        names = [unique_entry_name(name, used) for name in ["a.jpg", "a.jpg", "b", "a.jpg", "b"]]

        assert names == ["a.jpg", "a (1).jpg", "b", "a (2).jpg", "b (1)"]
