from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class AssetType(str, enum.Enum):
    IMAGE = "IMAGE"
    VIDEO = "VIDEO"


class MediaRoute(str, enum.Enum):
    """Route segment selecting how an asset is streamed."""

    PHOTO = "photo"
    VIDEO = "video"

    @property
    def asset_type(self) -> AssetType:
        return AssetType.VIDEO if self is MediaRoute.VIDEO else AssetType.IMAGE


class ImageSize(str, enum.Enum):
    THUMBNAIL = "thumbnail"
    PREVIEW = "preview"
    ORIGINAL = "original"


class SharedLinkType(str, enum.Enum):
    ALBUM = "ALBUM"
    INDIVIDUAL = "INDIVIDUAL"


class ImmichModel(BaseModel):
    """Backend payloads use camelCase and carry many fields the gateway ignores."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")


class Asset(ImmichModel):
    id: str
    type: str
    original_file_name: str | None = None
    original_mime_type: str | None = None
    file_created_at: datetime | None = None


class Album(ImmichModel):
    id: str
    album_name: str | None = None
    assets: list[Asset] = Field(default_factory=list)


class SharedLink(ImmichModel):
    id: str | None = None
    key: str | None = None
    type: str | None = None
    description: str | None = None
    expires_at: datetime | None = None
    allow_download: bool = True
    assets: list[Asset] = Field(default_factory=list)
    album: Album | None = None


@dataclass(frozen=True)
class ShareLookup:
    """Outcome of resolving a share key against the backend."""

    valid: bool
    password_required: bool = False
    link: SharedLink | None = None
    key: str | None = None
    password: str | None = None

    @property
    def assets(self) -> list[Asset]:
        return self.link.assets if self.valid and self.link else []


@dataclass(frozen=True)
class AssetView:
    """Per-request view of a backend asset with the media type chosen by the route.

    The underlying :class:`Asset` is never modified.
    """

    asset: Asset
    media_type: AssetType
    key: str
    password: str | None = None

    @property
    def id(self) -> str:
        return self.asset.id

    @property
    def type(self) -> AssetType:
        return self.media_type


class ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class GalleryMedia(ApiModel):
    id: str
    thumb_url: str
    preview_url: str
    original_url: str


class GalleryPage(ApiModel):
    media: list[GalleryMedia]
    page: int
    page_size: int
    total: int


class GalleryError(BaseModel):
    error: str


class ShareViewAsset(ApiModel):
    id: str
    type: str
    thumb_url: str
    preview_url: str
    original_url: str
    video_url: str | None = None


class ShareView(ApiModel):
    key: str
    type: str | None = None
    description: str | None = None
    expires_at: datetime | None = None
    allow_download: bool
    assets: list[ShareViewAsset]


class PasswordRequired(ApiModel):
    password_required: bool = True
    key: str
