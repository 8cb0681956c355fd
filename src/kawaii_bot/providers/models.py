"""
Data models for image provider responses.

These Pydantic models mirror the JSON returned by nekos.moe and waifu.im.
Unknown fields are ignored so provider-side additions do not break parsing.
"""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class NSFWMode(str, Enum):
    """waifu.im ``IsNsfw`` filter values."""
    SFW = "False"
    NSFW = "True"
    ALL = "All"


class NekosUser(BaseModel):
    """Uploader or approver of a nekos.moe image."""

    id: str
    username: str


class NekosImage(BaseModel):
    """A single image from the nekos.moe API."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    tags: List[str] = Field(default_factory=list)
    artist: Optional[str] = None
    nsfw: bool = False
    likes: int = 0
    favorites: int = 0
    created_at: Optional[str] = None
    uploader: Optional[NekosUser] = None
    approver: Optional[NekosUser] = None
    original_hash: Optional[str] = None


class NekosImageList(BaseModel):
    """Response of the random and search endpoints."""

    images: List[NekosImage] = Field(default_factory=list)


class NekosImageResponse(BaseModel):
    """Response of the single-image endpoint."""

    image: NekosImage


class WaifuTag(BaseModel):
    """A tag attached to a waifu.im image."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: int
    name: str
    slug: Optional[str] = None
    description: Optional[str] = None
    image_count: int = 0


class WaifuArtist(BaseModel):
    """An artist credited on a waifu.im image."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: int
    name: str
    pixiv: Optional[str] = None
    twitter: Optional[str] = None


class WaifuImage(BaseModel):
    """A single image from the waifu.im API."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: int
    url: str
    extension: str = ".jpg"
    source: Optional[str] = None
    dominant_color: Optional[str] = None
    is_nsfw: bool = False
    is_animated: bool = False
    width: int = 0
    height: int = 0
    byte_size: int = 0
    favorites: int = 0
    tags: List[WaifuTag] = Field(default_factory=list)
    artists: List[WaifuArtist] = Field(default_factory=list)

    @property
    def content_type(self) -> str:
        """MIME type derived from the file extension."""
        return {
            ".gif": "image/gif",
            ".png": "image/png",
            ".webp": "image/webp",
        }.get(self.extension.lower(), "image/jpeg")


class WaifuImagePage(BaseModel):
    """Paged response of the waifu.im images endpoint."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    items: List[WaifuImage] = Field(default_factory=list)
    page_number: int = 1
    total_pages: int = 0
    total_count: int = 0
    has_next_page: bool = False
