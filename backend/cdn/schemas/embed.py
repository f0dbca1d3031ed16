"""Embed and provider ("special") schemas.

Metadata is validated on construction: every populated string field has a
length bound, and a violation rejects the whole resolution.
"""
from enum import Enum
from typing import Annotated, Literal, Optional, Union

from pydantic import Field

from cdn.schemas.base import CamelModel

Url = Annotated[str, Field(min_length=1, max_length=512)]


class ImageSize(str, Enum):
    LARGE = "Large"
    PREVIEW = "Preview"


class EmbedImage(CamelModel):
    url: Url
    width: int = 0
    height: int = 0
    size: ImageSize = ImageSize.PREVIEW


class EmbedVideo(CamelModel):
    url: Url
    width: int = 0
    height: int = 0


class TwitchChannel(CamelModel):
    id: str
    name: str
    color: str
    avatar: str
    banner: str


# ── Special (provider) variants ──────────────────────────────────

class NoSpecial(CamelModel):
    type: Literal["None"] = "None"


class YoutubeSpecial(CamelModel):
    type: Literal["YouTube"] = "YouTube"
    id: str
    timestamp: Optional[str] = None
    title: str
    thumbnail: str
    author: str


class TwitchSpecial(CamelModel):
    type: Literal["Twitch"] = "Twitch"
    channel: TwitchChannel


class SpotifySpecial(CamelModel):
    type: Literal["Spotify"] = "Spotify"
    content_type: str
    id: str


class SoundcloudSpecial(CamelModel):
    type: Literal["Soundcloud"] = "Soundcloud"


class GifSpecial(CamelModel):
    type: Literal["Gif"] = "Gif"


Special = Annotated[
    Union[NoSpecial, YoutubeSpecial, TwitchSpecial, SpotifySpecial, SoundcloudSpecial, GifSpecial],
    Field(discriminator="type"),
]


# ── Website metadata ─────────────────────────────────────────────

class Metadata(CamelModel):
    url: Url
    original_url: str
    special: Optional[Special] = None

    title: Optional[str] = Field(default=None, min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, min_length=1, max_length=2000)
    image: Optional[EmbedImage] = None
    video: Optional[EmbedVideo] = None

    opengraph_type: Optional[str] = None
    site_name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    icon_url: Optional[str] = Field(default=None, min_length=1, max_length=256)
    color: Optional[str] = Field(default=None, min_length=1, max_length=64)

    def is_empty(self) -> bool:
        """Nothing worth embedding. A title on its own does not count."""
        return (
            self.description is None
            and self.image is None
            and self.video is None
        )


# ── Embed (tagged union returned by /embed) ──────────────────────

class WebsiteEmbed(Metadata):
    type: Literal["Website"] = "Website"


class ImageEmbed(EmbedImage):
    type: Literal["Image"] = "Image"
    # Direct media links (often long signed URLs) are not length-bounded
    url: str


class VideoEmbed(EmbedVideo):
    type: Literal["Video"] = "Video"
    url: str


class NoEmbed(CamelModel):
    type: Literal["None"] = "None"


Embed = Annotated[
    Union[WebsiteEmbed, ImageEmbed, VideoEmbed, NoEmbed],
    Field(discriminator="type"),
]
