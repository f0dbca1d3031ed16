"""Provider classification for embeds.

``PROVIDERS`` is an ordered list of (pattern, field, handler). The first
pattern that matches decides the outcome, even when its handler then yields
no special: priority order is part of the behavior, so this is evaluated
sequentially.
"""
import logging
import re
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from cdn.errors import CDNError, ErrorKind
from cdn.schemas.embed import (
    GifSpecial,
    Metadata,
    NoSpecial,
    SoundcloudSpecial,
    Special,
    SpotifySpecial,
    TwitchChannel,
    TwitchSpecial,
    YoutubeSpecial,
)
from cdn.services.embeds.http import HttpClient

logger = logging.getLogger(__name__)

RE_YOUTUBE = re.compile(
    r"^(?:(?:https?:)?//)?(?:(?:www|m)\.)?(?:youtube\.com|youtu\.be)"
    r"(?:/(?:[\w\-]+\?v=|embed/|v/)?)([\w\-]+)(?:\S+)?$"
)
RE_TWITCH = re.compile(r"^(?:https?://)?(?:www\.|go\.)?twitch\.tv/([a-z0-9_]+)($|\?)")
RE_SPOTIFY = re.compile(r"^(?:https?://)?open\.spotify\.com/(track|user|artist|album|playlist)/([A-Za-z0-9]+)")
RE_SOUNDCLOUD = re.compile(r"^(?:https?://)?soundcloud\.com/([a-zA-Z0-9-]+)/([A-Za-z0-9-]+)")
RE_GIF = re.compile(r"^(?:https?://)?(www\.)?(tenor\.com/view|giphy\.com/gifs|gfycat\.com)/[\w-]+")
RE_TIMESTAMP = re.compile(r"(?:\?|&)(?:t|start)=(\w+)")

YOUTUBE_PLAYER_URL = "https://www.youtube.com/youtubei/v1/player"
YOUTUBE_CLIENT = {"clientName": "WEB", "clientVersion": "2.20240304.00.00", "hl": "en"}

TWITCH_GQL_URL = "https://gql.twitch.tv/gql"
TWITCH_CLIENT_ID = "kimne78kx3ncx6brgo4mv6wki5h1ko"
TWITCH_CHANNEL_SHELL_HASH = "580ab410bcd0c1ad194224957ae2241e5d252b2c5173d8e0cce9d32d5bb14efe"


# ── External lookups ─────────────────────────────────────────────

@dataclass
class YoutubeVideo:
    id: str
    title: str
    author: str
    thumbnail: str
    is_private: bool


async def get_youtube_video(http: HttpClient, video_id: str) -> YoutubeVideo:
    """Video details from the InnerTube player endpoint."""
    data = await http.post_json(
        YOUTUBE_PLAYER_URL,
        payload={"videoId": video_id, "context": {"client": YOUTUBE_CLIENT}},
    )
    try:
        details = data["videoDetails"]
        thumbnails = details["thumbnail"]["thumbnails"]
        widest = max(thumbnails, key=lambda t: t.get("width", 0))
        return YoutubeVideo(
            id=details.get("videoId", video_id),
            title=details["title"],
            author=details["author"],
            thumbnail=widest["url"],
            is_private=bool(details.get("isPrivate", False)),
        )
    except (KeyError, TypeError, ValueError) as e:
        raise CDNError(ErrorKind.INTERNAL_REQUEST_FAILED) from e


async def get_twitch_channel(http: HttpClient, login: str) -> TwitchChannel:
    """Channel info from Twitch's public GQL ChannelShell query."""
    query = [{
        "operationName": "ChannelShell",
        "variables": {"login": login},
        "extensions": {"persistedQuery": {"version": 1, "sha256Hash": TWITCH_CHANNEL_SHELL_HASH}},
    }]
    data = await http.post_json(
        TWITCH_GQL_URL,
        payload=query,
        headers={"Client-ID": TWITCH_CLIENT_ID},
    )
    try:
        user = data[0]["data"]["userOrError"]
        return TwitchChannel(
            id=user["id"],
            name=user["displayName"],
            color=user["primaryColorHex"],
            avatar=user["profileImageURL"],
            banner=user["bannerImageURL"],
        )
    except (KeyError, IndexError, TypeError, ValueError) as e:
        raise CDNError(ErrorKind.INTERNAL_REQUEST_FAILED) from e


# ── Handlers ─────────────────────────────────────────────────────

Handler = Callable[[HttpClient, Metadata, re.Match], Awaitable[Special]]


def extract_timestamp(*urls: Optional[str]) -> Optional[str]:
    for url in urls:
        match = RE_TIMESTAMP.search(url) if url else None
        if match:
            return match.group(1)
    return None


async def _youtube(http: HttpClient, metadata: Metadata, match: re.Match) -> Special:
    if metadata.video is None:
        return NoSpecial()
    video_id = match.group(1)
    try:
        video = await get_youtube_video(http, video_id)
    except CDNError as e:
        logger.info(f"YouTube lookup for {video_id} failed: {e}")
        return NoSpecial()
    if video.is_private:
        return NoSpecial()
    return YoutubeSpecial(
        id=video_id,
        timestamp=extract_timestamp(metadata.video.url, metadata.original_url),
        title=video.title,
        thumbnail=video.thumbnail,
        author=video.author,
    )


async def _twitch(http: HttpClient, metadata: Metadata, match: re.Match) -> Special:
    login = match.group(1)
    try:
        channel = await get_twitch_channel(http, login)
    except CDNError as e:
        logger.info(f"Twitch lookup for {login} failed: {e}")
        return NoSpecial()
    return TwitchSpecial(channel=channel)


async def _spotify(http: HttpClient, metadata: Metadata, match: re.Match) -> Special:
    return SpotifySpecial(content_type=match.group(1), id=match.group(2))


async def _soundcloud(http: HttpClient, metadata: Metadata, match: re.Match) -> Special:
    return SoundcloudSpecial()


async def _gif(http: HttpClient, metadata: Metadata, match: re.Match) -> Special:
    return GifSpecial()


# (pattern, metadata field matched against, handler), in priority order
PROVIDERS: list[tuple[re.Pattern, str, Handler]] = [
    (RE_YOUTUBE, "url", _youtube),
    (RE_TWITCH, "original_url", _twitch),
    (RE_SPOTIFY, "original_url", _spotify),
    (RE_SOUNDCLOUD, "original_url", _soundcloud),
    (RE_GIF, "original_url", _gif),
]


async def generate_special(http: HttpClient, metadata: Metadata) -> Special:
    """Classify the page's provider. Lookup failures yield NoSpecial, never raise."""
    for pattern, field, handler in PROVIDERS:
        match = pattern.search(getattr(metadata, field))
        if match:
            return await handler(http, metadata, match)
    return NoSpecial()


def accent_color(special: Special) -> Optional[str]:
    """Brand color for a provider, overriding the page's theme-color."""
    if isinstance(special, YoutubeSpecial):
        return "#FF424F"
    if isinstance(special, TwitchSpecial):
        return "#7B68EE"
    if isinstance(special, SpotifySpecial):
        return "#1ABC9C"
    if isinstance(special, (SoundcloudSpecial, GifSpecial, NoSpecial)):
        return None
    raise TypeError(f"Unhandled special: {special!r}")
