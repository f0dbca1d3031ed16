"""Embed resolution: turn an arbitrary URL into a typed embed.

    fetch -> classify by MIME top-level type
        text/html -> scrape metadata -> provider special -> image backfill
        image/*   -> probe dimensions -> Image embed
        video/*   -> probe dimensions -> Video embed
        otherwise -> None embed
"""
import logging
import re

from cdn.errors import CDNError, ErrorKind
from cdn.schemas.embed import (
    Embed,
    ImageEmbed,
    ImageSize,
    Metadata,
    NoEmbed,
    VideoEmbed,
    WebsiteEmbed,
)
from cdn.services.embeds.http import FetchResult, HttpClient
from cdn.services.embeds.metadata import metadata_from_html
from cdn.services.embeds.providers import accent_color, generate_special
from cdn.services.media import probe_media

logger = logging.getLogger(__name__)

RE_TWITTER = re.compile(r"^(?:https?://)?(?:www\.)?twitter\.com")
NITTER_URL = "https://nitter.net"


def rewrite_url(url: str) -> str:
    """Twitter pages are scraped through a Nitter mirror."""
    return RE_TWITTER.sub(NITTER_URL, url, count=1)


class EmbedResolver:
    def __init__(self, http: HttpClient):
        self.http = http

    async def resolve(self, url: str) -> Embed:
        url = rewrite_url(url)
        result = await self.http.fetch(url)

        if result.subtype == "html":
            return await self._resolve_website(result, url)
        if result.top_level_type == "image":
            try:
                width, height = await probe_media(result.body, result.mime_type)
            except CDNError:
                return NoEmbed()
            return ImageEmbed(url=url, width=width, height=height, size=ImageSize.LARGE)
        if result.top_level_type == "video":
            try:
                width, height = await probe_media(result.body, result.mime_type)
            except CDNError:
                return NoEmbed()
            return VideoEmbed(url=url, width=width, height=height)
        return NoEmbed()

    async def _resolve_website(self, result: FetchResult, url: str) -> Embed:
        try:
            html = result.text()
        except LookupError as e:
            # Unknown charset label
            raise CDNError(ErrorKind.META_PARSE_FAILED) from e

        metadata = metadata_from_html(html, url)
        await self.resolve_external(metadata)
        if metadata.is_empty():
            return NoEmbed()
        return WebsiteEmbed.model_validate(metadata.model_dump())

    async def resolve_external(self, metadata: Metadata) -> None:
        """Attach the provider special and fill in missing image dimensions."""
        special = await generate_special(self.http, metadata)
        color = accent_color(special)
        if color is not None:
            metadata.color = color
        metadata.special = special

        try:
            await self.resolve_image(metadata)
        except CDNError as e:
            logger.info(f"Dropping embed image {metadata.image.url}: {e}")
            metadata.image = None

    async def resolve_image(self, metadata: Metadata) -> None:
        image = metadata.image
        if image is None or (image.width != 0 and image.height != 0):
            return
        result = await self.http.fetch(image.url)
        image.width, image.height = await probe_media(result.body, result.mime_type)
