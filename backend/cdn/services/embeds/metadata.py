"""OpenGraph / Twitter card extraction from an HTML document."""
import logging
from html.parser import HTMLParser
from typing import Optional

from pydantic import ValidationError

from cdn.errors import CDNError, ErrorKind
from cdn.schemas.embed import EmbedImage, EmbedVideo, ImageSize, Metadata

logger = logging.getLogger(__name__)


class _HeadTagCollector(HTMLParser):
    """Collects <meta> property/name -> content and <link> rel -> href.

    Later tags overwrite earlier ones with the same key.
    """

    def __init__(self):
        super().__init__(convert_charrefs=True)
        self.meta: dict[str, str] = {}
        self.link: dict[str, str] = {}

    def handle_starttag(self, tag, attrs):
        values = dict(attrs)
        if tag == "meta":
            key = values.get("property") or values.get("name")
            content = values.get("content")
            if key is not None and content is not None:
                self.meta[key] = content
        elif tag == "link":
            rel, href = values.get("rel"), values.get("href")
            if rel is not None and href is not None:
                self.link[rel] = href

    handle_startendtag = handle_starttag


def collect_tags(html: str) -> tuple[dict[str, str], dict[str, str]]:
    parser = _HeadTagCollector()
    try:
        parser.feed(html)
        parser.close()
    except (AssertionError, ValueError) as e:
        raise CDNError(ErrorKind.META_PARSE_FAILED) from e
    return parser.meta, parser.link


def _take(values: dict[str, str], *keys: str) -> Optional[str]:
    """Pop the first present key (first match wins)."""
    for key in keys:
        if key in values:
            return values.pop(key)
    return None


def _dimension(values: dict[str, str], key: str) -> int:
    try:
        return int(values.pop(key, "0"))
    except ValueError:
        return 0


def metadata_from_html(html: str, url: str) -> Metadata:
    """Build validated Metadata for the page at ``url``.

    Raises VALIDATION_FAILED if any populated field is out of bounds.
    """
    meta, link = collect_tags(html)

    title = _take(meta, "og:title", "twitter:title", "title")
    description = _take(meta, "og:description", "twitter:description", "description")

    image = None
    image_url = _take(meta, "og:image", "og:image:secure_url", "twitter:image", "twitter:image:src")
    if image_url is not None:
        size = ImageSize.PREVIEW
        if meta.pop("twitter:card", None) == "summary_large_image":
            size = ImageSize.LARGE
        image = {
            "url": image_url,
            "width": _dimension(meta, "og:image:width"),
            "height": _dimension(meta, "og:image:height"),
            "size": size,
        }

    video = None
    video_url = _take(meta, "og:video", "og:video:url", "og:video:secure_url")
    if video_url is not None:
        video = {
            "url": video_url,
            "width": _dimension(meta, "og:video:width"),
            "height": _dimension(meta, "og:video:height"),
        }

    icon_url = _take(link, "apple-touch-icon", "icon")
    if icon_url and icon_url.startswith("/"):
        icon_url = f"{url}{icon_url}"

    try:
        return Metadata(
            url=meta.pop("og:url", None) or url,
            original_url=url,
            title=title,
            description=description,
            image=EmbedImage(**image) if image else None,
            video=EmbedVideo(**video) if video else None,
            opengraph_type=meta.pop("og:type", None),
            site_name=meta.pop("og:site_name", None),
            icon_url=icon_url,
            color=meta.pop("theme-color", None),
        )
    except ValidationError as e:
        logger.info(f"Metadata for {url} failed validation: {e.error_count()} error(s)")
        raise CDNError(ErrorKind.VALIDATION_FAILED) from e
