"""Outbound HTTP for embeds and the proxy.

One ``aiohttp.ClientSession`` is opened at startup and shared by every
request. Each call carries a hard total timeout; a timeout is reported as
INTERNAL_REQUEST_FAILED and never left pending.
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Optional

import aiohttp

from cdn.errors import CDNError, ErrorKind

logger = logging.getLogger(__name__)


@dataclass
class FetchResult:
    url: str
    mime_type: str  # "type/subtype", lowercase, no parameters
    body: bytes
    charset: Optional[str] = None

    @property
    def top_level_type(self) -> str:
        return self.mime_type.split("/", 1)[0]

    @property
    def subtype(self) -> str:
        return self.mime_type.split("/", 1)[-1]

    def text(self) -> str:
        return self.body.decode(self.charset or "utf-8", errors="replace")


def parse_content_type(header: str) -> tuple[str, Optional[str]]:
    """Split ``text/html; charset=UTF-8`` into (``text/html``, ``UTF-8``)."""
    parts = [p.strip() for p in header.split(";")]
    mime_type = parts[0].lower()
    charset = None
    for param in parts[1:]:
        key, _, value = param.partition("=")
        if key.strip().lower() == "charset" and value:
            charset = value.strip().strip('"')
    return mime_type, charset


class HttpClient:
    """Async HTTP client with a fixed user agent and timeout.

    Supports async context manager; ``open()``/``close()`` are called by the
    app lifespan so one connection pool serves the whole process.
    """

    def __init__(self, user_agent: str, timeout: float = 2.0):
        self.user_agent = user_agent
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._session: Optional[aiohttp.ClientSession] = None

    async def open(self) -> None:
        if not self._session:
            self._session = aiohttp.ClientSession(
                headers={"User-Agent": self.user_agent},
                timeout=self._timeout,
            )

    async def close(self) -> None:
        if self._session:
            await self._session.close()
            self._session = None

    async def __aenter__(self) -> "HttpClient":
        await self.open()
        return self

    async def __aexit__(self, *exc) -> None:
        await self.close()

    @property
    def session(self) -> aiohttp.ClientSession:
        if self._session is None:
            raise RuntimeError("HttpClient is not open")
        return self._session

    async def fetch(self, url: str) -> FetchResult:
        """GET ``url`` and return its body and MIME type.

        Raises REQUEST_FAILED for bad URLs and non-2xx responses,
        MISSING_CONTENT_TYPE when the response has no Content-Type, and
        INTERNAL_REQUEST_FAILED for timeouts and transport errors.
        """
        try:
            async with self.session.get(url, allow_redirects=True) as resp:
                if not 200 <= resp.status < 300:
                    logger.info(f"Fetch of {url} returned HTTP {resp.status}")
                    raise CDNError(ErrorKind.REQUEST_FAILED)
                header = resp.headers.get("Content-Type")
                if not header:
                    raise CDNError(ErrorKind.MISSING_CONTENT_TYPE)
                mime_type, charset = parse_content_type(header)
                body = await resp.read()
                return FetchResult(url=str(resp.url), mime_type=mime_type, body=body, charset=charset)
        except CDNError:
            raise
        except aiohttp.InvalidURL as e:
            raise CDNError(ErrorKind.REQUEST_FAILED) from e
        except asyncio.TimeoutError as e:
            logger.info(f"Fetch of {url} timed out")
            raise CDNError(ErrorKind.INTERNAL_REQUEST_FAILED) from e
        except aiohttp.ClientError as e:
            logger.info(f"Fetch of {url} failed: {e}")
            raise CDNError(ErrorKind.INTERNAL_REQUEST_FAILED) from e

    async def post_json(
        self,
        url: str,
        payload: Any = None,
        data: Optional[str] = None,
        headers: Optional[dict] = None,
    ) -> Any:
        """POST and decode a JSON response. Any failure is INTERNAL_REQUEST_FAILED."""
        try:
            async with self.session.post(url, json=payload, data=data, headers=headers) as resp:
                if resp.status >= 400:
                    body = await resp.text()
                    logger.info(f"POST {url} returned HTTP {resp.status}: {body[:200]}")
                    raise CDNError(ErrorKind.INTERNAL_REQUEST_FAILED)
                return await resp.json(content_type=None)
        except CDNError:
            raise
        except (asyncio.TimeoutError, aiohttp.ClientError, ValueError) as e:
            logger.info(f"POST {url} failed: {e!r}")
            raise CDNError(ErrorKind.INTERNAL_REQUEST_FAILED) from e
