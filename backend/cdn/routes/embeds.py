"""Embed and proxy routes for arbitrary external URLs."""
from fastapi import APIRouter, Depends, Query, Response
from fastapi.responses import JSONResponse

from cdn.dependencies import get_http, get_resolver
from cdn.errors import CDNError, ErrorKind
from cdn.services.embeds import EmbedResolver, HttpClient

router = APIRouter(tags=["embeds"])


@router.get("/embed")
async def embed(
    url: str = Query(...),
    resolver: EmbedResolver = Depends(get_resolver),
):
    """Resolve a URL into a Website, Image, Video or None embed."""
    result = await resolver.resolve(url)
    return JSONResponse(content=result.dump())


@router.get("/proxy")
async def proxy(
    url: str = Query(...),
    http: HttpClient = Depends(get_http),
):
    """Relay remote image/video bytes; anything else is refused."""
    result = await http.fetch(url)
    if result.top_level_type not in ("image", "video"):
        raise CDNError(ErrorKind.CANNOT_PROXY)
    return Response(content=result.body, media_type=result.mime_type)
