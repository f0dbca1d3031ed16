"""Store file routes: upload, serve (with resizing) and download."""
from typing import Optional
from urllib.parse import quote

from fastapi import APIRouter, Depends, Query, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from cdn.database import get_db
from cdn.dependencies import get_storage
from cdn.schemas.file import ResizeRequest, UploadResponse
from cdn.services import file_records
from cdn.services.file_storage import FileStorage
from cdn.services.resize import apply_resize
from cdn.services.uploads import receive_upload, store_upload
from cdn.stores import get_store

router = APIRouter(prefix="/stores", tags=["files"])

CACHE_CONTROL = "public, max-age=604800, must-revalidate"

INLINE_CONTENT_TYPES = frozenset({
    "image/jpeg",
    "image/png",
    "image/gif",
    "image/webp",
    "video/mp4",
    "video/webm",
    "video/webp",
    "audio/quicktime",
    "audio/mpeg",
})


def _content_disposition(content_type: str) -> str:
    return "inline" if content_type in INLINE_CONTENT_TYPES else "attachment"


def _attachment_disposition(filename: str) -> str:
    """Attachment header that survives any filename.

    Headers are latin-1 on the wire, so names that are not plain printable
    ASCII also get the RFC 6266 ``filename*`` form with the UTF-8 name.
    """
    fallback = "".join(c for c in filename if " " <= c <= "~" and c not in '"\\')
    header = f'attachment; filename="{fallback}"'
    if fallback != filename:
        header += f"; filename*=UTF-8''{quote(filename, safe='')}"
    return header


@router.post("/{store}", response_model=UploadResponse)
async def upload_file(
    store: str,
    request: Request,
    db: AsyncSession = Depends(get_db),
    storage: FileStorage = Depends(get_storage),
):
    """Upload a single file into a store and return its id.

    The first file part of the multipart body is used, whatever its field name.
    """
    store_config = get_store(store)
    filename, data = await receive_upload(request, store_config.max_size)
    record = await store_upload(db, storage, store, store_config, filename, data)
    return UploadResponse(id=record.id)


@router.get("/{store}/files/{file_id}")
async def serve_file(
    store: str,
    file_id: str,
    size: Optional[int] = Query(None),
    width: Optional[int] = Query(None),
    height: Optional[int] = Query(None),
    max_side: Optional[int] = Query(None),
    max_side_camel: Optional[int] = Query(None, alias="maxSide"),
    db: AsyncSession = Depends(get_db),
    storage: FileStorage = Depends(get_storage),
):
    """Serve a file inline, resizing images on the fly."""
    get_store(store)
    record = await file_records.find_visible(db, file_id, store)
    data = await storage.get(store, record.id)

    resize = ResizeRequest(
        size=size,
        max_side=max_side if max_side is not None else max_side_camel,
        width=width,
        height=height,
    )
    contents, override = await apply_resize(data, record.file_metadata, resize)
    content_type = override or record.content_type

    return Response(
        content=contents,
        media_type=content_type,
        headers={
            "Content-Disposition": _content_disposition(content_type),
            "Cache-Control": CACHE_CONTROL,
        },
    )


@router.get("/{store}/download/{file_id}")
async def download_file(
    store: str,
    file_id: str,
    db: AsyncSession = Depends(get_db),
    storage: FileStorage = Depends(get_storage),
):
    """Download the original bytes as an attachment."""
    get_store(store)
    record = await file_records.find_visible(db, file_id, store)
    data = await storage.get(store, record.id)

    return Response(
        content=data,
        media_type=record.content_type,
        headers={
            "Content-Disposition": _attachment_disposition(record.filename),
            "Cache-Control": CACHE_CONTROL,
        },
    )
