"""Upload pipeline: streamed multipart read, classification, store policy, persistence.

The request body is parsed incrementally with python-multipart. Only the first
file part is kept, and the read stops as soon as it grows past the store's
``max_size``, so an oversized upload is never buffered or spooled in full.
"""
import logging
from typing import Optional, Tuple

from python_multipart.exceptions import MultipartParseError
from python_multipart.multipart import MultipartParser, parse_options_header
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.requests import Request
from ulid import ULID

from cdn.errors import CDNError, ErrorKind
from cdn.models.file_record import FileRecord
from cdn.services import file_records
from cdn.services.file_storage import FileStorage
from cdn.services.media import classify
from cdn.schemas.file import satisfies_restriction
from cdn.stores import Store

logger = logging.getLogger(__name__)


class _FirstFilePart:
    """python-multipart callbacks that collect the first file part of a form.

    Non-file fields and any later parts are skipped. ``too_large`` is set
    instead of buffering past ``max_size``.
    """

    def __init__(self, max_size: int):
        self.max_size = max_size
        self.filename: Optional[str] = None
        self.data = bytearray()
        self.too_large = False
        self.complete = False

        self._in_file = False
        self._headers: dict[bytes, bytes] = {}
        self._header_field = bytearray()
        self._header_value = bytearray()

    @property
    def callbacks(self) -> dict:
        return {
            "on_part_begin": self.on_part_begin,
            "on_header_field": self.on_header_field,
            "on_header_value": self.on_header_value,
            "on_header_end": self.on_header_end,
            "on_headers_finished": self.on_headers_finished,
            "on_part_data": self.on_part_data,
            "on_part_end": self.on_part_end,
        }

    def on_part_begin(self) -> None:
        self._headers = {}

    def on_header_field(self, data: bytes, start: int, end: int) -> None:
        self._header_field += data[start:end]

    def on_header_value(self, data: bytes, start: int, end: int) -> None:
        self._header_value += data[start:end]

    def on_header_end(self) -> None:
        self._headers[bytes(self._header_field).lower()] = bytes(self._header_value)
        self._header_field.clear()
        self._header_value.clear()

    def on_headers_finished(self) -> None:
        if self.complete:
            return
        _, options = parse_options_header(self._headers.get(b"content-disposition", b""))
        if b"filename" in options:
            self._in_file = True
            self.filename = options[b"filename"].decode("utf-8", errors="replace")

    def on_part_data(self, data: bytes, start: int, end: int) -> None:
        if not self._in_file or self.too_large:
            return
        if len(self.data) + (end - start) > self.max_size:
            self.too_large = True
            return
        self.data += data[start:end]

    def on_part_end(self) -> None:
        if self._in_file:
            self._in_file = False
            self.complete = True


async def receive_upload(request: Request, max_size: int) -> Tuple[str, bytes]:
    """Stream the multipart body and return the first file's (filename, bytes).

    Raises FILE_TOO_LARGE mid-stream once the file passes ``max_size``,
    MISSING_DATA when the body is not multipart or carries no file, and
    INVALID_DATA when the file has no name.
    """
    content_type, params = parse_options_header(request.headers.get("content-type", ""))
    boundary = params.get(b"boundary")
    if content_type != b"multipart/form-data" or not boundary:
        raise CDNError(ErrorKind.MISSING_DATA)

    part = _FirstFilePart(max_size)
    parser = MultipartParser(boundary, part.callbacks)
    try:
        async for chunk in request.stream():
            if chunk:
                parser.write(chunk)
            if part.too_large:
                logger.info(f"Upload aborted after passing {max_size} bytes")
                raise CDNError.file_too_large(max_size)
            if part.complete:
                # Nothing after the first file is needed
                break
        else:
            parser.finalize()
    except MultipartParseError as e:
        raise CDNError(ErrorKind.MISSING_DATA) from e

    if not part.complete:
        raise CDNError(ErrorKind.MISSING_DATA)
    if not part.filename:
        raise CDNError(ErrorKind.INVALID_DATA)
    return part.filename, bytes(part.data)


async def store_upload(
    db: AsyncSession,
    storage: FileStorage,
    store_id: str,
    store: Store,
    filename: str,
    data: bytes,
) -> FileRecord:
    """Classify ``data``, enforce the store policy and persist record then bytes.

    If the bytes cannot be written the freshly inserted record is removed again.
    """
    if len(data) > store.max_size:
        raise CDNError.file_too_large(store.max_size)

    content_type, metadata = await classify(data)
    if not satisfies_restriction(metadata, store.restrict_content_type):
        raise CDNError(ErrorKind.FILE_TYPE_NOT_ALLOWED)

    record = FileRecord(
        id=str(ULID()),
        store=store_id,
        filename=filename,
        metadata_json=metadata.model_dump(),
        content_type=content_type,
        size=len(data),
        attached=False,
        deleted=False,
        flagged=False,
    )
    await file_records.insert(db, record)

    try:
        await storage.put(store_id, record.id, data)
    except CDNError:
        logger.warning(f"Storing bytes for {store_id}/{record.id} failed, removing record")
        try:
            await file_records.delete(db, record.id)
        except CDNError:
            logger.exception(f"Failed to remove record {record.id} after storage failure")
        raise

    logger.info(f"Stored {store_id}/{record.id} ({content_type}, {len(data)} bytes)")
    return record
