"""Content sniffing and media dimension probing.

Images are measured with Pillow (header only, no full decode). Videos are
written to a scratch file and inspected with ``ffprobe``. All blocking work
runs in a worker thread.
"""
import asyncio
import codecs
import io
import json
import logging
import os
import subprocess
import tempfile
from typing import Tuple

import filetype
from PIL import Image, UnidentifiedImageError

from cdn.errors import CDNError, ErrorKind
from cdn.schemas.file import AudioFile, FileMetadata, GenericFile, ImageFile, TextFile, VideoFile

logger = logging.getLogger(__name__)

IMAGE_TYPES = frozenset({"image/jpeg", "image/png", "image/gif", "image/webp"})
VIDEO_TYPES = frozenset({"video/mp4", "video/webm", "video/quicktime"})
AUDIO_TYPES = frozenset({"audio/mpeg"})

_TEXT_SAMPLE_SIZE = 1024
_FFPROBE_TIMEOUT = 30  # seconds


def looks_like_text(data: bytes) -> bool:
    """UTF-8 without NUL bytes in the leading sample."""
    sample = data[:_TEXT_SAMPLE_SIZE]
    if b"\x00" in sample:
        return False
    decoder = codecs.getincrementaldecoder("utf-8")()
    try:
        # final=False tolerates a multi-byte sequence cut at the sample boundary
        decoder.decode(sample, final=len(data) <= _TEXT_SAMPLE_SIZE)
    except UnicodeDecodeError:
        return False
    return True


def sniff_content_type(data: bytes) -> str:
    """Detect a MIME type from the file's magic bytes."""
    mime = filetype.guess_mime(data)
    if mime:
        return mime
    if looks_like_text(data):
        return "text/plain"
    return "application/octet-stream"


def image_size(data: bytes) -> Tuple[int, int]:
    """Pixel dimensions of an encoded image. Raises PROCESSING_ERROR."""
    try:
        with Image.open(io.BytesIO(data)) as img:
            width, height = img.size
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as e:
        raise CDNError(ErrorKind.PROCESSING_ERROR) from e
    if width <= 0 or height <= 0:
        raise CDNError(ErrorKind.PROCESSING_ERROR)
    return width, height


def _run_ffprobe(path: str) -> dict:
    cmd = [
        "ffprobe",
        "-v", "quiet",
        "-print_format", "json",
        "-show_streams",
        path,
    ]
    try:
        result = subprocess.run(cmd, capture_output=True, text=True, check=True, timeout=_FFPROBE_TIMEOUT)
        return json.loads(result.stdout)
    except (subprocess.CalledProcessError, subprocess.TimeoutExpired, FileNotFoundError, json.JSONDecodeError) as e:
        logger.warning(f"ffprobe failed for {path}: {e}")
        return {}


def video_size_from_path(path: str) -> Tuple[int, int]:
    """First stream reporting positive width/height wins. Raises PROCESSING_ERROR."""
    for stream in _run_ffprobe(path).get("streams", []):
        width, height = stream.get("width"), stream.get("height")
        if isinstance(width, int) and isinstance(height, int) and width > 0 and height > 0:
            return width, height
    raise CDNError(ErrorKind.PROCESSING_ERROR)


def _video_size_from_bytes(data: bytes) -> Tuple[int, int]:
    fd, path = tempfile.mkstemp(prefix="cdn-probe-")
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        return video_size_from_path(path)
    finally:
        os.unlink(path)


async def probe_image(data: bytes) -> Tuple[int, int]:
    return await asyncio.to_thread(image_size, data)


async def probe_video(data: bytes) -> Tuple[int, int]:
    return await asyncio.to_thread(_video_size_from_bytes, data)


async def probe_media(data: bytes, mime_type: str) -> Tuple[int, int]:
    """Dimensions of an image/* or video/* body; anything else is PROCESSING_ERROR."""
    top_level = mime_type.split("/", 1)[0]
    if top_level == "image":
        return await probe_image(data)
    if top_level == "video":
        return await probe_video(data)
    raise CDNError(ErrorKind.PROCESSING_ERROR)


async def classify(data: bytes) -> Tuple[str, FileMetadata]:
    """Sniff the MIME type and build the content classification for an upload.

    Images or videos whose dimensions cannot be read fall back to a generic file.
    """
    content_type = sniff_content_type(data)
    if content_type in IMAGE_TYPES:
        try:
            width, height = await probe_image(data)
            return content_type, ImageFile(width=width, height=height)
        except CDNError:
            return content_type, GenericFile()
    if content_type in VIDEO_TYPES:
        try:
            width, height = await probe_video(data)
            return content_type, VideoFile(width=width, height=height)
        except CDNError:
            return content_type, GenericFile()
    if content_type in AUDIO_TYPES:
        return content_type, AudioFile()
    if looks_like_text(data):
        return content_type, TextFile()
    return content_type, GenericFile()
