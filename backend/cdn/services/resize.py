"""Image resize engine.

``compute_target`` turns a resize request into target dimensions using a
strict priority order (the first parameter present wins, cases are never
combined). ``apply_resize`` is best-effort: anything that cannot be resized
is returned untouched with no content-type override.
"""
import asyncio
import io
import logging
from typing import Optional, Tuple

from PIL import Image, UnidentifiedImageError

from cdn.schemas.file import AudioFile, FileMetadata, GenericFile, ImageFile, ResizeRequest, TextFile, VideoFile

logger = logging.getLogger(__name__)

OUTPUT_CONTENT_TYPE = "image/webp"


def compute_target(width: int, height: int, request: ResizeRequest) -> Optional[Tuple[int, int]]:
    """Target (width, height) for an image of the given size, or None for no resize."""
    shortest = min(width, height)

    if request.size is not None:
        side = min(request.size, shortest)
        return side, side

    if request.max_side is not None:
        if shortest == width:
            h = min(height, request.max_side)
            return int(width * (h / height)), h
        w = min(width, request.max_side)
        return w, int(height * (w / width))

    if request.width is not None and request.height is not None:
        return min(width, request.width), min(height, request.height)

    if request.width is not None:
        w = min(width, request.width)
        return w, int(w * (height / width))

    if request.height is not None:
        h = min(height, request.height)
        return int(h * (width / height)), h

    return None


def resize_image(data: bytes, width: int, height: int) -> bytes:
    """Decode, resize to exactly width x height and encode as lossless WebP."""
    with Image.open(io.BytesIO(data)) as img:
        img.load()
        if img.mode not in ("RGB", "RGBA"):
            img = img.convert("RGBA")
        resized = img.resize((width, height), Image.Resampling.LANCZOS)
    buf = io.BytesIO()
    resized.save(buf, format="WEBP", lossless=True)
    return buf.getvalue()


async def apply_resize(
    data: bytes,
    metadata: FileMetadata,
    request: Optional[ResizeRequest],
) -> Tuple[bytes, Optional[str]]:
    """Return (bytes, content type override). The override is set only on success."""
    if request is None:
        return data, None

    if isinstance(metadata, ImageFile):
        target = compute_target(metadata.width, metadata.height, request)
    elif isinstance(metadata, (GenericFile, TextFile, VideoFile, AudioFile)):
        # Resize parameters on non-images are ignored
        return data, None
    else:
        raise TypeError(f"Unhandled file metadata: {metadata!r}")

    if target is None:
        return data, None
    target_width, target_height = target
    if target_width <= 0 or target_height <= 0:
        return data, None

    try:
        resized = await asyncio.to_thread(resize_image, data, target_width, target_height)
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as e:
        logger.warning(f"Resize to {target_width}x{target_height} failed, serving original: {e}")
        return data, None
    return resized, OUTPUT_CONTENT_TYPE
