"""Tests for content sniffing and dimension probing."""
import pytest

from cdn.errors import CDNError, ErrorKind
from cdn.schemas.file import GenericFile, ImageFile, TextFile
from cdn.services.media import classify, image_size, looks_like_text, probe_media, sniff_content_type


@pytest.mark.parametrize("fmt, mime", [
    ("PNG", "image/png"),
    ("JPEG", "image/jpeg"),
    ("GIF", "image/gif"),
    ("WEBP", "image/webp"),
])
async def test_classify_images(image_bytes, fmt, mime):
    content_type, metadata = await classify(image_bytes(30, 20, fmt=fmt))
    assert content_type == mime
    assert metadata == ImageFile(width=30, height=20)


async def test_classify_text():
    assert await classify("héllo wörld".encode("utf-8")) == ("text/plain", TextFile())


async def test_classify_binary():
    assert await classify(b"\x00\x01\x02\x03") == ("application/octet-stream", GenericFile())


async def test_truncated_image_falls_back_to_generic(image_bytes):
    data = image_bytes(30, 20)[:16]
    content_type, metadata = await classify(data)
    assert content_type == "image/png"
    assert metadata == GenericFile()


def test_looks_like_text_tolerates_cut_multibyte_sequence():
    # "é" is two bytes; the 1024-byte sample ends in the middle of one
    data = b"a" * 1023 + "é".encode("utf-8") + b"tail"
    assert looks_like_text(data)


def test_looks_like_text_rejects_invalid_utf8():
    assert not looks_like_text(b"\xff\xfe\xfd")


def test_sniff_prefers_magic_bytes(image_bytes):
    assert sniff_content_type(image_bytes(2, 2)) == "image/png"


def test_image_size_of_garbage_is_processing_error():
    with pytest.raises(CDNError) as exc_info:
        image_size(b"definitely not an image")
    assert exc_info.value.kind is ErrorKind.PROCESSING_ERROR


async def test_probe_media_image(image_bytes):
    assert await probe_media(image_bytes(7, 9), "image/png") == (7, 9)


async def test_probe_media_rejects_other_types():
    with pytest.raises(CDNError) as exc_info:
        await probe_media(b"{}", "application/json")
    assert exc_info.value.kind is ErrorKind.PROCESSING_ERROR
