"""Tests for store configuration loading."""
import pytest

from cdn.errors import CDNError, ErrorKind
from cdn.stores import ContentType, Store, clear_stores, get_store, get_stores, load_stores, parse_stores

STORES_TOML = """
[attachments]
max_size = 20000000

[avatars]
max_size = 4000000
restrict_content_type = "Image"
"""


@pytest.fixture(autouse=True)
def reset_stores():
    clear_stores()
    yield
    clear_stores()


def test_parse_stores():
    stores = parse_stores(STORES_TOML)
    assert stores == {
        "attachments": Store(max_size=20_000_000),
        "avatars": Store(max_size=4_000_000, restrict_content_type=ContentType.IMAGE),
    }


@pytest.mark.parametrize("text", [
    "[attachments]\nmax_size = 'big'\n",
    "[attachments]\n",
    "[avatars]\nmax_size = 1\nrestrict_content_type = 'Document'\n",
    "not toml at all [",
])
def test_parse_stores_rejects_bad_config(text):
    with pytest.raises(ValueError):
        parse_stores(text)


def test_load_stores_is_read_only(tmp_path):
    path = tmp_path / "Stores.toml"
    path.write_text(STORES_TOML)
    stores = load_stores(str(path))
    assert get_stores() is stores
    with pytest.raises(TypeError):
        stores["emojis"] = Store(max_size=1)


def test_get_store(tmp_path):
    path = tmp_path / "Stores.toml"
    path.write_text(STORES_TOML)
    load_stores(str(path))
    assert get_store("avatars").restrict_content_type is ContentType.IMAGE
    with pytest.raises(CDNError) as exc_info:
        get_store("banners")
    assert exc_info.value.kind is ErrorKind.UNKNOWN_STORE


def test_get_stores_before_load():
    with pytest.raises(RuntimeError):
        get_stores()
