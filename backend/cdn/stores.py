"""Store configuration: per-tenant upload policy loaded once from TOML.

Usage:
    load_stores(settings.STORES)     # once, at startup
    store = get_store("attachments")  # anywhere afterwards

Example ``Stores.toml``::

    [attachments]
    max_size = 20000000

    [avatars]
    max_size = 4000000
    restrict_content_type = "Image"
"""
import logging
import tomllib
from enum import Enum
from types import MappingProxyType
from typing import Mapping, Optional

from pydantic import BaseModel, ValidationError

from cdn.errors import CDNError, ErrorKind

logger = logging.getLogger(__name__)


class ContentType(str, Enum):
    IMAGE = "Image"
    VIDEO = "Video"
    AUDIO = "Audio"


class Store(BaseModel):
    model_config = {"frozen": True}

    max_size: int
    restrict_content_type: Optional[ContentType] = None


_stores: Optional[Mapping[str, Store]] = None


def parse_stores(text: str) -> dict[str, Store]:
    """Parse a TOML document into a store map. Raises ValueError on bad input."""
    try:
        raw = tomllib.loads(text)
        return {name: Store.model_validate(table) for name, table in raw.items()}
    except (tomllib.TOMLDecodeError, ValidationError) as e:
        raise ValueError(f"Invalid store configuration: {e}") from e


def load_stores(path: str) -> Mapping[str, Store]:
    """Load the store map from disk. Must be called once before serving."""
    global _stores
    with open(path, "rb") as f:
        stores = parse_stores(f.read().decode("utf-8"))
    _stores = MappingProxyType(stores)
    logger.info(f"Loaded {len(stores)} store(s) from {path}: {', '.join(stores)}")
    return _stores


def set_stores(stores: Mapping[str, Store]) -> None:
    """Install an already-built store map (tests, embedding)."""
    global _stores
    _stores = MappingProxyType(dict(stores))


def clear_stores() -> None:
    global _stores
    _stores = None


def get_stores() -> Mapping[str, Store]:
    if _stores is None:
        raise RuntimeError("Stores have not been loaded; call load_stores() at startup")
    return _stores


def get_store(store_id: str) -> Store:
    store = get_stores().get(store_id)
    if store is None:
        raise CDNError(ErrorKind.UNKNOWN_STORE)
    return store
