"""Shared fixtures: in-memory database, local storage, store map, test client."""
import io
import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")

import pytest
from httpx import ASGITransport, AsyncClient
from PIL import Image
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from cdn.database import get_db
from cdn.errors import CDNError, ErrorKind
from cdn.main import app
from cdn.models import Base, FileRecord
from cdn.services.embeds import FetchResult
from cdn.services.file_storage import LocalFileStorage
from cdn.stores import ContentType, Store, clear_stores, set_stores


def make_image(width: int, height: int, fmt: str = "PNG", color=(200, 40, 40)) -> bytes:
    """Encode a solid-color image of the given size."""
    buf = io.BytesIO()
    Image.new("RGB", (width, height), color).save(buf, format=fmt)
    return buf.getvalue()


class FakeHttp:
    """Stands in for HttpClient: canned fetch results and POST responses by URL."""

    def __init__(self):
        self.pages: dict[str, FetchResult | Exception] = {}
        self.posts: dict[str, object] = {}
        self.fetched: list[str] = []
        self.posted: list[tuple[str, object]] = []

    def add_page(self, url: str, body: bytes | str, mime_type: str = "text/html") -> None:
        if isinstance(body, str):
            body = body.encode("utf-8")
        self.pages[url] = FetchResult(url=url, mime_type=mime_type, body=body)

    def add_error(self, url: str, error: Exception) -> None:
        self.pages[url] = error

    async def fetch(self, url: str) -> FetchResult:
        self.fetched.append(url)
        result = self.pages.get(url)
        if result is None:
            raise CDNError(ErrorKind.REQUEST_FAILED)
        if isinstance(result, Exception):
            raise result
        return result

    async def post_json(self, url, payload=None, data=None, headers=None):
        self.posted.append((url, payload))
        response = self.posts.get(url)
        if isinstance(response, Exception):
            raise response
        if response is None:
            raise CDNError(ErrorKind.INTERNAL_REQUEST_FAILED)
        return response


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def storage(tmp_path):
    return LocalFileStorage(tmp_path / "files")


@pytest.fixture
def stores():
    configured = {
        "attachments": Store(max_size=1_000_000),
        "avatars": Store(max_size=1_000_000, restrict_content_type=ContentType.IMAGE),
        "tiny": Store(max_size=16),
    }
    set_stores(configured)
    yield configured
    clear_stores()


@pytest.fixture
def fake_http():
    return FakeHttp()


@pytest.fixture
async def client(session_factory, storage, stores, fake_http):
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.state.storage = storage
    app.state.http = fake_http
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def add_record(session_factory, storage):
    """Insert a record (and optionally its bytes) directly, bypassing upload."""

    async def _add(
        file_id: str,
        store: str = "attachments",
        data: bytes | None = b"hello",
        metadata: dict | None = None,
        content_type: str = "text/plain",
        filename: str = "hello.txt",
        attached: bool = True,
        deleted: bool = False,
        flagged: bool = False,
    ) -> FileRecord:
        record = FileRecord(
            id=file_id,
            store=store,
            filename=filename,
            metadata_json=metadata or {"type": "TEXT"},
            content_type=content_type,
            size=len(data or b""),
            attached=attached,
            deleted=deleted,
            flagged=flagged,
        )
        async with session_factory() as session:
            session.add(record)
            await session.commit()
        if data is not None:
            await storage.put(store, file_id, data)
        return record

    return _add


@pytest.fixture
def image_bytes():
    return make_image
