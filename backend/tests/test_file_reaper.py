"""Tests for the background file reaper."""
import pytest

from cdn.errors import CDNError, ErrorKind
from cdn.models import FileRecord
from cdn.services.file_reaper import FileReaper


class FailingStorage:
    """Wraps a storage backend and refuses deletes for selected ids."""

    def __init__(self, inner, fail_ids=(), error=None):
        self.inner = inner
        self.fail_ids = set(fail_ids)
        self.error = error or CDNError(ErrorKind.STORAGE_ERROR)
        self.deleted = []

    async def put(self, store, file_id, data):
        await self.inner.put(store, file_id, data)

    async def get(self, store, file_id):
        return await self.inner.get(store, file_id)

    async def delete(self, store, file_id):
        if file_id in self.fail_ids:
            raise self.error
        self.deleted.append((store, file_id))
        await self.inner.delete(store, file_id)


async def _exists(session_factory, file_id: str) -> bool:
    async with session_factory() as session:
        return await session.get(FileRecord, file_id) is not None


@pytest.fixture
def make_reaper(session_factory):
    def _make(storage):
        return FileReaper(storage, session_factory, interval=3600, item_delay=0)
    return _make


async def test_purges_deleted_records_and_bytes(make_reaper, storage, session_factory, add_record):
    await add_record("a", deleted=True)
    await add_record("b", deleted=False)

    assert await make_reaper(storage).sweep() == 1

    assert not await _exists(session_factory, "a")
    assert await _exists(session_factory, "b")
    assert not (storage.base_path / "a").exists()
    assert (storage.base_path / "b").exists()


async def test_flagged_records_are_never_purged(make_reaper, storage, session_factory, add_record):
    await add_record("held", deleted=True, flagged=True)
    reaper = make_reaper(storage)

    assert await reaper.sweep() == 0
    assert await reaper.sweep() == 0
    assert await _exists(session_factory, "held")
    assert (storage.base_path / "held").exists()


async def test_unflagging_makes_a_record_purgeable(make_reaper, storage, session_factory, add_record):
    await add_record("held", deleted=True, flagged=True)
    reaper = make_reaper(storage)
    assert await reaper.sweep() == 0

    async with session_factory() as session:
        record = await session.get(FileRecord, "held")
        record.flagged = False
        await session.commit()

    assert await reaper.sweep() == 1
    assert not await _exists(session_factory, "held")


async def test_storage_failure_keeps_the_record_for_retry(make_reaper, storage, session_factory, add_record):
    await add_record("stuck", deleted=True)
    failing = FailingStorage(storage, fail_ids={"stuck"})

    assert await make_reaper(failing).sweep() == 0
    assert await _exists(session_factory, "stuck")

    failing.fail_ids.clear()
    assert await make_reaper(failing).sweep() == 1
    assert not await _exists(session_factory, "stuck")


async def test_one_failure_does_not_abort_the_sweep(make_reaper, storage, session_factory, add_record):
    await add_record("a", deleted=True)
    await add_record("b", deleted=True)
    await add_record("c", deleted=True)
    failing = FailingStorage(storage, fail_ids={"b"})

    assert await make_reaper(failing).sweep() == 2
    assert failing.deleted == [("attachments", "a"), ("attachments", "c")]
    assert await _exists(session_factory, "b")


async def test_unexpected_errors_are_isolated_per_record(make_reaper, storage, session_factory, add_record):
    await add_record("a", deleted=True)
    await add_record("b", deleted=True)
    failing = FailingStorage(storage, fail_ids={"a"}, error=RuntimeError("boom"))

    assert await make_reaper(failing).sweep() == 1
    assert await _exists(session_factory, "a")
    assert not await _exists(session_factory, "b")


async def test_missing_bytes_still_purge_the_record(make_reaper, storage, session_factory, add_record):
    await add_record("orphan", data=None, deleted=True)

    assert await make_reaper(storage).sweep() == 1
    assert not await _exists(session_factory, "orphan")


async def test_start_and_stop(make_reaper, storage):
    reaper = make_reaper(storage)
    task = reaper.start()
    assert reaper.start() is task

    await reaper.stop()
    assert task.done()
    assert reaper._task is None
