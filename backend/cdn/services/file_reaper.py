"""Background file reaper.

Sweeps the files table for soft-deleted, unflagged records and purges them
from the database and the storage backend. Runs as an asyncio task within
the FastAPI process.

Per record the row delete and the byte delete share one transaction: the row
is deleted first, and if the backend refuses the byte delete the row delete
is rolled back so the record is retried on the next sweep.
"""
import asyncio
import logging
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from cdn.errors import CDNError
from cdn.services import file_records
from cdn.services.file_storage import FileStorage

logger = logging.getLogger(__name__)


class FileReaper:
    def __init__(
        self,
        storage: FileStorage,
        session_factory: async_sessionmaker[AsyncSession],
        interval: float = 900.0,
        item_delay: float = 0.05,
    ):
        self.storage = storage
        self.session_factory = session_factory
        self.interval = interval
        self.item_delay = item_delay
        self._sweep_lock = asyncio.Lock()
        self._task: Optional[asyncio.Task] = None

    async def _purge(self, db: AsyncSession, store: str, file_id: str) -> bool:
        """Purge one record. Returns False when it must be retried next sweep."""
        try:
            await file_records.delete(db, file_id, commit=False)
            await self.storage.delete(store, file_id)
        except CDNError as e:
            await db.rollback()
            logger.warning(f"Failed to purge file {store}/{file_id}, will retry: {e}")
            return False
        await db.commit()
        return True

    async def sweep(self) -> int:
        """Run one pass over purgeable records. Returns the number purged."""
        async with self._sweep_lock:
            async with self.session_factory() as db:
                records = await file_records.find_purgeable(db)
                targets = [(r.store, r.id) for r in records]
                if targets:
                    logger.info(f"Reaper found {len(targets)} file(s) to purge")

                purged = 0
                for index, (store, file_id) in enumerate(targets):
                    if index > 0:
                        await asyncio.sleep(self.item_delay)
                    try:
                        if await self._purge(db, store, file_id):
                            purged += 1
                    except Exception as e:
                        await db.rollback()
                        logger.error(f"Unexpected error purging file {store}/{file_id}: {e}")

            if targets:
                logger.info(f"Reaper purged {purged}/{len(targets)} file(s)")
            return purged

    async def run(self) -> None:
        """Main loop. Sweeps, then sleeps ``interval`` seconds, forever."""
        logger.info(f"File reaper started (interval={self.interval}s)")
        while True:
            try:
                await self.sweep()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"Reaper sweep error: {e}")
            await asyncio.sleep(self.interval)

    def start(self) -> asyncio.Task:
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self.run(), name="file-reaper")
        return self._task

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("File reaper stopped")
