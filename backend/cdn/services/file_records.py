"""File record store: keyed lookups over the ``files`` table.

All functions take an ``AsyncSession`` and translate SQLAlchemy failures
into ``DATABASE_ERROR``. ``find_visible`` is the only read path used for
serving, so soft-deleted and unattached records never leak to callers.
"""
import logging
from typing import Sequence

from sqlalchemy import delete as sa_delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from cdn.errors import CDNError, ErrorKind
from cdn.models.file_record import FileRecord

logger = logging.getLogger(__name__)


async def insert(db: AsyncSession, record: FileRecord) -> FileRecord:
    try:
        db.add(record)
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error(f"Failed to insert file record {record.id}: {e}")
        raise CDNError(ErrorKind.DATABASE_ERROR) from e
    return record


async def find_visible(db: AsyncSession, file_id: str, store_id: str) -> FileRecord:
    """Return an attached, non-deleted record of ``store_id`` or raise NOT_FOUND."""
    try:
        result = await db.execute(
            select(FileRecord).where(
                FileRecord.id == file_id,
                FileRecord.store == store_id,
                FileRecord.attached.is_(True),
                FileRecord.deleted.is_(False),
            )
        )
        record = result.scalar_one_or_none()
    except SQLAlchemyError as e:
        logger.error(f"Failed to look up file {store_id}/{file_id}: {e}")
        raise CDNError(ErrorKind.DATABASE_ERROR) from e
    if record is None:
        raise CDNError(ErrorKind.NOT_FOUND)
    return record


async def find_purgeable(db: AsyncSession) -> Sequence[FileRecord]:
    """Soft-deleted records not held for moderation."""
    try:
        result = await db.execute(
            select(FileRecord)
            .where(FileRecord.deleted.is_(True), FileRecord.flagged.is_(False))
            .order_by(FileRecord.id)
        )
        return result.scalars().all()
    except SQLAlchemyError as e:
        logger.error(f"Failed to list purgeable files: {e}")
        raise CDNError(ErrorKind.DATABASE_ERROR) from e


async def delete(db: AsyncSession, file_id: str, *, commit: bool = True) -> None:
    """Remove a record row. With ``commit=False`` the caller owns the transaction."""
    try:
        await db.execute(sa_delete(FileRecord).where(FileRecord.id == file_id))
        if commit:
            await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error(f"Failed to delete file record {file_id}: {e}")
        raise CDNError(ErrorKind.DATABASE_ERROR) from e
