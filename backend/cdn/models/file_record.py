"""FileRecord model - uploaded file identity and lifecycle (bytes live in the storage backend)."""
from sqlalchemy import JSON, BigInteger, Boolean, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from cdn.models.base import Base, TimestampMixin
from cdn.schemas.file import FileMetadata, parse_file_metadata


class FileRecord(Base, TimestampMixin):
    __tablename__ = "files"
    __table_args__ = (
        Index("ix_files_deleted_flagged", "deleted", "flagged"),
    )

    id: Mapped[str] = mapped_column(String(26), primary_key=True)
    store: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    filename: Mapped[str] = mapped_column(String(500), nullable=False)
    # Tagged content classification, e.g. {"type": "IMAGE", "width": 640, "height": 480}
    metadata_json: Mapped[dict] = mapped_column("metadata", JSON, nullable=False)
    content_type: Mapped[str] = mapped_column(String(255), nullable=False)
    size: Mapped[int] = mapped_column(BigInteger, nullable=False)
    attached: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    deleted: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    flagged: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    @property
    def file_metadata(self) -> FileMetadata:
        return parse_file_metadata(self.metadata_json)

    @property
    def is_visible(self) -> bool:
        return self.attached and not self.deleted

    @property
    def is_purgeable(self) -> bool:
        return self.deleted and not self.flagged
