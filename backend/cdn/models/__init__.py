"""Import all models so SQLAlchemy metadata knows about them."""
from cdn.models.base import Base
from cdn.models.file_record import FileRecord

__all__ = ["Base", "FileRecord"]
