"""File classification and upload/serve schemas."""
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter

from cdn.schemas.base import CamelModel
from cdn.stores import ContentType, Store


class GenericFile(BaseModel):
    type: Literal["FILE"] = "FILE"


class TextFile(BaseModel):
    type: Literal["TEXT"] = "TEXT"


class ImageFile(BaseModel):
    type: Literal["IMAGE"] = "IMAGE"
    width: int
    height: int


class VideoFile(BaseModel):
    type: Literal["VIDEO"] = "VIDEO"
    width: int
    height: int


class AudioFile(BaseModel):
    type: Literal["AUDIO"] = "AUDIO"


FileMetadata = Annotated[
    Union[GenericFile, TextFile, ImageFile, VideoFile, AudioFile],
    Field(discriminator="type"),
]

_file_metadata_adapter = TypeAdapter(FileMetadata)


def parse_file_metadata(data: dict) -> FileMetadata:
    return _file_metadata_adapter.validate_python(data)


def satisfies_restriction(metadata: FileMetadata, restriction: Optional[ContentType]) -> bool:
    """Whether a classified upload may enter a store restricted to ``restriction``."""
    if restriction is None:
        return True
    if restriction is ContentType.IMAGE:
        return isinstance(metadata, ImageFile)
    if restriction is ContentType.VIDEO:
        return isinstance(metadata, VideoFile)
    if restriction is ContentType.AUDIO:
        return isinstance(metadata, AudioFile)
    raise ValueError(f"Unknown content type restriction: {restriction}")


class ResizeRequest(CamelModel):
    size: Optional[int] = None
    max_side: Optional[int] = None
    width: Optional[int] = None
    height: Optional[int] = None


class UploadResponse(CamelModel):
    id: str


class ServiceResponse(BaseModel):
    service: str
    version: str
    stores: dict[str, Store]
