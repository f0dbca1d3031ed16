"""Wire-format base for API models.

Fields are snake_case in Python and camelCase in JSON; both spellings are
accepted on input. ``dump()`` is what the embed route sends, with unset
optional fields left out rather than sent as null.
"""
from pydantic import BaseModel
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = {
        "alias_generator": to_camel,
        "populate_by_name": True,
        "protected_namespaces": (),
    }

    def dump(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
