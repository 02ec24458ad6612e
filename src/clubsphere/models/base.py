"""Shared pydantic base for camelCase documents and payloads."""

from typing import Any, Dict, Iterable

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model serialising to camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_document(self, keep_null: Iterable[str] = ()) -> Dict[str, Any]:
        """
        Dump the model for insertion into MongoDB.

        `None` fields are dropped so sparse indexes skip them, except for the
        aliases listed in `keep_null`, which are stored as explicit nulls.
        """
        document = self.model_dump(by_alias=True, exclude_none=True)
        for key in keep_null:
            document.setdefault(key, None)
        return document
