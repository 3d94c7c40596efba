"""Shared pydantic base classes for wire-facing schemas."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Model serialised with camelCase keys and populated by either spelling."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict:
        """Return the JSON-ready camelCase representation."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class FrozenCamelModel(CamelModel):
    """Immutable variant used for values that must not change once produced."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, frozen=True
    )


__all__ = ["CamelModel", "FrozenCamelModel"]
