"""
Base Pydantic schemas.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class BaseSchema(BaseModel):
    """Base Pydantic schema with common configuration.

    Fields are declared in snake_case and serialized with camelCase aliases,
    which is the JSON shape persistence and report collaborators consume.
    """

    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
        use_enum_values=True,
        alias_generator=to_camel,
    )

    def to_dict(self) -> dict[str, Any]:
        """
        Dump the model as its persisted JSON-compatible structure.

        Returns:
            Dictionary keyed by camelCase aliases
        """
        return self.model_dump(mode="json", by_alias=True)


class FrozenSchema(BaseSchema):
    """Immutable schema for values that are never mutated after creation."""

    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
        use_enum_values=True,
        alias_generator=to_camel,
        frozen=True,
    )
