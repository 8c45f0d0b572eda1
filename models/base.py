"""Shared pydantic configuration for replicated models"""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class WireModel(BaseModel):
    """
    Immutable model serialized in camelCase.

    Snapshots travel between browser surfaces and Python surfaces, so the wire
    form uses camelCase keys while Python code uses snake_case attributes.
    """

    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        alias_generator=to_camel,
    )

    def to_wire(self) -> dict:
        """Serialize to a JSON-compatible dict with camelCase keys."""
        return self.model_dump(mode="json", by_alias=True)
