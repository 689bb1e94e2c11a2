"""Base model with camelCase serialization for API input and output."""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base for every API-facing model: camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )

    def to_api(self) -> dict:
        """JSON-ready camelCase dict (used for SSE payloads)."""
        return self.model_dump(by_alias=True, mode="json")
