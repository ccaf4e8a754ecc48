"""Common/shared schemas."""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model that accepts and serializes camelCase keys for snake_case fields."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )


class ErrorResponse(BaseModel):
    """Body of every domain error response."""

    model_config = ConfigDict(extra="allow")

    detail: str
    type: str | None = None
    category: str | None = None


class HealthResponse(BaseModel):
    status: str
