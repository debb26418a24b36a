"""Response envelope and camelCase base model shared by all routers."""

from __future__ import annotations

from typing import Generic, TypeVar

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

T = TypeVar("T")


class CamelModel(BaseModel):
    """Fields are snake_case in Python and camelCase on the wire; both are accepted on input."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Envelope(BaseModel, Generic[T]):
    success: bool = True
    message: str | None = None
    data: T | None = None
    count: int | None = None


def ok(data: T | None = None, message: str | None = None, count: int | None = None) -> Envelope[T]:
    return Envelope(success=True, message=message, data=data, count=count)
