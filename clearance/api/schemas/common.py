"""Shared schema building blocks for the clearance API."""

from dataclasses import dataclass
from typing import Any, Generic, List, Optional, TypeVar

from fastapi import Query
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

T = TypeVar("T")

MAX_PER_PAGE = 100


class CamelModel(BaseModel):
    """Exchanges camelCase JSON while keeping snake_case attributes."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


@dataclass(frozen=True)
class PageRequest:
    page: int
    per_page: int

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.per_page


def page_request(
    page: int = Query(1, ge=1, description="Page number"),
    per_page: int = Query(20, ge=1, le=MAX_PER_PAGE, description="Items per page"),
) -> PageRequest:
    """Query-string pagination dependency."""
    return PageRequest(page=page, per_page=per_page)


class PaginatedResponse(BaseModel, Generic[T]):
    items: List[T]
    total: int
    page: int
    per_page: int
    pages: int

    @classmethod
    def of(cls, items: List[T], total: int, request: PageRequest) -> "PaginatedResponse[T]":
        pages = -(-total // request.per_page)
        return cls(items=items, total=total, page=request.page, per_page=request.per_page, pages=pages)


class ErrorResponse(BaseModel):
    """Body of every error response; ``detail`` carries structured context."""

    error: str
    detail: Optional[Any] = None
    code: Optional[str] = None
