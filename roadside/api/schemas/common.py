"""
Shared pagination schemas.

List endpoints return a bare JSON array unless the caller passes ``page``,
in which case the same items come wrapped in a ``Page`` envelope.
"""

from __future__ import annotations

from typing import Generic, Optional, Sequence, TypeVar, Union

from pydantic import BaseModel, Field

T = TypeVar("T")


class Page(BaseModel, Generic[T]):
    """Page envelope returned when ``page`` is supplied."""

    count: int = Field(ge=0, description="Total number of matching items")
    page: int = Field(ge=1, description="Current page number (1-indexed)")
    page_size: int = Field(ge=0, description="Number of items per page")
    results: list[T]


def list_or_page(
    items: Sequence[T],
    *,
    total: int,
    page: Optional[int],
    page_size: int,
) -> Union[list[T], Page[T]]:
    """Bare list without ``page``; envelope with it."""
    if page is None:
        return list(items)
    return Page(count=total, page=page, page_size=page_size, results=list(items))
