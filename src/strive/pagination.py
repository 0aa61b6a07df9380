"""Offset pagination shared by the list endpoints."""

from __future__ import annotations

import math
from dataclasses import dataclass

from fastapi import Query
from pydantic import BaseModel

MAX_PAGE_SIZE = 100


@dataclass(frozen=True)
class PageParams:
    page: int
    limit: int


def page_params(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=MAX_PAGE_SIZE),
) -> PageParams:
    """FastAPI dependency reading ?page=&limit=."""
    return PageParams(page=page, limit=limit)


class PaginationMeta(BaseModel):
    page: int
    limit: int
    total: int
    pages: int

    @classmethod
    def build(cls, params: PageParams, total: int) -> PaginationMeta:
        return cls(
            page=params.page,
            limit=params.limit,
            total=total,
            pages=math.ceil(total / params.limit) if total else 0,
        )
