"""Page schema for list endpoints (wallet transactions, sessions, withdrawals).

Query: ?page=1&page_size=20
Body:  { "items": [...], "total": 100, "page": 1, "page_size": 20, "pages": 5 }
"""

from typing import TypeVar

from fastapi import Query
from fastapi_pagination import Page
from fastapi_pagination.customization import CustomizedPage, UseFieldsAliases, UseParamsFields

__all__ = ["CustomPage"]

T = TypeVar("T")

CustomPage = CustomizedPage[
    Page[T],
    UseParamsFields(
        size=Query(20, ge=1, le=100, alias="page_size", description="Page size"),
    ),
    UseFieldsAliases(
        size="page_size",
    ),
]
