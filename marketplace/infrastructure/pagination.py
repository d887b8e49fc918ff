"""Shared filter and page building for list queries.

The page query and the count query are both built from the single
``FilterClause`` returned by ``build_filter_clause`` so their predicates
cannot drift apart.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Sequence, Tuple

from marketplace.domain.values import parse_int


SQL_MAX_INTEGER = 2**63 - 1


@dataclass(frozen=True)
class PageRequest:
    page: int
    limit: int

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


@dataclass(frozen=True)
class FilterClause:
    sql: str
    params: Tuple[Any, ...]

    def where(self) -> str:
        return f"WHERE {self.sql}" if self.sql else ""


def page_request(page: Any, limit: Any, *, default_limit: int = 10, max_limit: int = 100) -> PageRequest:
    limit_value = parse_int(limit, default=default_limit, min_value=1, max_value=max_limit)
    # OFFSET is bound as a signed 64-bit integer by both backends.
    max_page = SQL_MAX_INTEGER // limit_value
    return PageRequest(
        page=parse_int(page, default=1, min_value=1, max_value=max_page),
        limit=limit_value,
    )


def build_filter_clause(filters: Mapping[str, Any], columns: Mapping[str, str]) -> FilterClause:
    """Equality predicates joined with AND, in the order of ``columns``.

    Unknown filter keys are ignored; ``None`` and empty strings mean "no filter".
    """
    conditions: List[str] = []
    params: List[Any] = []
    for key, column in columns.items():
        value = filters.get(key)
        if value is None or value == "":
            continue
        conditions.append(f"{column} = ?")
        params.append(value)
    return FilterClause(sql=" AND ".join(conditions), params=tuple(params))


def pagination_meta(request: PageRequest, total: int) -> Dict[str, int]:
    return {
        "page": request.page,
        "limit": request.limit,
        "total": int(total),
        "totalPages": int(math.ceil(total / request.limit)) if total else 0,
    }


def page_payload(rows: Sequence[Mapping[str, Any]], request: PageRequest, total: int) -> Dict[str, Any]:
    return {
        "data": [dict(row) for row in rows],
        "pagination": pagination_meta(request, total),
    }
