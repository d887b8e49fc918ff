from __future__ import annotations

from typing import Any, Iterable


class BaseRepository:
    @staticmethod
    def row_to_dict(row: Any) -> dict | None:
        return dict(row) if row else None

    @staticmethod
    def rows_to_dicts(rows: Iterable[Any]) -> list[dict]:
        return [dict(row) for row in rows]

    @staticmethod
    def scalar(row: Any, key: str) -> Any:
        if row is None:
            return None
        if isinstance(row, dict):
            return row.get(key)
        return row[key]

    @staticmethod
    def rowcount(cursor: Any) -> int:
        return max(0, int(getattr(cursor, "rowcount", 0) or 0))
