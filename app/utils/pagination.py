"""Uniform pagination envelope for list endpoints."""
from __future__ import annotations

import math
from typing import Any, Sequence


def total_pages(total: int, limit: int) -> int:
    """Return ``ceil(total / limit)``; an empty result has zero pages."""

    if total <= 0:
        return 0
    return math.ceil(total / limit)


def pagination_meta(*, page: int, limit: int, total: int) -> dict[str, int]:
    return {
        "page": page,
        "limit": limit,
        "total": total,
        "totalPages": total_pages(total, limit),
    }


def paginate(key: str, items: Sequence[Any], *, total: int, page: int, limit: int) -> dict[str, Any]:
    """Shape a page of rows as ``{key: [...], "pagination": {...}}``.

    ``page`` and ``limit`` must be the effective (clamped) values.
    """

    return {
        key: list(items),
        "pagination": pagination_meta(page=page, limit=limit, total=total),
    }


__all__ = ["paginate", "pagination_meta", "total_pages"]
