"""Generic pagination, filtering and sorting for list endpoints.

Every list endpoint describes its collection once with an :class:`EntitySpec`
and then goes through the same three steps::

    query = ListQuery.build(spec, page, limit, sort_by, sort_order)
    plan = build_plan(spec, query, filters)
    rows, total = fetch_page(db, plan)

The count and the page statements are derived from the same predicate list so
``total`` always describes the rows being paged over.
"""
from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable, Mapping, Sequence

from pydantic import BaseModel
from sqlalchemy import ColumnElement, Select, func, or_, select
from sqlalchemy.orm import Session

from app.utils.errors import ValidationError
from app.utils.time import parse_range_bound

if TYPE_CHECKING:  # pragma: no cover
    from app.services.cross_filters import CrossCollectionFilter

logger = logging.getLogger(__name__)

DEFAULT_MAX_LIMIT = 100
SORT_ORDERS = ("ASC", "DESC")


class Match(str, enum.Enum):
    EXACT = "exact"
    ICONTAINS = "icontains"
    GTE = "gte"
    LTE = "lte"
    IN = "in"


def escape_like(value: str) -> str:
    """Escape LIKE wildcards so user input is matched literally."""

    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _coerce_bound(name: str, value: Any, *, end: bool) -> Any:
    if not isinstance(value, str):
        return value
    try:
        return parse_range_bound(value, end=end)
    except ValueError as exc:
        raise ValidationError(
            f"Invalid date for '{name}'",
            details=[{"field": name, "value": value}],
        ) from exc


@dataclass(frozen=True)
class FieldFilter:
    """Maps one filter key onto one or more columns.

    When several columns are given the per-column predicates are OR-ed, which
    is how a single ``search`` term spans multiple display fields. ``clause``
    replaces the column logic entirely for filters that need a sub-query.
    """

    name: str
    columns: tuple[Any, ...] = ()
    match: Match = Match.EXACT
    clause: Callable[[Any], ColumnElement[bool]] | None = None

    def predicate(self, value: Any) -> ColumnElement[bool]:
        if self.clause is not None:
            return self.clause(value)

        if self.match is Match.ICONTAINS:
            pattern = f"%{escape_like(str(value))}%"
            parts = [column.ilike(pattern, escape="\\") for column in self.columns]
        elif self.match is Match.GTE:
            bound = _coerce_bound(self.name, value, end=False)
            parts = [column >= bound for column in self.columns]
        elif self.match is Match.LTE:
            bound = _coerce_bound(self.name, value, end=True)
            parts = [column <= bound for column in self.columns]
        elif self.match is Match.IN:
            values = list(value) if isinstance(value, (list, tuple, set, frozenset)) else [value]
            parts = [column.in_(values) for column in self.columns]
        else:
            parts = [column == value for column in self.columns]

        if len(parts) == 1:
            return parts[0]
        return or_(*parts)


@dataclass(frozen=True)
class EntitySpec:
    """Static description of a listable collection."""

    name: str
    model: Any
    sort_columns: Mapping[str, Any]
    default_sort: str = "created_at"
    default_order: str = "DESC"
    default_limit: int = 20
    max_limit: int = DEFAULT_MAX_LIMIT
    filters: tuple[FieldFilter, ...] = ()
    cross_filters: tuple["CrossCollectionFilter", ...] = ()
    tiebreaker: Any = None

    def filter_named(self, name: str) -> FieldFilter | None:
        for item in self.filters:
            if item.name == name:
                return item
        return None

    @property
    def primary_key(self) -> Any:
        if self.tiebreaker is not None:
            return self.tiebreaker
        return self.model.__mapper__.primary_key[0]


@dataclass(frozen=True)
class ListQuery:
    page: int
    limit: int
    sort_by: str
    sort_order: str

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit

    @classmethod
    def build(
        cls,
        spec: EntitySpec,
        page: int | None = None,
        limit: int | None = None,
        sort_by: str | None = None,
        sort_order: str | None = None,
    ) -> "ListQuery":
        """Clamp paging values and validate sorting against ``spec``.

        Out-of-range values are clamped and unknown sort keys fall back to the
        entity defaults rather than raising.
        """

        effective_page = page if page is not None and page >= 1 else 1

        if limit is None:
            effective_limit = spec.default_limit
        else:
            effective_limit = min(max(limit, 1), spec.max_limit)

        effective_sort = sort_by if sort_by in spec.sort_columns else spec.default_sort
        order = (sort_order or "").upper()
        effective_order = order if order in SORT_ORDERS else spec.default_order

        return cls(
            page=effective_page,
            limit=effective_limit,
            sort_by=effective_sort,
            sort_order=effective_order,
        )


@dataclass
class QueryPlan:
    spec: EntitySpec
    query: ListQuery
    where: list[ColumnElement[bool]] = field(default_factory=list)
    # Set when a cross-collection filter matched nothing.
    empty: bool = False

    def _apply(self, stmt: Select) -> Select:
        for clause in self.where:
            stmt = stmt.where(clause)
        return stmt

    def count_statement(self) -> Select:
        return self._apply(select(func.count()).select_from(self.spec.model))

    def page_statement(self) -> Select:
        sort_column = self.spec.sort_columns[self.query.sort_by]
        tiebreak = self.spec.primary_key
        if self.query.sort_order == "ASC":
            order = (sort_column.asc(), tiebreak.asc())
        else:
            order = (sort_column.desc(), tiebreak.desc())
        stmt = self._apply(select(self.spec.model))
        return stmt.order_by(*order).offset(self.query.offset).limit(self.query.limit)


def _present_filters(filters: BaseModel | Mapping[str, Any] | None) -> dict[str, Any]:
    if filters is None:
        return {}
    if isinstance(filters, BaseModel):
        values = filters.model_dump(exclude_none=True)
    else:
        values = {key: value for key, value in filters.items() if value is not None}
    return {key: value for key, value in values.items() if value != ""}


def build_plan(
    spec: EntitySpec,
    query: ListQuery,
    filters: BaseModel | Mapping[str, Any] | None = None,
    *,
    db: Session | None = None,
    extra: Sequence[ColumnElement[bool]] = (),
) -> QueryPlan:
    """Translate present filters into a :class:`QueryPlan`.

    Keys without a matching :class:`FieldFilter` are ignored. Cross-collection
    filters need ``db`` to resolve their key set before the primary query.
    """

    values = _present_filters(filters)
    plan = QueryPlan(spec=spec, query=query, where=list(extra))

    for name, value in values.items():
        field_filter = spec.filter_named(name)
        if field_filter is not None:
            plan.where.append(field_filter.predicate(value))

    if spec.cross_filters:
        if db is None:
            raise ValueError(f"{spec.name}: cross-collection filters need a session")
        for cross in spec.cross_filters:
            clause = cross.resolve(db, values)
            if clause is None:
                continue
            if clause is False:
                plan.empty = True
                break
            plan.where.append(clause)

    return plan


def fetch_page(db: Session, plan: QueryPlan) -> tuple[list[Any], int]:
    """Run the count and page statements of ``plan``."""

    if plan.empty:
        return [], 0

    total = db.execute(plan.count_statement()).scalar_one()
    if not total:
        return [], 0
    rows = list(db.scalars(plan.page_statement()).all())
    return rows, int(total)


__all__ = [
    "DEFAULT_MAX_LIMIT",
    "EntitySpec",
    "FieldFilter",
    "ListQuery",
    "Match",
    "QueryPlan",
    "build_plan",
    "escape_like",
    "fetch_page",
]
