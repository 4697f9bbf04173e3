"""Resolve filters on a foreign collection into a key-set predicate."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Literal, Mapping

from sqlalchemy import ColumnElement, or_, select
from sqlalchemy.orm import Session

from app.services.query_builder import FieldFilter

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CrossCollectionFilter:
    """Filters rows of one collection by attributes of a referenced one.

    ``fields`` describe predicates on ``foreign_model``. When at least one of
    them is present in the request, the matching ``foreign_key`` values are
    selected first (the present predicates are OR-ed) and the primary query
    is restricted with ``local_key IN (...)``.
    """

    foreign_model: Any
    foreign_key: Any
    local_key: Any
    fields: tuple[FieldFilter, ...]

    def resolve(
        self, db: Session, values: Mapping[str, Any]
    ) -> ColumnElement[bool] | Literal[False] | None:
        """Return the primary-query clause, ``False`` for no matches, or ``None``."""

        predicates = [f.predicate(values[f.name]) for f in self.fields if values.get(f.name) not in (None, "")]
        if not predicates:
            return None

        stmt = select(self.foreign_key).where(or_(*predicates))
        keys = list(db.scalars(stmt).all())
        logger.debug(
            "Cross-collection filter resolved",
            extra={"foreign": self.foreign_model.__tablename__, "matches": len(keys)},
        )
        if not keys:
            return False
        return self.local_key.in_(keys)


__all__ = ["CrossCollectionFilter"]
