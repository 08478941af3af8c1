"""Read side: point lookups, bulk lookups and filtered pages."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy import and_, func, inspect as sa_inspect, or_, select, tuple_

from .core.filters import FilterQuery, walk_filters
from .core.utils import coerce_value, enum_value
from .errors import InvalidPaginationError
from .metadata import EntityDescriptor
from .settings import AlchemyQLSettings
from .types.builtins import SORT_DESC
from .types.definitions import InputTypeDefinition

_logger = logging.getLogger("alchemyql")

__all__ = ['PageResult', 'QueryManager', 'identifier_values', 'primary_key_names']


@dataclass
class PageResult:
    total: Optional[int]
    page: int
    limit: int
    sort: Optional[Dict[str, Any]] = None
    filter: Optional[Dict[str, Any]] = None
    match: Optional[Dict[str, Any]] = None
    items: List[Any] = field(default_factory=list)


def primary_key_names(entity: type) -> List[str]:
    mapper = sa_inspect(entity)
    return [mapper.get_property_by_column(c).key for c in mapper.primary_key]


def identifier_values(entity: type, values: Optional[Dict[str, Any]]) -> Optional[tuple]:
    """Primary key tuple of ``entity`` taken from ``values``; ``None`` when any part is missing."""
    if not values:
        return None
    mapper = sa_inspect(entity)
    out = []
    for col in mapper.primary_key:
        name = mapper.get_property_by_column(col).key
        value = values.get(name)
        if value is None:
            return None
        out.append(coerce_value(col, value))
    return tuple(out)


class QueryManager:
    """Runs the read operations of one entity against an ``AsyncSession``."""

    def __init__(self, descriptor: EntityDescriptor, settings: Optional[AlchemyQLSettings] = None):
        self.descriptor = descriptor
        self.entity = descriptor.entity
        self.settings = settings or AlchemyQLSettings()

    def _column(self, name: str) -> Any:
        scalar = self.descriptor.scalar(name)
        return scalar.column if scalar is not None else None

    async def _reference(self, session: Any, name: str, value: Any) -> Any:
        assoc = self.descriptor.association(name)
        pk = identifier_values(assoc.target, value if isinstance(value, dict) else None)
        if pk is None:
            return None
        return await session.get(assoc.target, pk)

    async def get(self, session: Any, identifiers: Dict[str, Any]) -> Any:
        """First entity matching every identifier, or ``None``."""
        stmt = select(self.entity)
        for name, value in identifiers.items():
            if self.descriptor.is_association(name):
                target = await self._reference(session, name, value)
                if target is None:
                    return None
                stmt = stmt.where(getattr(self.entity, name) == target)
            else:
                stmt = stmt.where(getattr(self.entity, name) == coerce_value(self._column(name), value))
        result = await session.scalars(stmt.limit(1))
        return result.first()

    async def get_many(self, session: Any, identifiers: Dict[str, Sequence[Any]]) -> List[Any]:
        """Entities whose identifiers are in the given lists.

        An empty list for any identifier returns no rows rather than scanning
        the whole table. Composite identifiers are matched pairwise.
        """
        lists = {name: list(values or []) for name, values in identifiers.items()}
        if not lists or any(not values for values in lists.values()):
            return []
        names = list(lists.keys())
        coerced = [[coerce_value(self._column(n), v) for v in lists[n]] for n in names]
        stmt = select(self.entity)
        if len(names) == 1:
            stmt = stmt.where(getattr(self.entity, names[0]).in_(coerced[0]))
        else:
            if len({len(c) for c in coerced}) != 1:
                raise ValueError("Identifier lists must have the same length: " + ', '.join(names))
            columns = [getattr(self.entity, n) for n in names]
            stmt = stmt.where(tuple_(*columns).in_(list(zip(*coerced))))
        stmt = stmt.order_by(*[getattr(self.entity, n) for n in primary_key_names(self.entity)])
        result = await session.scalars(stmt)
        return list(result.all())

    def _normalize_limit(self, limit: int) -> int:
        if limit is None or limit <= 0:
            raise InvalidPaginationError(limit)
        max_limit = self.settings.max_page_limit
        if max_limit and limit > max_limit:
            _logger.debug("alchemyql: clamping limit %s to %s for %s", limit, max_limit, self.descriptor.name)
            return max_limit
        return limit

    def _order_by(self, query: FilterQuery, sort: Optional[Dict[str, Any]], sort_order: Optional[Sequence[str]]) -> List[Any]:
        clauses: List[Any] = []
        used = set()
        keys = list(sort_order) if sort_order is not None else list((sort or {}).keys())
        for key in keys:
            if key in used or not sort or sort.get(key) is None:
                continue
            if self.descriptor.scalar(key) is None:
                continue
            used.add(key)
            col = getattr(query.root, key)
            direction = enum_value(sort[key])
            clauses.append(col.desc() if str(direction).lower() == SORT_DESC else col.asc())
        for pk in primary_key_names(self.entity):
            if pk not in used:
                clauses.append(getattr(query.root, pk).asc())
        return clauses

    async def get_page(
        self,
        session: Any,
        page: int,
        limit: int,
        search_shape: InputTypeDefinition,
        sort: Optional[Dict[str, Any]] = None,
        filter: Optional[Dict[str, Any]] = None,
        match: Optional[Dict[str, Any]] = None,
        sort_order: Optional[Sequence[str]] = None,
        with_total: bool = True,
    ) -> PageResult:
        """One page of entities.

        ``filter`` predicates are AND-ed, ``match`` predicates are OR-ed and
        the two groups are AND-ed together. ``sort_order`` gives the order in
        which sort keys were written by the caller; primary key columns are
        appended as ascending tie-breakers. Pages start at 1 (0 is treated
        as 1). The count query only runs when ``with_total`` is set.
        """
        limit = self._normalize_limit(limit)
        page = max(page or 1, 1)
        query = FilterQuery(self.entity)
        and_group: List[Any] = []
        or_group: List[Any] = []

        def _emit_filter(fragments: List[Any], params: Dict[str, Any]) -> None:
            and_group.extend(fragments)

        def _emit_match(fragments: List[Any], params: Dict[str, Any]) -> None:
            or_group.extend(fragments)

        walk_filters(query, search_shape, filter, query.root_alias, _emit_filter)
        walk_filters(query, search_shape, match, query.root_alias, _emit_match)

        stmt = query.apply_joins(select(query.root))
        criteria: List[Any] = list(and_group)
        if or_group:
            criteria.append(or_(*or_group))
        if criteria:
            stmt = stmt.where(and_(*criteria))
        if query.joined:
            stmt = stmt.distinct()

        total: Optional[int] = None
        if with_total:
            count_stmt = select(func.count()).select_from(stmt.subquery())
            total = int(await session.scalar(count_stmt) or 0)

        stmt = stmt.order_by(*self._order_by(query, sort, sort_order))
        stmt = stmt.offset((page - 1) * limit).limit(limit)
        _logger.debug("alchemyql: page query for %s: %s params=%s", self.descriptor.name, stmt, query.parameters)
        result = await session.scalars(stmt)
        return PageResult(
            total=total,
            page=page,
            limit=limit,
            sort=sort,
            filter=filter,
            match=match,
            items=list(result.all()),
        )
