from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional, Tuple

from sqlalchemy import bindparam
from sqlalchemy.orm import aliased

from ..types.definitions import InputTypeDefinition
from .utils import coerce_value, enum_value

__all__ = [
    'OPERATOR_REGISTRY',
    'register_operator',
    'AliasManager',
    'FilterQuery',
    'walk_filters',
]

# Search operator symbol -> predicate builder
OPERATOR_REGISTRY: Dict[str, Callable[[Any, Any], Any]] = {
    'LT': lambda col, v: col < v,
    'LTE': lambda col, v: col <= v,
    'EQ': lambda col, v: col == v,
    'GTE': lambda col, v: col >= v,
    'GT': lambda col, v: col > v,
    'NEQ': lambda col, v: col != v,
}

Emit = Callable[[List[Any], Dict[str, Any]], None]


def register_operator(name: str, fn: Callable[[Any, Any], Any]) -> None:
    OPERATOR_REGISTRY[name] = fn


class AliasManager:
    """Deterministic join aliases per relationship path.

    The alias of ``parent.field`` is the parent alias followed by the
    field's first character (``e`` -> ``ea`` for ``author``). When that
    name is already used by another path a counter is appended (``ea1``,
    ``ea2`` ...). Asking again for the same path returns the same alias.
    """

    def __init__(self, root: str = 'e'):
        self.root = root
        self._by_path: Dict[Tuple[str, str], str] = {}
        self._taken = {root}

    def alias_for(self, parent_alias: str, field: str) -> Tuple[str, bool]:
        """Return ``(alias, created)`` for the path ``parent_alias.field``."""
        key = (parent_alias, field)
        existing = self._by_path.get(key)
        if existing is not None:
            return existing, False
        base = f"{parent_alias}{field[:1]}"
        candidate = base
        n = 1
        while candidate in self._taken:
            candidate = f"{base}{n}"
            n += 1
        self._taken.add(candidate)
        self._by_path[key] = candidate
        return candidate, True

    def __contains__(self, alias: str) -> bool:
        return alias in self._taken


class FilterQuery:
    """A select statement under construction plus its join aliases and bound parameters."""

    def __init__(self, entity: type, root_alias: str = 'e'):
        self.root_alias = root_alias
        self.root = aliased(entity, name=root_alias)
        self.aliases = AliasManager(root_alias)
        self._entities: Dict[str, Any] = {root_alias: self.root}
        self._counters: Dict[str, int] = {}
        self.parameters: Dict[str, Any] = {}
        self.joins: List[Tuple[str, str, str]] = []

    @property
    def joined(self) -> bool:
        return bool(self.joins)

    def entity(self, alias: str) -> Any:
        return self._entities[alias]

    def join(self, parent_alias: str, field: str) -> str:
        """Outer join ``parent_alias.field`` once per path and return the target alias."""
        alias, created = self.aliases.alias_for(parent_alias, field)
        if created:
            rel_attr = getattr(self._entities[parent_alias], field)
            target = rel_attr.property.mapper.class_
            self._entities[alias] = aliased(target, name=alias)
            self.joins.append((parent_alias, field, alias))
        return alias

    def apply_joins(self, stmt: Any) -> Any:
        for parent_alias, field, alias in self.joins:
            rel_attr = getattr(self._entities[parent_alias], field)
            stmt = stmt.outerjoin(rel_attr.of_type(self._entities[alias]))
        return stmt

    def bind(self, alias: str, field: str, value: Any, column: Any) -> Any:
        key = f"{alias}_{field}"
        n = self._counters.get(key, 0)
        self._counters[key] = n + 1
        name = f"{key}_{n}"
        self.parameters[name] = value
        return bindparam(name, value, type_=getattr(column, 'type', None))


def _predicates(value: Any) -> List[Dict[str, Any]]:
    if value is None:
        return []
    if isinstance(value, dict):
        return [value]
    return [p for p in value if p is not None]


def walk_filters(
    query: FilterQuery,
    shape: InputTypeDefinition,
    values: Optional[Dict[str, Any]],
    alias: str,
    emit: Emit,
) -> None:
    """Translate a search input value into predicates, joining through associations.

    Only fields declared on ``shape`` are considered. A field typed with a
    nested input shape joins the association and recurses under the new
    alias; any other field holds ``{operator, value}`` predicates which are
    handed to ``emit`` together with their bound parameters.
    """
    if not values:
        return
    for fname, cfg in shape.get_fields().items():
        if fname not in values or values[fname] is None:
            continue
        field_type = cfg['type']
        if isinstance(field_type, InputTypeDefinition):
            child_alias = query.join(alias, fname)
            walk_filters(query, field_type, values[fname], child_alias, emit)
            continue
        col_attr = getattr(query.entity(alias), fname)
        column = col_attr.property.columns[0]
        fragments: List[Any] = []
        params: Dict[str, Any] = {}
        for predicate in _predicates(values[fname]):
            op = enum_value(predicate.get('operator'))
            builder = OPERATOR_REGISTRY.get(op)
            if builder is None:
                raise ValueError(f"Unknown search operator: {op}")
            coerced = coerce_value(column, predicate.get('value'))
            if coerced is None:
                # == None / != None compile to IS NULL / IS NOT NULL
                fragments.append(builder(col_attr, None))
                continue
            param = query.bind(alias, fname, coerced, column)
            params[param.key] = coerced
            fragments.append(builder(col_attr, param))
        if fragments:
            emit(fragments, params)
