"""Name-keyed store of type definitions and root operations."""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional, Set

import strawberry
from strawberry.schema.config import StrawberryConfig

from ..errors import SchemaBuildError
from .builtins import builtin_definitions
from .definitions import (
    InputTypeDefinition,
    ListTypeDefinition,
    NonNullTypeDefinition,
    ObjectTypeDefinition,
    TypeDefinition,
    unwrap,
)
from .operations import MutationDefinition, QueryDefinition

_logger = logging.getLogger("alchemyql")

__all__ = ['TypeRegistry', 'SCALAR_KIND_MAP']

# Column kind tag -> built-in scalar name
SCALAR_KIND_MAP: Dict[str, str] = {
    'integer': 'Int',
    'bigint': 'Int',
    'smallint': 'Int',
    'float': 'Float',
    'decimal': 'Float',
    'boolean': 'Boolean',
    'string': 'String',
    'text': 'String',
    'uuid': 'String',
    'date': 'DateTime',
    'time': 'DateTime',
    'datetime': 'DateTime',
    'datetimetz': 'DateTime',
}


class TypeRegistry:
    """Holds every definition by name.

    The registry starts with the built-in scalars, ``SearchOperator``,
    ``SearchFilter``/``SearchFilterInput`` and ``SortingOrientation``.
    Adding a definition under an existing name replaces it.
    """

    def __init__(self) -> None:
        self._types: Dict[str, TypeDefinition] = {}
        self._queries: Dict[str, QueryDefinition] = {}
        self._mutations: Dict[str, MutationDefinition] = {}
        for type_def in builtin_definitions():
            self.add_type(type_def)

    @property
    def types(self) -> Mapping[str, TypeDefinition]:
        return dict(self._types)

    @property
    def queries(self) -> Mapping[str, QueryDefinition]:
        return dict(self._queries)

    @property
    def mutations(self) -> Mapping[str, MutationDefinition]:
        return dict(self._mutations)

    def add_type(self, type_def: TypeDefinition) -> "TypeRegistry":
        if type_def.name in self._types and self._types[type_def.name] is not type_def:
            _logger.debug("alchemyql: replacing type definition %s", type_def.name)
        self._types[type_def.name] = type_def
        return self

    def get_type(self, name: str) -> Optional[TypeDefinition]:
        return self._types.get(name)

    def has_type(self, name: str) -> bool:
        return name in self._types

    def add_query(self, query: QueryDefinition) -> "TypeRegistry":
        self._queries[query.name] = query
        return self

    def get_query(self, name: str) -> Optional[QueryDefinition]:
        return self._queries.get(name)

    def add_mutation(self, mutation: MutationDefinition) -> "TypeRegistry":
        self._mutations[mutation.name] = mutation
        return self

    def get_mutation(self, name: str) -> Optional[MutationDefinition]:
        return self._mutations.get(name)

    def _wrapped(self, type_def: TypeDefinition, wrapper: type) -> TypeDefinition:
        candidate = wrapper(type_def)
        existing = self.get_type(candidate.name)
        if existing is not None:
            return existing
        self.add_type(candidate)
        return candidate

    def list_of(self, type_def: TypeDefinition) -> TypeDefinition:
        """Registered ``[X]`` for ``type_def`` (created on first use)."""
        return self._wrapped(type_def, ListTypeDefinition)

    def non_null(self, type_def: TypeDefinition) -> TypeDefinition:
        """Registered ``X!`` for ``type_def`` (created on first use)."""
        return self._wrapped(type_def, NonNullTypeDefinition)

    def map_scalar_kind(self, kind: Optional[str], nullable: bool, is_list: bool = False) -> Optional[TypeDefinition]:
        """Map a column kind tag to a built-in scalar, wrapped as requested.

        Returns ``None`` for kinds without a GraphQL counterpart.
        """
        scalar_name = SCALAR_KIND_MAP.get(kind) if kind else None
        if scalar_name is None:
            return None
        type_def = self.get_type(scalar_name)
        if type_def is None:
            return None
        if is_list:
            type_def = self.list_of(type_def)
        if not nullable:
            type_def = self.non_null(type_def)
        return type_def

    def build_schema(self, config: Optional[StrawberryConfig] = None) -> strawberry.Schema:
        """Materialize every definition and return the Strawberry schema.

        Root operations may only reference registered definitions (through
        any list/non-null wrapping); anything else raises ``SchemaBuildError``.
        """
        types: Dict[str, Any] = {}
        wrapped: Dict[str, Any] = {}
        type_visited: Set[str] = set()
        relation_visited: Set[str] = set()
        for type_def in self._types.values():
            type_def.build_type(types, wrapped, type_visited)
        for type_def in self._types.values():
            type_def.build_relations(types, wrapped, relation_visited)

        def _root(name: str, operations: Mapping[str, Any], doc: str) -> Any:
            cls = type(name, (), {'__doc__': doc})
            cls.__module__ = __name__
            anns: Dict[str, Any] = {}
            for op_name, op in operations.items():
                for referenced in op.referenced_types():
                    named = unwrap(referenced)
                    if self._types.get(named.name) is not named:
                        raise SchemaBuildError(f"Root field {op_name} references unregistered type {named.name!r}")
                    referenced.build_type(types, wrapped, type_visited)
                    referenced.build_relations(types, wrapped, relation_visited)
                try:
                    field = op.build_field(types, wrapped)
                except SchemaBuildError:
                    raise
                except (TypeError, KeyError) as exc:
                    raise SchemaBuildError(f"Cannot build root field {op_name}: {exc}") from exc
                anns[op_name] = op.type_def.ref(types, wrapped)
                setattr(cls, op_name, field)
            if name == 'Query' and not operations:
                async def _ping() -> str:
                    return 'pong'
                anns['_ping'] = str
                setattr(cls, '_ping', strawberry.field(resolver=_ping))
            cls.__annotations__ = anns
            return strawberry.type(cls)  # type: ignore

        query = _root('Query', self._queries, 'Generated root query.')
        mutation = _root('Mutation', self._mutations, 'Generated root mutation.') if self._mutations else None
        object_types: List[Any] = [
            types[name]
            for name, type_def in self._types.items()
            if isinstance(type_def, ObjectTypeDefinition)
            and not isinstance(type_def, InputTypeDefinition)
            and name in types
        ]
        _logger.info(
            "alchemyql: built schema with %d types, %d queries, %d mutations",
            len(types), len(self._queries), len(self._mutations),
        )
        return strawberry.Schema(
            query=query,
            mutation=mutation,
            types=object_types,
            config=config or StrawberryConfig(auto_camel_case=False),
        )
