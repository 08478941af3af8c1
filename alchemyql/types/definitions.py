"""Deferred GraphQL type definitions.

Definitions form a mutable, name-addressed graph that is turned into
Strawberry types in two passes:

1. ``build_type`` creates the backing object for every named definition
   (a bare class for objects and inputs, a Strawberry enum, or the python
   scalar type) and reserves a slot for every wrapped name (``[X]``, ``X!``).
2. ``build_relations`` runs once every name exists. It resolves wrapped
   slots into typing annotations, attaches annotations and fields to the
   bare classes and decorates them with ``strawberry.type`` /
   ``strawberry.input``.

Because classes are created before any field is wired, entity types may
reference each other in cycles. Both passes track visited names so every
definition is materialized once and recursion terminates.
"""
from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Optional, Set, Union, get_args, get_origin

import strawberry
from strawberry import UNSET

from ..core.resolvers import make_field_resolver
from ..errors import SchemaBuildError

__all__ = [
    'TypeDefinition',
    'WrappedDefinition',
    'ScalarTypeDefinition',
    'ObjectTypeDefinition',
    'InputTypeDefinition',
    'EnumTypeDefinition',
    'ListTypeDefinition',
    'NonNullTypeDefinition',
    'unwrap',
]

Types = Dict[str, Any]
Wrapped = Dict[str, Any]
Visited = Set[str]


def _strip_optional(annotation: Any) -> Any:
    if get_origin(annotation) is Union:
        args = [a for a in get_args(annotation) if a is not type(None)]
        if len(args) == 1:
            return args[0]
    return annotation


class TypeDefinition:
    """Base of every definition; addressed by :attr:`name` only."""

    name: str
    description: Optional[str] = None

    def build_type(self, types: Types, wrapped: Wrapped, visited: Visited) -> None:
        raise NotImplementedError

    def build_relations(self, types: Types, wrapped: Wrapped, visited: Visited) -> None:
        raise NotImplementedError

    def ref(self, types: Types, wrapped: Wrapped) -> Any:
        """Annotation used by fields and arguments referencing this definition (nullable)."""
        try:
            return Optional[types[self.name]]
        except KeyError:
            raise SchemaBuildError(f"Type {self.name!r} is referenced but was never built") from None

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name}>"


class ScalarTypeDefinition(TypeDefinition):
    def __init__(self, name: str, python_type: Any, description: Optional[str] = None):
        self.name = name
        self.python_type = python_type
        self.description = description

    def build_type(self, types: Types, wrapped: Wrapped, visited: Visited) -> None:
        if self.name in visited:
            return
        visited.add(self.name)
        types[self.name] = self.python_type

    def build_relations(self, types: Types, wrapped: Wrapped, visited: Visited) -> None:
        visited.add(self.name)


class EnumTypeDefinition(TypeDefinition):
    """Enum with ``symbol -> {'value': ..., 'description': ...}`` entries."""

    def __init__(self, name: str, description: Optional[str] = None, values: Optional[Dict[str, Dict[str, Any]]] = None):
        self.name = name
        self.description = description
        self.values: Dict[str, Dict[str, Any]] = dict(values or {})

    def get_values(self) -> Dict[str, Dict[str, Any]]:
        return dict(self.values)

    def build_type(self, types: Types, wrapped: Wrapped, visited: Visited) -> None:
        if self.name in visited:
            return
        visited.add(self.name)
        members: Dict[str, Any] = {}
        for symbol, cfg in self.values.items():
            value = cfg.get('value', symbol)
            if cfg.get('description'):
                value = strawberry.enum_value(value, description=cfg['description'])
            members[symbol] = value
        py_enum = Enum(self.name, members)  # type: ignore[misc]
        py_enum.__module__ = __name__
        types[self.name] = strawberry.enum(py_enum, name=self.name, description=self.description)  # type: ignore

    def build_relations(self, types: Types, wrapped: Wrapped, visited: Visited) -> None:
        visited.add(self.name)


class ObjectTypeDefinition(TypeDefinition):
    """Output object type with an ordered, mutable field table.

    Field configuration keys: ``type`` (a :class:`TypeDefinition`),
    ``resolver`` (optional callable ``(root, info)``) and ``description``.
    Fields without a resolver read the value from the parent object or mapping.
    """

    def __init__(self, name: str, description: Optional[str] = None, fields: Optional[Dict[str, Dict[str, Any]]] = None):
        self.name = name
        self.description = description
        self.fields: Dict[str, Dict[str, Any]] = {}
        for fname, cfg in (fields or {}).items():
            self.add_field(fname, cfg['type'], {k: v for k, v in cfg.items() if k != 'type'})

    def add_field(self, name: str, type_def: TypeDefinition, config: Optional[Dict[str, Any]] = None) -> "ObjectTypeDefinition":
        cfg = dict(config or {})
        cfg['type'] = type_def
        self.fields[name] = cfg
        return self

    def remove_field(self, name: str) -> "ObjectTypeDefinition":
        self.fields.pop(name, None)
        return self

    def has_field(self, name: str) -> bool:
        return name in self.fields

    def get_field(self, name: str) -> Optional[Dict[str, Any]]:
        return self.fields.get(name)

    def get_fields(self) -> Dict[str, Dict[str, Any]]:
        return dict(self.fields)

    def build_type(self, types: Types, wrapped: Wrapped, visited: Visited) -> None:
        if self.name in visited:
            return
        visited.add(self.name)
        cls = type(self.name, (), {'__doc__': self.description})
        cls.__module__ = __name__
        types[self.name] = cls
        for cfg in self.fields.values():
            cfg['type'].build_type(types, wrapped, visited)

    def build_relations(self, types: Types, wrapped: Wrapped, visited: Visited) -> None:
        if self.name in visited:
            return
        visited.add(self.name)
        cls = types[self.name]
        anns: Dict[str, Any] = {}
        for fname, cfg in self.fields.items():
            type_def: TypeDefinition = cfg['type']
            type_def.build_relations(types, wrapped, visited)
            anns[fname] = type_def.ref(types, wrapped)
            self._attach_field(cls, fname, cfg)
        cls.__annotations__ = anns
        types[self.name] = self._decorate(cls)

    def _attach_field(self, cls: type, fname: str, cfg: Dict[str, Any]) -> None:
        resolver = cfg.get('resolver')
        if resolver is None:
            resolver = make_field_resolver(fname)
        setattr(cls, fname, strawberry.field(resolver=resolver, description=cfg.get('description')))

    def _decorate(self, cls: type) -> Any:
        return strawberry.type(cls, name=self.name, description=self.description)  # type: ignore


class InputTypeDefinition(ObjectTypeDefinition):
    """Input object; nullable fields default to ``UNSET`` so omitted keys stay distinguishable."""

    def _attach_field(self, cls: type, fname: str, cfg: Dict[str, Any]) -> None:
        required = isinstance(cfg['type'], NonNullTypeDefinition)
        kwargs: Dict[str, Any] = {}
        if cfg.get('description'):
            kwargs['description'] = cfg['description']
        if not required:
            kwargs['default'] = UNSET
        if kwargs:
            setattr(cls, fname, strawberry.field(**kwargs))

    def _decorate(self, cls: type) -> Any:
        return strawberry.input(cls, name=self.name, description=self.description)  # type: ignore


class WrappedDefinition(TypeDefinition):
    """Pseudo type wrapping another definition; lives in the wrapped table only."""

    def __init__(self, type_def: TypeDefinition):
        self.type_def = type_def

    @property
    def description(self) -> Optional[str]:  # type: ignore[override]
        return self.type_def.description

    def get_wrapped_type(self, recurse: bool = False) -> TypeDefinition:
        if recurse and isinstance(self.type_def, WrappedDefinition):
            return self.type_def.get_wrapped_type(recurse)
        return self.type_def

    def build_type(self, types: Types, wrapped: Wrapped, visited: Visited) -> None:
        if self.name in visited:
            return
        visited.add(self.name)
        wrapped.setdefault(self.name, None)
        self.type_def.build_type(types, wrapped, visited)

    def build_relations(self, types: Types, wrapped: Wrapped, visited: Visited) -> None:
        if self.name in visited:
            return
        visited.add(self.name)
        self.type_def.build_relations(types, wrapped, visited)
        wrapped[self.name] = self._wrap(self.type_def.ref(types, wrapped))

    def ref(self, types: Types, wrapped: Wrapped) -> Any:
        annotation = wrapped.get(self.name)
        if annotation is None:
            annotation = self._wrap(self.type_def.ref(types, wrapped))
            wrapped[self.name] = annotation
        return annotation

    def _wrap(self, inner: Any) -> Any:
        raise NotImplementedError


class ListTypeDefinition(WrappedDefinition):
    @property
    def name(self) -> str:  # type: ignore[override]
        return f"[{self.type_def.name}]"

    def _wrap(self, inner: Any) -> Any:
        return Optional[List[inner]]  # type: ignore[valid-type]


class NonNullTypeDefinition(WrappedDefinition):
    @property
    def name(self) -> str:  # type: ignore[override]
        return f"{self.type_def.name}!"

    def _wrap(self, inner: Any) -> Any:
        return _strip_optional(inner)


def unwrap(type_def: TypeDefinition) -> TypeDefinition:
    """Return the innermost named definition behind list/non-null wrappers."""
    while isinstance(type_def, WrappedDefinition):
        type_def = type_def.type_def
    return type_def
