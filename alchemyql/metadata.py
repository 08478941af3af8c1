"""Entity metadata read from SQLAlchemy mappers.

:func:`describe_entities` inspects declarative models once and produces the
plain descriptors the schema builder and the query/mutation engines work
with, so nothing downstream touches mapper internals directly.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional, Union

from sqlalchemy import Column
from sqlalchemy import inspect as sa_inspect
from sqlalchemy.orm import MANYTOMANY, MANYTOONE, Mapper
from sqlalchemy.orm.exc import UnmappedColumnError
from sqlalchemy.sql import sqltypes
from sqlalchemy.types import TypeDecorator

from .naming import qualified_name

_logger = logging.getLogger("alchemyql")

__all__ = [
    'ScalarField',
    'AssociationField',
    'FieldAccessor',
    'EntityDescriptor',
    'column_kind',
    'describe_entity',
    'describe_entities',
]

# Checked in order: subclasses before their bases.
_KIND_TABLE = (
    (sqltypes.Enum, None),
    (sqltypes.JSON, None),
    (sqltypes.ARRAY, None),
    (sqltypes.LargeBinary, None),
    (sqltypes.Interval, None),
    (sqltypes.BigInteger, 'bigint'),
    (sqltypes.SmallInteger, 'smallint'),
    (sqltypes.Integer, 'integer'),
    (sqltypes.Float, 'float'),
    (sqltypes.Numeric, 'decimal'),
    (sqltypes.Boolean, 'boolean'),
    (sqltypes.Uuid, 'uuid'),
    (sqltypes.Text, 'text'),
    (sqltypes.String, 'string'),
    (sqltypes.DateTime, 'datetime'),
    (sqltypes.Date, 'date'),
    (sqltypes.Time, 'time'),
)


def column_kind(col_type: Any) -> Optional[str]:
    """Return the kind tag of a SQLAlchemy column type, ``None`` when it has no GraphQL mapping."""
    if isinstance(col_type, TypeDecorator) and not isinstance(col_type, sqltypes.Interval):
        col_type = col_type.impl_instance
    for sa_type, kind in _KIND_TABLE:
        if isinstance(col_type, sa_type):
            if kind == 'datetime' and getattr(col_type, 'timezone', False):
                return 'datetimetz'
            return kind
    return None


@dataclass
class ScalarField:
    name: str
    kind: Optional[str]
    nullable: bool
    input_optional: bool
    column: Any = None
    description: Optional[str] = None


@dataclass
class AssociationField:
    name: str
    target: type
    target_name: str
    cardinality: str  # 'one' | 'many'
    owning_side: bool
    nullable: bool
    mapped_by: Optional[str] = None
    join_columns: List[Any] = field(default_factory=list)

    @property
    def is_collection(self) -> bool:
        return self.cardinality == 'many'


@dataclass
class FieldAccessor:
    """Static read/write pair for one mapped attribute."""
    name: str
    read: Callable[[Any], Any]
    write: Callable[[Any, Any], None]


def _accessor(name: str) -> FieldAccessor:
    def _read(obj: Any) -> Any:
        return getattr(obj, name)

    def _write(obj: Any, value: Any) -> None:
        setattr(obj, name, value)

    return FieldAccessor(name=name, read=_read, write=_write)


@dataclass
class EntityDescriptor:
    entity: type
    name: str
    abstract: bool = False
    scalars: List[ScalarField] = field(default_factory=list)
    associations: List[AssociationField] = field(default_factory=list)
    identifiers: List[str] = field(default_factory=list)
    accessors: Dict[str, FieldAccessor] = field(default_factory=dict)
    description: Optional[str] = None

    def scalar(self, name: str) -> Optional[ScalarField]:
        for s in self.scalars:
            if s.name == name:
                return s
        return None

    def association(self, name: str) -> Optional[AssociationField]:
        for a in self.associations:
            if a.name == name:
                return a
        return None

    def is_association(self, name: str) -> bool:
        return self.association(name) is not None

    @property
    def scalar_identifiers(self) -> List[str]:
        return [i for i in self.identifiers if not self.is_association(i)]


def _input_optional(col: Column) -> bool:
    if col.nullable or col.default is not None or col.server_default is not None:
        return True
    if col.foreign_keys:
        return True
    if col.primary_key and isinstance(col.type, sqltypes.Integer):
        table = col.table
        single_pk = table is not None and len(table.primary_key.columns) == 1
        return col.autoincrement is True or (col.autoincrement == 'auto' and single_pk)
    return False


def _describe_scalars(mapper: Mapper) -> List[ScalarField]:
    out: List[ScalarField] = []
    for prop in mapper.column_attrs:
        col = prop.columns[0]
        if not isinstance(col, Column):
            # column_property() expressions are read-only
            continue
        kind = column_kind(col.type)
        out.append(ScalarField(
            name=prop.key,
            kind=kind,
            nullable=bool(col.nullable),
            input_optional=_input_optional(col),
            column=col,
            description=col.comment or None,
        ))
    return out


def _describe_association(rel: Any) -> AssociationField:
    target = rel.mapper.class_
    owning = rel.direction is MANYTOONE or (rel.direction is MANYTOMANY and not rel.viewonly)
    join_columns = [c for pair in rel.local_remote_pairs for c in pair if c.foreign_keys]
    nullable = not any(c.nullable is False for c in join_columns)
    if not rel.uselist and not owning:
        # inverse side of a one-to-one: the related row may not exist yet
        nullable = True
    return AssociationField(
        name=rel.key,
        target=target,
        target_name=qualified_name(target),
        cardinality='many' if rel.uselist else 'one',
        owning_side=owning,
        nullable=nullable,
        mapped_by=rel.back_populates or (rel.backref if isinstance(rel.backref, str) else None),
        join_columns=join_columns,
    )


def _identifier_names(mapper: Mapper) -> List[str]:
    names: List[str] = []
    for col in mapper.primary_key:
        try:
            names.append(mapper.get_property_by_column(col).key)
            continue
        except UnmappedColumnError:
            pass
        for rel in mapper.relationships:
            if rel.direction is MANYTOONE and col in rel.local_columns:
                names.append(rel.key)
                break
    return names


def _entity_description(cls: type, mapper: Mapper) -> Optional[str]:
    doc = cls.__dict__.get('__doc__')
    if doc:
        return ' '.join(doc.split())
    table = getattr(mapper, 'local_table', None)
    return getattr(table, 'comment', None) or None


def describe_entity(cls_or_mapper: Union[type, Mapper]) -> EntityDescriptor:
    mapper: Mapper = cls_or_mapper if isinstance(cls_or_mapper, Mapper) else sa_inspect(cls_or_mapper)
    cls = mapper.class_
    scalars = _describe_scalars(mapper)
    associations = [_describe_association(rel) for rel in mapper.relationships]
    accessors = {s.name: _accessor(s.name) for s in scalars}
    accessors.update({a.name: _accessor(a.name) for a in associations})
    descriptor = EntityDescriptor(
        entity=cls,
        name=qualified_name(cls),
        abstract=bool(cls.__dict__.get('__abstract__', False)),
        scalars=scalars,
        associations=associations,
        identifiers=_identifier_names(mapper),
        accessors=accessors,
        description=_entity_description(cls, mapper),
    )
    _logger.debug(
        "alchemyql: described %s (%d scalars, %d associations, identifiers=%s)",
        descriptor.name, len(scalars), len(associations), descriptor.identifiers,
    )
    return descriptor


def describe_entities(source: Any) -> List[EntityDescriptor]:
    """Describe every mapped class reachable from ``source``.

    ``source`` may be a declarative base, a SQLAlchemy ``registry``, or an
    iterable of mapped classes / mappers / ready-made descriptors. Order is
    preserved (registries are sorted by fully qualified name for stability).
    """
    items: Iterable[Any]
    reg = getattr(source, 'registry', None)
    if reg is not None and hasattr(reg, 'mappers'):
        source = reg
    if hasattr(source, 'mappers') and not isinstance(source, Mapper):
        items = sorted(source.mappers, key=lambda m: qualified_name(m.class_))
    else:
        items = source
    out: List[EntityDescriptor] = []
    for item in items:
        if isinstance(item, EntityDescriptor):
            out.append(item)
        else:
            out.append(describe_entity(item))
    return out
