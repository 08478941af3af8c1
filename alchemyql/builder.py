"""Schema builder: turns entity metadata into registry definitions and root operations.

Typical use::

    registry = TypeRegistry()
    schema = AlchemyGraphQL(registry, Base).build()
    result = await schema.execute(query, context_value={'db_session': session})

The build runs in three phases. Phase A registers seven skeleton types per
entity (object, input, search, search input, sort, sort input, page) with
their scalar fields. Phase B wires association fields once every entity
has its skeleton, which makes cyclic entity graphs possible. Phase C adds
the root queries and mutations.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Optional

import strawberry
from strawberry.types.nodes import SelectedField

from .core.resolvers import make_field_resolver
from .core.utils import get_context_lock, input_to_dict, require_db_session
from .metadata import EntityDescriptor, describe_entities
from .mutations import MutationListener, MutationManager
from .naming import NameGenerator, SimpleNameGenerator, map_graphql_to_python, qualified_name
from .query import QueryManager
from .settings import AlchemyQLSettings
from .types.builtins import SEARCH_FILTER, SEARCH_FILTER_INPUT, SORTING_ORIENTATION
from .types.definitions import InputTypeDefinition, ObjectTypeDefinition, TypeDefinition
from .types.operations import MutationDefinition, QueryDefinition
from .types.registry import TypeRegistry

_logger = logging.getLogger("alchemyql")

__all__ = ['AlchemyGraphQL']

SUFFIX_SEARCH = 'Search'
SUFFIX_SORT = 'Sort'
SUFFIX_PAGE = 'Page'
SUFFIX_INPUT = 'Input'
SUFFIX_SEARCH_INPUT = 'SearchInput'
SUFFIX_SORT_INPUT = 'SortInput'
SUFFIX_JOIN_INPUT = 'JoinInput'


def _selects(selections: Iterable[Any], name: str) -> bool:
    """True when ``name`` is selected directly or through fragments."""
    for sel in selections or []:
        if isinstance(sel, SelectedField):
            if sel.name == name:
                return True
        elif _selects(getattr(sel, 'selections', None) or [], name):
            return True
    return False


class AlchemyGraphQL:
    """Generate a Strawberry schema exposing CRUD and paginated search for mapped entities.

    ``entities`` is a declarative base, a SQLAlchemy ``registry`` or an
    iterable of mapped classes / :class:`EntityDescriptor` objects.
    """

    def __init__(
        self,
        registry: Optional[TypeRegistry],
        entities: Any,
        name_generator: Optional[NameGenerator] = None,
        listener: Optional[MutationListener] = None,
        settings: Optional[AlchemyQLSettings] = None,
    ):
        self.registry = registry if registry is not None else TypeRegistry()
        self.name_generator = name_generator or SimpleNameGenerator()
        self.listener = listener
        self.settings = settings or AlchemyQLSettings()
        self.descriptors: List[EntityDescriptor] = [d for d in describe_entities(entities) if not d.abstract]
        self._catalog: Dict[type, EntityDescriptor] = {d.entity: d for d in self.descriptors}
        self._query_managers: Dict[type, QueryManager] = {}
        self._mutation_managers: Dict[type, MutationManager] = {}

    # --- naming ---
    def type_name(self, entity: Any) -> str:
        """Base GraphQL type name of an entity class or descriptor."""
        if isinstance(entity, EntityDescriptor):
            return self.name_generator.generate(entity.name)
        descriptor = self._catalog.get(entity)
        fqn = descriptor.name if descriptor is not None else qualified_name(entity)
        return self.name_generator.generate(fqn)

    def _type(self, name: str) -> Optional[TypeDefinition]:
        return self.registry.get_type(name)

    def _description(self, text: Optional[str]) -> Optional[str]:
        return text if (text and self.settings.description_from_docstrings) else None

    # --- managers ---
    def query_manager(self, descriptor: EntityDescriptor) -> QueryManager:
        manager = self._query_managers.get(descriptor.entity)
        if manager is None:
            manager = QueryManager(descriptor, self.settings)
            self._query_managers[descriptor.entity] = manager
        return manager

    def mutation_manager(self, descriptor: EntityDescriptor) -> MutationManager:
        manager = self._mutation_managers.get(descriptor.entity)
        if manager is None:
            manager = MutationManager(descriptor, self._catalog, self.listener)
            self._mutation_managers[descriptor.entity] = manager
        return manager

    # --- phase A ---
    def register_entity_type(self, descriptor: EntityDescriptor) -> "AlchemyGraphQL":
        name = self.type_name(descriptor)
        fqn = descriptor.name
        reg = self.registry
        mappable = []
        for scalar in descriptor.scalars:
            if reg.map_scalar_kind(scalar.kind, scalar.nullable) is None:
                _logger.debug("alchemyql: skipping %s.%s (unsupported column type)", fqn, scalar.name)
                continue
            mappable.append(scalar)
        if not mappable:
            _logger.debug("alchemyql: entity %s has no mappable scalar field, not exposed", fqn)
            return self

        obj = ObjectTypeDefinition(name, self._description(descriptor.description) or f"Entity {fqn} type")
        search = ObjectTypeDefinition(name + SUFFIX_SEARCH, f"Entity {fqn} pagination search type")
        sort = ObjectTypeDefinition(name + SUFFIX_SORT, f"Entity {fqn} pagination sort type")
        page = ObjectTypeDefinition(name + SUFFIX_PAGE, f"Entity {fqn} paginated list result")
        inp = InputTypeDefinition(name + SUFFIX_INPUT, f"Entity {fqn} input")
        search_input = InputTypeDefinition(name + SUFFIX_SEARCH_INPUT, f"Entity {fqn} search input")
        sort_input = InputTypeDefinition(name + SUFFIX_SORT_INPUT, f"Entity {fqn} sort input")

        list_filter = reg.list_of(reg.get_type(SEARCH_FILTER))
        list_filter_input = reg.list_of(reg.get_type(SEARCH_FILTER_INPUT))
        orientation = reg.get_type(SORTING_ORIENTATION)
        for scalar in mappable:
            desc = self._description(scalar.description)
            field_cfg: Dict[str, Any] = {'description': desc}
            if scalar.kind == 'uuid':
                field_cfg['resolver'] = make_field_resolver(scalar.name, convert=str)
            obj.add_field(scalar.name, reg.map_scalar_kind(scalar.kind, scalar.nullable), field_cfg)
            inp.add_field(scalar.name, reg.map_scalar_kind(scalar.kind, scalar.input_optional), {'description': desc})
            search.add_field(scalar.name, list_filter)
            search_input.add_field(scalar.name, list_filter_input)
            sort.add_field(scalar.name, orientation)
            sort_input.add_field(scalar.name, orientation)

        page.add_field('total', reg.get_type('Int'))
        page.add_field('page', reg.get_type('Int!'))
        page.add_field('limit', reg.get_type('Int!'))
        page.add_field('sort', sort)
        page.add_field('filter', search)
        page.add_field('match', search)
        page.add_field('items', reg.list_of(obj))

        for type_def in (obj, inp, search, search_input, sort, sort_input, page):
            reg.add_type(type_def)
        return self

    # --- phase B ---
    def _join_input(self, target: type) -> Optional[InputTypeDefinition]:
        """``{Target}JoinInput``: the target's scalar identifiers, all optional."""
        target_name = self.type_name(target)
        existing = self._type(target_name + SUFFIX_JOIN_INPUT)
        if isinstance(existing, InputTypeDefinition):
            return existing
        descriptor = self._catalog.get(target)
        if descriptor is None:
            return None
        join = InputTypeDefinition(target_name + SUFFIX_JOIN_INPUT, f"Entity {descriptor.name} reference input")
        for ident in descriptor.scalar_identifiers:
            scalar = descriptor.scalar(ident)
            mapped = self.registry.map_scalar_kind(scalar.kind, True) if scalar else None
            if mapped is not None:
                join.add_field(ident, mapped)
        if not join.fields:
            return None
        self.registry.add_type(join)
        return join

    def register_relationships_type(self, descriptor: EntityDescriptor) -> "AlchemyGraphQL":
        name = self.type_name(descriptor)
        obj = self._type(name)
        if not isinstance(obj, ObjectTypeDefinition):
            return self
        inp = self._type(name + SUFFIX_INPUT)
        search_input = self._type(name + SUFFIX_SEARCH_INPUT)
        reg = self.registry
        for assoc in descriptor.associations:
            target_name = self.type_name(assoc.target)
            target_type = self._type(target_name)
            if target_type is None:
                _logger.debug("alchemyql: %s.%s targets unexposed entity %s", descriptor.name, assoc.name, assoc.target_name)
                continue
            field_type = reg.list_of(target_type) if assoc.is_collection else target_type
            if not assoc.nullable:
                field_type = reg.non_null(field_type)
            obj.add_field(assoc.name, field_type)

            target_search = self._type(target_name + SUFFIX_SEARCH_INPUT)
            if isinstance(target_search, InputTypeDefinition) and isinstance(search_input, InputTypeDefinition):
                search_input.add_field(assoc.name, target_search)

            if assoc.owning_side and isinstance(inp, InputTypeDefinition) and self._type(target_name + SUFFIX_INPUT) is not None:
                join = self._join_input(assoc.target)
                if join is not None:
                    inp.add_field(assoc.name, reg.list_of(join) if assoc.is_collection else join)
        return self

    def build_types(self) -> "AlchemyGraphQL":
        for descriptor in self.descriptors:
            self.register_entity_type(descriptor)
        for descriptor in self.descriptors:
            self.register_relationships_type(descriptor)
        return self

    # --- phase C ---
    def _identifier_args(self, descriptor: EntityDescriptor, as_list: bool = False) -> Dict[str, Dict[str, Any]]:
        reg = self.registry
        args: Dict[str, Dict[str, Any]] = {}
        for ident in descriptor.identifiers:
            assoc = descriptor.association(ident)
            if assoc is not None:
                if as_list:
                    continue
                target_input = self._type(self.type_name(assoc.target) + SUFFIX_INPUT)
                if target_input is not None:
                    args[ident] = {'type': target_input}
                continue
            scalar = descriptor.scalar(ident)
            mapped = reg.map_scalar_kind(scalar.kind, False) if scalar else None
            if mapped is None:
                continue
            args[ident] = {'type': reg.non_null(reg.list_of(mapped)) if as_list else mapped}
        return args

    def build_mutations(self) -> "AlchemyGraphQL":
        reg = self.registry
        for descriptor in self.descriptors:
            name = self.type_name(descriptor)
            obj = self._type(name)
            inp = self._type(name + SUFFIX_INPUT)
            if obj is None or inp is None:
                continue
            manager = self.mutation_manager(descriptor)
            input_args = {'input': {'type': reg.non_null(inp)}}
            reg.add_mutation(MutationDefinition(
                f"create{name}", obj, input_args, self._mutation_resolver(manager.create), f"Creates new {name}",
            ))
            reg.add_mutation(MutationDefinition(
                f"update{name}", obj, input_args, self._mutation_resolver(manager.update), f"Updates {name}",
            ))
            id_args = self._identifier_args(descriptor)
            if id_args:
                reg.add_mutation(MutationDefinition(
                    f"delete{name}", obj, id_args, self._delete_resolver(manager), f"Delete a {name}",
                ))
        return self

    def build_queries(self) -> "AlchemyGraphQL":
        reg = self.registry
        for descriptor in self.descriptors:
            name = self.type_name(descriptor)
            obj = self._type(name)
            if obj is None:
                continue
            manager = self.query_manager(descriptor)
            id_args = self._identifier_args(descriptor)
            if id_args:
                reg.add_query(QueryDefinition(
                    f"get{name}", obj, id_args, self._get_resolver(manager), f"Get single {name}",
                ))
            list_args = self._identifier_args(descriptor, as_list=True)
            if list_args:
                reg.add_query(QueryDefinition(
                    f"getMany{name}", reg.list_of(obj), list_args, self._get_many_resolver(manager), f"Get many {name}",
                ))
            search_input = self._type(name + SUFFIX_SEARCH_INPUT)
            page_args: Dict[str, Dict[str, Any]] = {
                'page': {'type': reg.get_type('Int!')},
                'limit': {'type': reg.get_type('Int!')},
                'sort': {'type': self._type(name + SUFFIX_SORT_INPUT)},
            }
            if isinstance(search_input, InputTypeDefinition):
                page_args['match'] = {'type': search_input}
                page_args['filter'] = {'type': search_input}
                reg.add_query(QueryDefinition(
                    f"get{name}{SUFFIX_PAGE}", self._type(name + SUFFIX_PAGE), page_args,
                    self._page_resolver(descriptor, manager, search_input), f"Get a page of {name}",
                ))
        return self

    # --- resolvers ---
    def _mutation_resolver(self, operation: Any) -> Any:
        async def _resolve(root: Any, info: Any, args: Dict[str, Any]) -> Any:
            session = require_db_session(info)
            values = input_to_dict(args.get('input')) or {}
            async with get_context_lock(info):
                return await operation(session, values)
        return _resolve

    def _delete_resolver(self, manager: MutationManager) -> Any:
        async def _resolve(root: Any, info: Any, args: Dict[str, Any]) -> Any:
            session = require_db_session(info)
            async with get_context_lock(info):
                return await manager.delete(session, input_to_dict(args))
        return _resolve

    def _get_resolver(self, manager: QueryManager) -> Any:
        async def _resolve(root: Any, info: Any, args: Dict[str, Any]) -> Any:
            session = require_db_session(info)
            async with get_context_lock(info):
                return await manager.get(session, input_to_dict(args))
        return _resolve

    def _get_many_resolver(self, manager: QueryManager) -> Any:
        async def _resolve(root: Any, info: Any, args: Dict[str, Any]) -> Any:
            session = require_db_session(info)
            async with get_context_lock(info):
                return await manager.get_many(session, input_to_dict(args))
        return _resolve

    def _sort_order(self, info: Any, descriptor: EntityDescriptor) -> Optional[List[str]]:
        """Sort keys in the order the caller wrote them, mapped to attribute names."""
        selected = getattr(info, 'selected_fields', None) or []
        if not selected:
            return None
        raw = (selected[0].arguments or {}).get('sort')
        if not isinstance(raw, dict):
            return None
        names = [s.name for s in descriptor.scalars]
        order: List[str] = []
        for key in raw:
            py_name = map_graphql_to_python(key, names, auto_camel=self.settings.auto_camel_case)
            if py_name is not None:
                order.append(py_name)
        return order

    def _page_resolver(self, descriptor: EntityDescriptor, manager: QueryManager, search_input: InputTypeDefinition) -> Any:
        async def _resolve(root: Any, info: Any, args: Dict[str, Any]) -> Any:
            session = require_db_session(info)
            selected = getattr(info, 'selected_fields', None) or []
            with_total = _selects(selected[0].selections, 'total') if selected else True
            async with get_context_lock(info):
                return await manager.get_page(
                    session,
                    args['page'],
                    args['limit'],
                    search_input,
                    sort=input_to_dict(args.get('sort')),
                    filter=input_to_dict(args.get('filter')),
                    match=input_to_dict(args.get('match')),
                    sort_order=self._sort_order(info, descriptor),
                    with_total=with_total,
                )
        return _resolve

    # --- assembly ---
    def to_strawberry_schema(self) -> strawberry.Schema:
        return self.registry.build_schema(self.settings.strawberry_config())

    def build(self) -> strawberry.Schema:
        """Run every phase and return the schema."""
        return self.build_types().build_mutations().build_queries().to_strawberry_schema()
