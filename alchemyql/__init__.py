"""AlchemyQL public API with lightweight lazy exports.

Submodules are imported on first attribute access so that model modules can
import helpers (naming, errors) without pulling in Strawberry and the
schema builder.

Exposes:
- AlchemyGraphQL, TypeRegistry, AlchemyQLSettings
- SimpleNameGenerator, ShortNameGenerator
- MutationListener, CallbackMutationListener, NullMutationListener
- describe_entities, EntityDescriptor
- error classes from .errors
"""
from __future__ import annotations

_EXPORTS = {
    'AlchemyGraphQL': 'builder',
    'TypeRegistry': 'types.registry',
    'AlchemyQLSettings': 'settings',
    'SimpleNameGenerator': 'naming',
    'ShortNameGenerator': 'naming',
    'NameGenerator': 'naming',
    'MutationListener': 'mutations',
    'CallbackMutationListener': 'mutations',
    'NullMutationListener': 'mutations',
    'MutationManager': 'mutations',
    'QueryManager': 'query',
    'PageResult': 'query',
    'describe_entities': 'metadata',
    'describe_entity': 'metadata',
    'EntityDescriptor': 'metadata',
    'AlchemyQLError': 'errors',
    'SchemaBuildError': 'errors',
    'EntityNotFoundError': 'errors',
    'InvalidPaginationError': 'errors',
    'MissingSessionError': 'errors',
}


def __getattr__(name: str):  # PEP 562 lazy exports
    import importlib as _importlib
    module = _EXPORTS.get(name)
    if module is None:
        raise AttributeError(name)
    return getattr(_importlib.import_module(f"{__name__}.{module}"), name)


__all__ = list(_EXPORTS)
