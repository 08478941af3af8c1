"""Entity type naming and camelCase helpers.

A :class:`NameGenerator` turns the fully qualified name of a mapped class
(``module.QualName``) into the base GraphQL type name every generated type
derives from (``User`` -> ``UserInput``, ``UserPage`` ...).
"""
from __future__ import annotations

import re
from typing import Iterable, Optional, Protocol

__all__ = [
    'NameGenerator',
    'SimpleNameGenerator',
    'ShortNameGenerator',
    'qualified_name',
    'from_camel',
    'to_camel',
    'map_graphql_to_python',
]


class NameGenerator(Protocol):
    def generate(self, name: str) -> str:
        ...


class SimpleNameGenerator:
    """Default generator: drops the namespace separators.

    ``app.models.User`` becomes ``appmodelsUser``; names stay unique across
    modules at the cost of length.
    """

    def generate(self, name: str) -> str:
        return name.replace('.', '')


class ShortNameGenerator:
    """Keep only the class name (``app.models.User`` -> ``User``)."""

    def generate(self, name: str) -> str:
        return name.rsplit('.', 1)[-1]


def qualified_name(cls: type) -> str:
    return f"{cls.__module__}.{cls.__qualname__}"


_camel_to_snake_pattern = re.compile(r'(?<!^)(?=[A-Z])')


def from_camel(name: str) -> str:
    """Convert lower/upper camelCase to snake_case."""
    if not name:
        return name
    return _camel_to_snake_pattern.sub('_', str(name)).lower()


def to_camel(name: str) -> str:
    """Convert snake_case to lowerCamelCase."""
    if not name:
        return name
    parts = str(name).split('_')
    return parts[0] + ''.join(p.capitalize() for p in parts[1:])


def map_graphql_to_python(name: str, python_names: Iterable[str], *, auto_camel: bool) -> Optional[str]:
    """Map a GraphQL field name back to the python attribute it was generated from.

    Returns ``None`` when no attribute matches.
    """
    known = list(python_names)
    if name in known:
        return name
    if auto_camel:
        for py_name in known:
            if to_camel(py_name) == name:
                return py_name
        snake = from_camel(name)
        if snake in known:
            return snake
    return None
