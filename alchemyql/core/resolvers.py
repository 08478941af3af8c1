from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Callable, Optional

from sqlalchemy import inspect as sa_inspect
from sqlalchemy.exc import NoInspectionAvailable
from sqlalchemy.ext.asyncio import async_object_session
from strawberry.types import Info as StrawberryInfo

from .utils import get_context_lock

__all__ = ['make_field_resolver', 'resolve_field']


def _unloaded(obj: Any, name: str) -> bool:
    try:
        state = sa_inspect(obj)
    except NoInspectionAvailable:
        return False
    return name in state.unloaded


async def resolve_field(source: Any, name: str, info: Any) -> Any:
    """Read ``name`` from ``source``.

    Mappings are read by key; lists fan out over their elements. Attributes of
    ORM instances that are not loaded yet are loaded through the owning
    session under the request lock, since implicit lazy loading is not
    possible with ``AsyncSession``.
    """
    if source is None:
        return None
    if isinstance(source, Mapping):
        return source.get(name)
    if isinstance(source, (list, tuple)):
        return [await resolve_field(item, name, info) for item in source]
    if _unloaded(source, name):
        session = async_object_session(source)
        if session is None:
            # detached (e.g. just deleted): nothing left to load
            return None
        async with get_context_lock(info):
            return await session.run_sync(lambda _s: getattr(source, name))
    return getattr(source, name, None)


def make_field_resolver(name: str, convert: Optional[Callable[[Any], Any]] = None) -> Callable[..., Any]:
    """Resolver reading ``name`` from the parent; ``convert`` is applied to non-null values."""
    async def _resolver(self, info: StrawberryInfo):
        value = await resolve_field(self, name, info)
        if convert is not None and value is not None:
            return convert(value)
        return value

    _resolver.__name__ = f"resolve_{name}"
    return _resolver
