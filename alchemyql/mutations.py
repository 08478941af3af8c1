"""Write side: create, update and delete with deep merging of nested input."""
from __future__ import annotations

import inspect
import logging
from typing import Any, Callable, Dict, List, Mapping, Optional, Protocol

from sqlalchemy import select

from .core.utils import coerce_value
from .errors import EntityNotFoundError
from .metadata import EntityDescriptor, describe_entity

_logger = logging.getLogger("alchemyql")

__all__ = [
    'MutationListener',
    'NullMutationListener',
    'CallbackMutationListener',
    'MutationManager',
]


class MutationListener(Protocol):
    """Observer notified inside the mutation transaction, before commit.

    Each hook may be a plain function or a coroutine function. Raising
    from a create/update hook rolls the transaction back.
    """

    def on_create(self, entity: Any) -> Any:
        ...

    def on_update(self, entity: Any) -> Any:
        ...

    def on_delete(self, entity: Any) -> Any:
        ...


class NullMutationListener:
    def on_create(self, entity: Any) -> None:
        return None

    def on_update(self, entity: Any) -> None:
        return None

    def on_delete(self, entity: Any) -> None:
        return None


class CallbackMutationListener:
    """Listener built from plain callables, each optional."""

    def __init__(
        self,
        on_create: Optional[Callable[[Any], Any]] = None,
        on_update: Optional[Callable[[Any], Any]] = None,
        on_delete: Optional[Callable[[Any], Any]] = None,
    ):
        self._callbacks: Dict[str, List[Callable[[Any], Any]]] = {'on_create': [], 'on_update': [], 'on_delete': []}
        for event, cb in (('on_create', on_create), ('on_update', on_update), ('on_delete', on_delete)):
            if cb is not None:
                self.register(event, cb)

    def register(self, event: str, callback: Callable[[Any], Any]) -> "CallbackMutationListener":
        if event not in self._callbacks:
            raise ValueError(f"Unknown mutation event: {event}")
        self._callbacks[event].append(callback)
        return self

    async def _fire(self, event: str, entity: Any) -> None:
        for cb in self._callbacks[event]:
            res = cb(entity)
            if inspect.isawaitable(res):
                await res

    async def on_create(self, entity: Any) -> None:
        await self._fire('on_create', entity)

    async def on_update(self, entity: Any) -> None:
        await self._fire('on_update', entity)

    async def on_delete(self, entity: Any) -> None:
        await self._fire('on_delete', entity)


class MutationManager:
    """Runs create/update/delete for one entity.

    The unit-of-work parts run inside ``AsyncSession.run_sync`` so related
    collections can be loaded on access while merging nested input.
    """

    def __init__(
        self,
        descriptor: EntityDescriptor,
        catalog: Optional[Mapping[type, EntityDescriptor]] = None,
        listener: Optional[MutationListener] = None,
    ):
        self.descriptor = descriptor
        self.entity = descriptor.entity
        self._catalog: Dict[type, EntityDescriptor] = dict(catalog or {})
        self._catalog.setdefault(descriptor.entity, descriptor)
        self.listener = listener or NullMutationListener()

    def _descriptor_for(self, entity: type) -> EntityDescriptor:
        descriptor = self._catalog.get(entity)
        if descriptor is None:
            descriptor = describe_entity(entity)
            self._catalog[entity] = descriptor
        return descriptor

    async def _notify(self, event: str, entity: Any) -> None:
        callback = getattr(self.listener, event, None)
        if callback is None:
            return
        res = callback(entity)
        if inspect.isawaitable(res):
            await res

    # --- sync helpers (run inside run_sync) ---
    def _find(self, session: Any, descriptor: EntityDescriptor, identifiers: Dict[str, Any]) -> Any:
        """Entity of ``descriptor`` whose identifiers all match, or ``None``."""
        if not identifiers:
            return None
        entity = descriptor.entity
        stmt = select(entity)
        for name, value in identifiers.items():
            assoc = descriptor.association(name)
            if assoc is not None:
                target = self._find_child(session, self._descriptor_for(assoc.target), value)
                if target is None:
                    return None
                stmt = stmt.where(getattr(entity, name) == target)
            else:
                scalar = descriptor.scalar(name)
                stmt = stmt.where(getattr(entity, name) == coerce_value(scalar.column if scalar else None, value))
        return session.scalars(stmt.limit(1)).first()

    def _find_child(self, session: Any, descriptor: EntityDescriptor, values: Any) -> Any:
        if not isinstance(values, dict):
            return None
        ids = {i: values.get(i) for i in descriptor.identifiers}
        if not ids or any(v is None for v in ids.values()):
            return None
        return self._find(session, descriptor, ids)

    def _lookup_or_create(self, session: Any, descriptor: EntityDescriptor, values: Dict[str, Any]) -> Any:
        existing = self._find_child(session, descriptor, values)
        if existing is not None:
            return existing
        return descriptor.entity()

    def _merge(self, session: Any, obj: Any, descriptor: EntityDescriptor, values: Dict[str, Any]) -> Any:
        for scalar in descriptor.scalars:
            if scalar.name not in values:
                continue
            descriptor.accessors[scalar.name].write(obj, coerce_value(scalar.column, values[scalar.name]))
        for assoc in descriptor.associations:
            if assoc.name not in values:
                continue
            accessor = descriptor.accessors[assoc.name]
            value = values[assoc.name]
            target = self._descriptor_for(assoc.target)
            if assoc.is_collection:
                if value is None:
                    continue
                collection = accessor.read(obj)
                for child_values in value:
                    child_values = child_values or {}
                    child = self._lookup_or_create(session, target, child_values)
                    self._merge(session, child, target, child_values)
                    if child not in collection:
                        collection.append(child)
            elif value is None:
                accessor.write(obj, None)
            else:
                child = self._lookup_or_create(session, target, value)
                self._merge(session, child, target, value)
                accessor.write(obj, child)
        return obj

    # --- public API ---
    async def merge_deep(self, session: Any, obj: Any, values: Dict[str, Any]) -> Any:
        """Merge ``values`` onto ``obj`` recursively.

        Scalars are assigned first. Each nested association fragment is
        matched to an existing row by its identifier fields, or becomes a new
        row when identifiers are missing or unknown; it is then merged and
        attached (appended to collections unless already present, assigned
        for single references).
        """
        def _run(sync_session: Any) -> Any:
            with sync_session.no_autoflush:
                return self._merge(sync_session, obj, self.descriptor, values)

        return await session.run_sync(_run)

    async def create(self, session: Any, values: Dict[str, Any]) -> Any:
        def _run(sync_session: Any) -> Any:
            obj = self.entity()
            with sync_session.no_autoflush:
                self._merge(sync_session, obj, self.descriptor, values or {})
            sync_session.add(obj)
            sync_session.flush()
            return obj

        try:
            obj = await session.run_sync(_run)
            await self._notify('on_create', obj)
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        _logger.debug("alchemyql: created %s", self.descriptor.name)
        return obj

    async def update(self, session: Any, values: Dict[str, Any]) -> Any:
        values = dict(values or {})
        ids = {name: values.pop(name) for name in list(values) if name in self.descriptor.identifiers}

        def _run(sync_session: Any) -> Any:
            complete = len(ids) == len(self.descriptor.identifiers) and all(v is not None for v in ids.values())
            with sync_session.no_autoflush:
                obj = self._find(sync_session, self.descriptor, ids) if complete else None
                if obj is None:
                    raise EntityNotFoundError(self.descriptor.name, ids)
                self._merge(sync_session, obj, self.descriptor, values)
            sync_session.flush()
            return obj

        try:
            obj = await session.run_sync(_run)
            await self._notify('on_update', obj)
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        _logger.debug("alchemyql: updated %s %s", self.descriptor.name, ids)
        return obj

    async def delete(self, session: Any, identifiers: Dict[str, Any]) -> Any:
        """Delete the matching entity and return it; ``None`` (and no write) when absent."""
        ids = {k: v for k, v in (identifiers or {}).items() if v is not None}
        obj = await session.run_sync(lambda s: self._find(s, self.descriptor, ids))
        if obj is None:
            _logger.debug("alchemyql: delete %s %s matched nothing", self.descriptor.name, ids)
            return None
        await self._notify('on_delete', obj)
        await session.delete(obj)
        await session.commit()
        return obj
