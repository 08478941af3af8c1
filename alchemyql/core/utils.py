from __future__ import annotations

import asyncio
import uuid
from dataclasses import fields as _dc_fields, is_dataclass
from datetime import date, datetime, time
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Dict, Optional

from sqlalchemy.sql import sqltypes
from strawberry import UNSET

from ..errors import MissingSessionError

_SESSION_KEYS = ('db_session', 'db', 'session', 'async_session')
_LOCK_KEY = '_alchemyql_db_lock'


# --- Context helpers ---
def get_db_session(info_or_ctx: Any) -> Any | None:
    """Extract an AsyncSession-like object from a Strawberry ``Info`` or a context.

    Tries ``db_session``, ``db``, ``session`` and ``async_session`` as mapping
    keys first, then as attributes. Returns ``None`` when nothing is found.
    """
    if info_or_ctx is None:
        return None
    ctx = getattr(info_or_ctx, 'context', info_or_ctx)
    if ctx is None:
        return None
    if isinstance(ctx, dict):
        for key in _SESSION_KEYS:
            value = ctx.get(key)
            if value is not None:
                return value
        return None
    for key in _SESSION_KEYS:
        value = getattr(ctx, key, None)
        if value is not None:
            return value
    return None


def require_db_session(info_or_ctx: Any) -> Any:
    session = get_db_session(info_or_ctx)
    if session is None:
        raise MissingSessionError()
    return session


def get_context_lock(info: Any) -> asyncio.Lock:
    """Return a per-request lock stored on ``info.context``.

    An ``AsyncSession`` cannot run two operations at once while sibling
    fields are resolved concurrently, so every database access of a request
    goes through this lock.
    """
    ctx = getattr(info, 'context', None)
    if isinstance(ctx, dict):
        lock = ctx.get(_LOCK_KEY)
        if lock is None:
            lock = asyncio.Lock()
            ctx[_LOCK_KEY] = lock
        return lock
    if ctx is not None:
        lock = getattr(ctx, _LOCK_KEY, None)
        if lock is None:
            lock = asyncio.Lock()
            try:
                setattr(ctx, _LOCK_KEY, lock)
            except AttributeError:
                # immutable context: lock is per call only
                pass
        return lock
    return asyncio.Lock()


def input_to_dict(obj: Any) -> Any:
    """Convert Strawberry input instances (and nested lists/dicts) to plain python values.

    Omitted fields (``UNSET``) are dropped, explicit nulls are kept as ``None``.
    Enum members are kept as-is.
    """
    if obj is None or obj is UNSET:
        return None
    if isinstance(obj, (str, int, float, bool, Enum, Decimal, date, time, uuid.UUID)):
        return obj
    if isinstance(obj, (list, tuple)):
        return [input_to_dict(x) for x in obj]
    if isinstance(obj, dict):
        return {k: input_to_dict(v) for k, v in obj.items() if v is not UNSET}
    if is_dataclass(obj) and not isinstance(obj, type):
        out: Dict[str, Any] = {}
        for f in _dc_fields(obj):
            value = getattr(obj, f.name, UNSET)
            if value is UNSET:
                continue
            out[f.name] = input_to_dict(value)
        return out
    return obj


def enum_value(value: Any) -> Any:
    return value.value if isinstance(value, Enum) else value


_TRUE_STRINGS = ('true', 't', '1', 'yes', 'y')
_FALSE_STRINGS = ('false', 'f', '0', 'no', 'n')


def _parse_datetime(col_type: Any, value: str) -> datetime:
    s = value.replace('Z', '+00:00') if value.endswith('Z') else value
    dv = datetime.fromisoformat(s)
    if not getattr(col_type, 'timezone', False) and dv.tzinfo is not None:
        dv = dv.replace(tzinfo=None)
    return dv


def coerce_value(column: Any, value: Any) -> Any:
    """Coerce ``value`` (typically a string from a search filter) to the column's python type.

    Values that cannot be parsed raise ``ValueError`` so a bad filter surfaces
    as a GraphQL error instead of an unintended comparison.
    """
    if value is None:
        return None
    if isinstance(value, (list, tuple)):
        return [coerce_value(column, v) for v in value]
    value = enum_value(value)
    col_type: Optional[Any] = getattr(column, 'type', None)
    if col_type is None:
        return value
    if isinstance(col_type, sqltypes.DateTime):
        if isinstance(value, str):
            return _parse_datetime(col_type, value)
        if isinstance(value, datetime) and not getattr(col_type, 'timezone', False) and value.tzinfo is not None:
            return value.replace(tzinfo=None)
        return value
    if isinstance(col_type, sqltypes.Date):
        if isinstance(value, datetime):
            return value.date()
        return date.fromisoformat(value) if isinstance(value, str) else value
    if isinstance(col_type, sqltypes.Time):
        if isinstance(value, datetime):
            return value.time()
        return time.fromisoformat(value) if isinstance(value, str) else value
    if isinstance(col_type, sqltypes.Boolean):
        if isinstance(value, str):
            lv = value.strip().lower()
            if lv in _TRUE_STRINGS:
                return True
            if lv in _FALSE_STRINGS:
                return False
            raise ValueError(f"Invalid boolean value: {value!r}")
        return bool(value)
    if isinstance(col_type, sqltypes.Integer):
        return int(value) if isinstance(value, (str, float)) else value
    if isinstance(col_type, sqltypes.Float):
        return float(value) if isinstance(value, (str, int, Decimal)) else value
    if isinstance(col_type, sqltypes.Numeric):
        if isinstance(value, (str, int, float)):
            try:
                return Decimal(str(value))
            except InvalidOperation:
                raise ValueError(f"Invalid decimal value: {value!r}") from None
        return value
    if isinstance(col_type, sqltypes.Uuid):
        return uuid.UUID(value) if isinstance(value, str) else value
    if isinstance(col_type, sqltypes.String):
        return str(value)
    return value
