"""Exceptions raised by AlchemyQL."""
from __future__ import annotations

from typing import Any, Dict, Optional


class AlchemyQLError(Exception):
    """Base exception for all AlchemyQL errors."""
    pass


class SchemaBuildError(AlchemyQLError):
    """Raised when the registered definitions cannot be turned into a schema."""
    pass


class EntityNotFoundError(AlchemyQLError, LookupError):
    """Raised when a mutation targets an entity that does not exist."""

    def __init__(self, entity: str, identifiers: Optional[Dict[str, Any]] = None):
        self.entity = entity
        self.identifiers = dict(identifiers or {})
        if self.identifiers:
            ids = ', '.join(f"{k}={v!r}" for k, v in self.identifiers.items())
            super().__init__(f"Entity {entity} not found for {ids}")
        else:
            super().__init__(f"Entity {entity} not found: no identifier supplied")


class InvalidPaginationError(AlchemyQLError, ValueError):
    """Raised when page arguments are out of range."""

    def __init__(self, limit: int):
        self.limit = limit
        super().__init__(f"limit must be a positive integer, got {limit}")


class MissingSessionError(AlchemyQLError, RuntimeError):
    """Raised when no database session is found on the GraphQL context."""

    def __init__(self, message: str = "No database session found in GraphQL context (expected 'db_session')"):
        super().__init__(message)
