"""Runtime settings for schema generation and query execution."""
from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional

from strawberry.schema.config import StrawberryConfig

_TRUE = ('1', 'true', 't', 'yes', 'y', 'on')


def _env_bool(value: Optional[str], default: bool) -> bool:
    if value is None or value.strip() == '':
        return default
    return value.strip().lower() in _TRUE


@dataclass
class AlchemyQLSettings:
    """Tunables for :class:`alchemyql.AlchemyGraphQL`.

    ``max_page_limit`` clamps the ``limit`` argument of page queries.
    ``auto_camel_case`` is forwarded to Strawberry; generated names are kept
    as written when disabled. ``description_from_docstrings`` lets model
    docstrings and column comments become GraphQL descriptions.
    """
    max_page_limit: int = 100
    auto_camel_case: bool = False
    description_from_docstrings: bool = True

    @classmethod
    def from_env(cls, prefix: str = "ALCHEMYQL_", environ: Optional[Mapping[str, str]] = None) -> "AlchemyQLSettings":
        """Create settings from environment variables (``ALCHEMYQL_MAX_PAGE_LIMIT`` etc.)."""
        env = os.environ if environ is None else environ
        defaults = cls()
        raw_limit = env.get(f"{prefix}MAX_PAGE_LIMIT")
        return cls(
            max_page_limit=int(raw_limit) if raw_limit else defaults.max_page_limit,
            auto_camel_case=_env_bool(env.get(f"{prefix}AUTO_CAMEL_CASE"), defaults.auto_camel_case),
            description_from_docstrings=_env_bool(
                env.get(f"{prefix}DESCRIPTION_FROM_DOCSTRINGS"), defaults.description_from_docstrings
            ),
        )

    def strawberry_config(self) -> StrawberryConfig:
        return StrawberryConfig(auto_camel_case=self.auto_camel_case)
