"""Schema generated from tests.models, shared by the GraphQL tests."""

from alchemyql import AlchemyGraphQL, CallbackMutationListener, ShortNameGenerator, TypeRegistry
from tests.models import Base

# Test-only: mutation listener log
CALLBACK_EVENTS: list[dict] = []


def _record(event):
    def _cb(entity):
        CALLBACK_EVENTS.append({'event': event, 'model': type(entity).__name__, 'id': getattr(entity, 'id', None)})
    return _cb


listener = CallbackMutationListener(
    on_create=_record('create'),
    on_update=_record('update'),
    on_delete=_record('delete'),
)

builder = AlchemyGraphQL(TypeRegistry(), Base, name_generator=ShortNameGenerator(), listener=listener)
schema = builder.build()
