import pytest
from sqlalchemy import Column, Integer, String
from sqlalchemy.ext.asyncio import async_sessionmaker
from sqlalchemy.orm import DeclarativeBase

from alchemyql.errors import InvalidPaginationError
from alchemyql.metadata import describe_entity
from alchemyql.query import QueryManager, identifier_values
from alchemyql.settings import AlchemyQLSettings


class PairBase(DeclarativeBase):
    pass


class Pair(PairBase):
    __tablename__ = 'pairs'

    a = Column(Integer, primary_key=True, autoincrement=False)
    b = Column(Integer, primary_key=True, autoincrement=False)
    note = Column(String(20), nullable=True)


@pytest.fixture(scope="function")
async def pair_session(engine):
    async with engine.begin() as conn:
        await conn.run_sync(PairBase.metadata.create_all)
    async with async_sessionmaker(engine, expire_on_commit=False)() as session:
        session.add_all([Pair(a=1, b=1, note='x'), Pair(a=1, b=2, note='y'), Pair(a=2, b=1, note='z')])
        await session.commit()
        yield session
    async with engine.begin() as conn:
        await conn.run_sync(PairBase.metadata.drop_all)


def test_identifier_values():
    assert identifier_values(Pair, {'a': '1', 'b': 2}) == (1, 2)
    assert identifier_values(Pair, {'a': 1}) is None
    assert identifier_values(Pair, None) is None


@pytest.mark.asyncio
async def test_composite_get_and_get_many(pair_session):
    manager = QueryManager(describe_entity(Pair))
    assert (await manager.get(pair_session, {'a': 1, 'b': 2})).note == 'y'
    assert await manager.get(pair_session, {'a': 3, 'b': 3}) is None

    rows = await manager.get_many(pair_session, {'a': [2, 1], 'b': [1, 2]})
    assert [(r.a, r.b) for r in rows] == [(1, 2), (2, 1)]
    assert await manager.get_many(pair_session, {'a': [], 'b': [1]}) == []
    with pytest.raises(ValueError):
        await manager.get_many(pair_session, {'a': [1], 'b': [1, 2]})


@pytest.mark.asyncio
async def test_get_page_without_search_shape_fields(pair_session):
    from alchemyql.types.definitions import InputTypeDefinition

    manager = QueryManager(describe_entity(Pair), AlchemyQLSettings(max_page_limit=2))
    page = await manager.get_page(pair_session, 1, 10, InputTypeDefinition('PairSearchInput'),
                                  sort={'b': 'desc'}, filter={}, match={})
    assert page.limit == 2
    assert page.total == 3
    assert [(r.a, r.b) for r in page.items] == [(1, 2), (1, 1)]

    page = await manager.get_page(pair_session, 2, 2, InputTypeDefinition('PairSearchInput'), with_total=False)
    assert page.total is None
    assert [(r.a, r.b) for r in page.items] == [(2, 1)]

    with pytest.raises(InvalidPaginationError):
        await manager.get_page(pair_session, 1, -1, InputTypeDefinition('PairSearchInput'))
