import pytest
from sqlalchemy import select

from alchemyql.core.filters import OPERATOR_REGISTRY, AliasManager, FilterQuery, register_operator, walk_filters
from tests.models import Post
from tests.schema import builder


def _shape(name):
    return builder.registry.get_type(name)


def test_alias_scheme():
    aliases = AliasManager()
    assert aliases.alias_for('e', 'author') == ('ea', True)
    assert aliases.alias_for('e', 'author') == ('ea', False)
    assert aliases.alias_for('e', 'address') == ('ea1', True)
    assert aliases.alias_for('ea', 'posts') == ('eap', True)
    assert 'ea1' in aliases
    assert 'zz' not in aliases


def test_bind_names_are_unique():
    q = FilterQuery(Post)
    column = Post.__table__.c.title
    first = q.bind('e', 'title', 'a', column)
    second = q.bind('e', 'title', 'b', column)
    assert first.key == 'e_title_0'
    assert second.key == 'e_title_1'
    assert q.parameters == {'e_title_0': 'a', 'e_title_1': 'b'}


def test_walk_joins_once_per_path():
    q = FilterQuery(Post)
    emitted = []
    values = {
        'title': [{'operator': 'NEQ', 'value': 'x'}],
        'author': {'age': [{'operator': 'GTE', 'value': '18'}, {'operator': 'LT', 'value': '65'}]},
        'tags': {'label': [{'operator': 'EQ', 'value': 'python'}]},
    }
    walk_filters(q, _shape('PostSearchInput'), values, 'e', lambda frags, params: emitted.append((frags, params)))
    walk_filters(q, _shape('PostSearchInput'), {'author': {'name': [{'operator': 'EQ', 'value': 'Bob'}]}}, 'e',
                 lambda frags, params: emitted.append((frags, params)))
    assert [j[2] for j in q.joins] == ['ea', 'et']
    assert len(emitted) == 4
    assert emitted[1][1] == {'ea_age_0': 18, 'ea_age_1': 65}
    sql = str(q.apply_joins(select(q.root)))
    assert 'users AS ea' in sql
    assert 'tags AS et' in sql


def test_unknown_fields_are_ignored_and_null_values_skip():
    q = FilterQuery(Post)
    emitted = []
    walk_filters(q, _shape('PostSearchInput'), {'nope': [{'operator': 'EQ', 'value': '1'}], 'title': None}, 'e',
                 lambda frags, params: emitted.append(frags))
    assert emitted == []
    assert not q.joined


def test_null_value_compiles_to_is_null():
    q = FilterQuery(Post)
    emitted = []
    walk_filters(q, _shape('PostSearchInput'), {'content': [{'operator': 'EQ', 'value': None}]}, 'e',
                 lambda frags, params: emitted.extend(frags))
    assert 'IS NULL' in str(emitted[0])
    assert q.parameters == {}


def test_unknown_operator():
    q = FilterQuery(Post)
    with pytest.raises(ValueError):
        walk_filters(q, _shape('PostSearchInput'), {'title': [{'operator': 'LIKE', 'value': 'x'}]}, 'e',
                     lambda frags, params: None)


def test_register_operator():
    register_operator('STARTS', lambda col, v: col.startswith(v))
    try:
        q = FilterQuery(Post)
        emitted = []
        walk_filters(q, _shape('PostSearchInput'), {'title': [{'operator': 'STARTS', 'value': 'He'}]}, 'e',
                     lambda frags, params: emitted.extend(frags))
        assert 'LIKE' in str(emitted[0])
    finally:
        OPERATOR_REGISTRY.pop('STARTS', None)
