import pytest

from tests.schema import schema


@pytest.mark.asyncio
async def test_get_single_with_relations(db_session, populated_db):
    pid = populated_db['posts']['GraphQL']
    q = """
    query($id: Int!) {
      getPost(id: $id) { id title author { name } tags { label } comments { body } }
    }
    """
    res = await schema.execute(q, variable_values={'id': pid}, context_value={'db_session': db_session})
    assert res.errors is None, res.errors
    post = res.data['getPost']
    assert post['title'] == 'GraphQL'
    assert post['author'] == {'name': 'Alice'}
    assert [t['label'] for t in post['tags']] == ['python', 'graphql']
    assert post['comments'] == []


@pytest.mark.asyncio
async def test_get_missing_returns_null(db_session, populated_db):
    res = await schema.execute("{ getUser(id: 999) { id } }", context_value={'db_session': db_session})
    assert res.errors is None, res.errors
    assert res.data == {'getUser': None}


@pytest.mark.asyncio
async def test_cyclic_selection(db_session, populated_db):
    uid = populated_db['users']['Alice']
    q = """
    query($id: Int!) {
      getUser(id: $id) { name profile { bio user { name } } posts { title author { name } } }
    }
    """
    res = await schema.execute(q, variable_values={'id': uid}, context_value={'db_session': db_session})
    assert res.errors is None, res.errors
    user = res.data['getUser']
    assert user['profile'] == {'bio': 'Likes SQL', 'user': {'name': 'Alice'}}
    assert [p['title'] for p in user['posts']] == ['Hello', 'GraphQL']
    assert all(p['author']['name'] == 'Alice' for p in user['posts'])


@pytest.mark.asyncio
async def test_get_many(db_session, populated_db):
    users = populated_db['users']
    q = """
    query($ids: [Int!]!) { getManyUser(id: $ids) { name } }
    """
    ids = [users['Carol'], users['Alice'], 12345]
    res = await schema.execute(q, variable_values={'ids': ids}, context_value={'db_session': db_session})
    assert res.errors is None, res.errors
    assert [u['name'] for u in res.data['getManyUser']] == ['Alice', 'Carol']

    res = await schema.execute(q, variable_values={'ids': []}, context_value={'db_session': db_session})
    assert res.errors is None, res.errors
    assert res.data == {'getManyUser': []}


@pytest.mark.asyncio
async def test_sibling_root_fields_share_the_session(db_session, populated_db):
    q = """
    {
      a: getUserPage(page: 1, limit: 2) { items { name posts { title } } }
      b: getPostPage(page: 1, limit: 5) { total items { author { name } } }
    }
    """
    res = await schema.execute(q, context_value={'db_session': db_session})
    assert res.errors is None, res.errors
    assert [u['name'] for u in res.data['a']['items']] == ['Alice', 'Bob']
    assert res.data['b']['total'] == 3


@pytest.mark.asyncio
async def test_missing_session_is_reported(populated_db):
    res = await schema.execute("{ getUser(id: 1) { id } }", context_value={})
    assert res.errors is not None
    assert "No database session" in res.errors[0].message


@pytest.mark.asyncio
async def test_session_under_alternate_context_key(db_session, populated_db):
    tags = populated_db['tags']
    res = await schema.execute(
        "query($ids: [Int!]!) { getManyTag(id: $ids) { label } }",
        variable_values={'ids': [tags['graphql'], tags['python']]},
        context_value={'session': db_session},
    )
    assert res.errors is None, res.errors
    assert [t['label'] for t in res.data['getManyTag']] == ['python', 'graphql']
