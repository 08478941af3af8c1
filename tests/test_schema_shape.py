"""Introspection checks of the schema generated from tests.models."""

from tests.schema import schema


def _type(name):
    res = schema.execute_sync(
        """
        query($name: String!) {
          __type(name: $name) {
            name kind description
            fields { name description type { kind name ofType { kind name ofType { kind name ofType { name } } } } }
            inputFields { name type { kind name ofType { kind name ofType { name } } } }
            enumValues { name description }
          }
        }
        """,
        variable_values={'name': name},
    )
    assert res.errors is None, res.errors
    return res.data['__type']


def _fields(t, key='fields'):
    return {f['name']: f for f in (t[key] or [])}


def test_type_family_per_entity():
    for suffix in ('', 'Input', 'Search', 'SearchInput', 'Sort', 'SortInput', 'Page'):
        assert _type('User' + suffix) is not None, suffix
    assert _type('UserInput')['kind'] == 'INPUT_OBJECT'
    assert _type('UserSearch')['kind'] == 'OBJECT'


def test_entity_without_mappable_fields_is_absent():
    assert _type('Setting') is None
    assert _type('SettingPage') is None


def test_descriptions():
    assert _type('User')['description'] == 'Application users'
    assert _type('Post')['description'] == 'Entity tests.models.Post type'
    assert _type('UserPage')['description'] == 'Entity tests.models.User paginated list result'
    assert _type('UserSearchInput')['description'] == 'Entity tests.models.User search input'
    assert _fields(_type('User'))['name']['description'] == 'Public display name'
    assert _type('SortingOrientation')['description'] == 'Sorting orientation (ascending or descending).'


def test_builtin_enums():
    ops = {v['name']: v['description'] for v in _type('SearchOperator')['enumValues']}
    assert ops == {
        'LT': 'Less than',
        'LTE': 'Less than equal',
        'EQ': 'Equal operator',
        'GTE': 'Greater than equal',
        'GT': 'Greater than',
        'NEQ': 'Not equal operator',
    }
    assert {v['name'] for v in _type('SortingOrientation')['enumValues']} == {'ASC', 'DESC'}


def test_scalar_field_nullability():
    fields = _fields(_type('User'))
    assert fields['name']['type']['kind'] == 'NON_NULL'
    assert fields['age']['type'] == {'kind': 'SCALAR', 'name': 'Int', 'ofType': None}
    assert fields['created_at']['type']['ofType']['name'] == 'DateTime'
    # JSON columns have no GraphQL mapping
    assert 'settings' not in fields


def test_association_fields():
    user = _fields(_type('User'))
    posts = user['posts']['type']
    assert posts['kind'] == 'NON_NULL'
    assert posts['ofType']['kind'] == 'LIST'
    assert posts['ofType']['ofType']['name'] == 'Post'
    assert user['profile']['type'] == {'kind': 'OBJECT', 'name': 'Profile', 'ofType': None}

    post = _fields(_type('Post'))
    assert post['author']['type']['kind'] == 'NON_NULL'
    assert post['author']['type']['ofType']['name'] == 'User'
    assert post['comments']['type']['kind'] == 'LIST'

    comment = _fields(_type('Comment'))
    assert comment['post']['type']['name'] == 'Post'


def test_input_fields():
    inp = _fields(_type('PostInput'), 'inputFields')
    assert inp['title']['type']['kind'] == 'NON_NULL'
    assert inp['content']['type']['name'] == 'String'
    assert inp['id']['type']['name'] == 'Int'
    assert inp['author']['type']['name'] == 'UserJoinInput'
    assert inp['tags']['type']['kind'] == 'LIST'
    assert inp['tags']['type']['ofType']['name'] == 'TagJoinInput'
    # inverse sides are not writable
    assert 'comments' not in inp
    assert 'posts' not in _fields(_type('TagInput'), 'inputFields')
    assert set(_fields(_type('UserJoinInput'), 'inputFields')) == {'id'}


def test_search_and_sort_fields():
    search = _fields(_type('PostSearchInput'), 'inputFields')
    assert search['title']['type']['kind'] == 'LIST'
    assert search['title']['type']['ofType']['name'] == 'SearchFilterInput'
    assert search['author']['type']['name'] == 'UserSearchInput'
    assert search['tags']['type']['name'] == 'TagSearchInput'
    sort = _fields(_type('PostSortInput'), 'inputFields')
    assert sort['title']['type']['name'] == 'SortingOrientation'
    assert 'author' not in sort


def test_page_type():
    page = _fields(_type('UserPage'))
    assert page['total']['type']['name'] == 'Int'
    assert page['page']['type']['kind'] == 'NON_NULL'
    assert page['limit']['type']['kind'] == 'NON_NULL'
    assert page['sort']['type']['name'] == 'UserSort'
    assert page['filter']['type']['name'] == 'UserSearch'
    assert page['match']['type']['name'] == 'UserSearch'
    assert page['items']['type']['ofType']['name'] == 'User'


def test_root_operations():
    query = _fields(_type('Query'))
    for name in ('getUser', 'getManyUser', 'getUserPage', 'getPost', 'getTagPage'):
        assert name in query, name
    assert query['getUser']['description'] == 'Get single User'
    mutation = _fields(_type('Mutation'))
    assert mutation['createPost']['description'] == 'Creates new Post'
    assert mutation['updatePost']['description'] == 'Updates Post'
    assert mutation['deletePost']['description'] == 'Delete a Post'
    assert not any('Setting' in name for name in list(query) + list(mutation))


def test_root_arguments():
    res = schema.execute_sync(
        """
        {
          __type(name: "Query") {
            fields { name args { name type { kind name ofType { kind name ofType { kind name } } } } }
          }
        }
        """
    )
    assert res.errors is None, res.errors
    fields = {f['name']: {a['name']: a['type'] for a in f['args']} for f in res.data['__type']['fields']}
    assert fields['getUser']['id']['kind'] == 'NON_NULL'
    assert fields['getUser']['id']['ofType']['name'] == 'Int'
    many = fields['getManyUser']['id']
    assert many['kind'] == 'NON_NULL'
    assert many['ofType']['kind'] == 'LIST'
    assert many['ofType']['ofType'] == {'kind': 'NON_NULL', 'name': None}
    page = fields['getUserPage']
    assert set(page) == {'page', 'limit', 'sort', 'match', 'filter'}
    assert page['page']['kind'] == 'NON_NULL'
    assert page['filter']['name'] == 'UserSearchInput'


def test_page_items_unwrap_to_entity_type():
    from alchemyql.types.definitions import unwrap
    from tests.schema import builder

    reg = builder.registry
    for name in ('User', 'Post', 'Comment', 'Tag', 'Profile'):
        items = reg.get_type(name + 'Page').get_field('items')['type']
        assert unwrap(items) is reg.get_type(name)
