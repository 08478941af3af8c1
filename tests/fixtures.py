"""Test fixtures and sample data for AlchemyQL tests.

Fixtures return plain id mappings: instances may be expired after a
mutation rolls the session back.
"""

import pytest
from datetime import datetime
from tests.models import User, Post, Comment, Tag, Profile


async def create_sample_users(session):
    """Create sample users for testing."""
    users = [
        User(name="Alice", email="alice@example.com", age=30, created_at=datetime(2024, 1, 1)),
        User(name="Bob", email="bob@example.com", age=18, created_at=datetime(2024, 1, 2)),
        User(name="Carol", email="carol@example.com", age=21, created_at=datetime(2024, 1, 3)),
        User(name="Dan", email="dan@example.com", age=17, is_active=False, created_at=datetime(2024, 1, 4)),
    ]
    session.add_all(users)
    await session.flush()
    session.add(Profile(bio="Likes SQL", user_id=users[0].id))
    await session.commit()
    return {u.name: u.id for u in users}


async def create_sample_posts(session, users):
    """Create sample posts and tags for testing."""
    python = Tag(label="python")
    graphql = Tag(label="graphql")
    unused = Tag(label="rust")
    posts = [
        Post(title="Hello", content="First post", author_id=users["Alice"], tags=[python]),
        Post(title="GraphQL", content="Schema first", author_id=users["Alice"], tags=[python, graphql]),
        Post(title="Tips", content=None, author_id=users["Bob"]),
    ]
    session.add_all([python, graphql, unused, *posts])
    await session.commit()
    return {
        'posts': {p.title: p.id for p in posts},
        'tags': {t.label: t.id for t in (python, graphql, unused)},
    }


async def create_sample_comments(session, posts):
    """Create sample comments for testing."""
    comments = [
        Comment(body="Nice", post_id=posts["Hello"]),
        Comment(body="Agreed", post_id=posts["Hello"]),
        Comment(body="Orphan", post_id=None),
    ]
    session.add_all(comments)
    await session.commit()
    return {c.body: c.id for c in comments}


@pytest.fixture(scope="function")
async def sample_users(db_session):
    """Fixture providing sample user ids keyed by name."""
    return await create_sample_users(db_session)


@pytest.fixture(scope="function")
async def sample_posts(db_session, sample_users):
    """Fixture providing sample post and tag ids."""
    return await create_sample_posts(db_session, sample_users)


@pytest.fixture(scope="function")
async def sample_comments(db_session, sample_posts):
    """Fixture providing sample comment ids keyed by body."""
    return await create_sample_comments(db_session, sample_posts['posts'])


@pytest.fixture(scope="function")
async def populated_db(db_session, sample_users, sample_posts, sample_comments):
    """Fixture providing a fully populated database."""
    return {
        'users': sample_users,
        'posts': sample_posts['posts'],
        'tags': sample_posts['tags'],
        'comments': sample_comments,
    }
