"""
Shared fixtures for mockdb tests.

The blog model used throughout:
- user: has many posts (plain and "top" by views), has one profile
- post: belongs to user through authorId, has many comments
- comment: belongs to post
- profile: belongs to user
"""

import pytest

from mockdb.config import StoreSettings
from mockdb.schema.types import EntitySchema, belongs_to, field, has_many, has_one
from mockdb.store.entity_store import EntityStore


class FakeClock:
    """Millisecond clock driven by the test."""

    def __init__(self, start: float = 1_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> None:
        self.now += ms


@pytest.fixture
def clock():
    """Controllable millisecond clock."""
    return FakeClock()


@pytest.fixture
def user_schema():
    return EntitySchema(
        name="user",
        fields=(
            field("email", "email", unique=True, hint="internet.email"),
            field("name", "string", hint="person.fullName"),
            field("role", "enum", values=("admin", "member"), default="member"),
            field("bio", "string", nullable=True),
            field("apiKey", "string", read_only=True),
        ),
        relations=(
            has_many("posts", "post", foreign_key="authorId"),
            has_many("topPosts", "post", foreign_key="authorId", order_by={"views": "desc"}, limit=2),
            has_one("profile", "profile"),
        ),
        timestamps=True,
    )


@pytest.fixture
def post_schema():
    return EntitySchema(
        name="post",
        fields=(
            field("title", "string", hint="lorem.sentence"),
            field("status", "enum", values=("draft", "published"), default="draft"),
            field("views", "int"),
            field("published", "boolean"),
            field("authorId", "ref", target="user"),
        ),
        relations=(
            belongs_to("author", "user", foreign_key="authorId"),
            has_many("comments", "comment"),
        ),
        timestamps=True,
    )


@pytest.fixture
def comment_schema():
    return EntitySchema(
        name="comment",
        fields=(
            field("body", "string", hint="lorem.paragraph"),
            field("postId", "ref", target="post"),
        ),
        relations=(belongs_to("post", "post"),),
    )


@pytest.fixture
def profile_schema():
    return EntitySchema(
        name="profile",
        fields=(
            field("website", "url", nullable=True),
            field("userId", "ref", target="user"),
        ),
        relations=(belongs_to("user", "user"),),
    )


@pytest.fixture
def blog_schemas(user_schema, post_schema, comment_schema, profile_schema):
    return [user_schema, post_schema, comment_schema, profile_schema]


@pytest.fixture
def store(blog_schemas):
    """Seeded-deterministic store with the blog model initialized."""
    s = EntityStore(StoreSettings(faker_seed=42))
    s.initialize(blog_schemas)
    return s
