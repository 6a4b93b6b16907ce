import pytest
from datetime import datetime
from pydantic import ValidationError as PydanticValidationError

from bloglab.exceptions import ConflictError, NotFoundError, ValidationError
from bloglab.schemas import CommentCreate, Post, PostCreate, UserCreate
from bloglab.services.post_service import slugify
from bloglab.tests.conftest import create_post, create_user

def test_user_payload_rejects_bad_email():
    with pytest.raises(ValidationError) as exc_info:
        UserCreate.parse(
            username="johndoe",
            email="not-an-email",
            password="secret",
            first_name="John",
            last_name="Doe"
        )
    assert "email" in exc_info.value.context["fields"]

def test_payload_strips_whitespace_and_rejects_blank():
    post = PostCreate.parse({"title": "  Hello  ", "body": "text"})
    assert post.title == "Hello"

    with pytest.raises(ValidationError):
        PostCreate.parse({"title": "   ", "body": "text"})

def test_comment_payload_requires_content():
    with pytest.raises(ValidationError):
        CommentCreate.parse(user_id=1, content="")

def test_stored_entities_are_frozen():
    now = datetime(2024, 1, 1)
    post = Post(id=1, user_id=1, title="T", body="B", slug="t", created_at=now, updated_at=now)
    with pytest.raises(PydanticValidationError):
        post.title = "changed"

    changed = post.model_copy(update={"title": "changed"})
    assert changed.title == "changed"
    assert post.title == "T"

def test_slugify():
    assert slugify("Getting Started with Database Design!") == "getting-started-with-database-design"
    with pytest.raises(ValidationError):
        slugify("!!!")

async def test_register_user_assigns_id_and_hashes_password(services):
    user = await create_user(services, "johndoe", first_name="John", last_name="Doe")

    assert user.id is not None
    assert user.display_name == "John Doe"
    assert user.password_hash != "Password123!"
    assert await services.users.authenticate_user("johndoe", "Password123!") is not None
    assert await services.users.authenticate_user("johndoe", "wrong") is None

async def test_duplicate_username_and_email_conflict(services):
    await create_user(services, "johndoe")

    with pytest.raises(ConflictError):
        await create_user(services, "johndoe", email="other@example.com")
    with pytest.raises(ConflictError):
        await create_user(services, "another", email="johndoe@example.com")

async def test_post_slug_is_derived_and_unique(services):
    author = await create_user(services, "johndoe")
    post = await create_post(services, author.id, "Getting Started with Database Design")

    assert post.slug == "getting-started-with-database-design"
    assert post.created_at is not None

    with pytest.raises(ConflictError):
        await create_post(services, author.id, "Getting Started with Database Design")

async def test_post_requires_existing_author(services):
    with pytest.raises(NotFoundError):
        await create_post(services, 999, "Orphan")
