"""Lookups shared by the services.

Each helper loads a record through the store boundary and converts it to
its entity model, raising NotFoundError when it is absent.
"""
from typing import Optional

from bloglab.exceptions import NotFoundError
from bloglab.schemas import Comment, Post, User
from bloglab.stores.base import BackingStore, EntityKind

async def require_user(store: BackingStore, user_id: int) -> User:
    record = await store.find_by_id(EntityKind.USER, user_id)
    if record is None:
        raise NotFoundError("User not found", context={"user_id": user_id})
    return User.model_validate(record)

async def require_active_user(store: BackingStore, user_id: int) -> User:
    user = await require_user(store, user_id)
    if not user.is_active:
        raise NotFoundError("Active user not found", context={"user_id": user_id})
    return user

async def require_post(store: BackingStore, post_id: int) -> Post:
    record = await store.find_by_id(EntityKind.POST, post_id)
    if record is None:
        raise NotFoundError("Post not found", context={"post_id": post_id})
    return Post.model_validate(record)

async def find_comment(store: BackingStore, comment_id: int) -> Optional[Comment]:
    record = await store.find_by_id(EntityKind.COMMENT, comment_id)
    return Comment.model_validate(record) if record is not None else None
