from datetime import datetime
from typing import Any, Callable, Dict, Mapping, Optional, Set, Union
import logging

from passlib.context import CryptContext

from bloglab.db.base import utcnow
from bloglab.schemas import User, UserActivity, UserCreate, UserUpdate
from bloglab.services.cache_service import CacheAside
from bloglab.services.comment_service import CommentTree
from bloglab.services.common import require_user
from bloglab.services.like_service import LikeLedger
from bloglab.services.ranking_service import Leaderboard
from bloglab.stores.base import BackingStore, EntityKind

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")

class UserService:
    def __init__(
        self,
        store: BackingStore,
        likes: Optional[LikeLedger] = None,
        comments: Optional[CommentTree] = None,
        cache: Optional[CacheAside] = None,
        clock: Callable[[], datetime] = utcnow,
        board: Optional[Leaderboard] = None
    ):
        self.store = store
        self.cache = cache
        self.clock = clock
        self.board = board
        self.likes = likes or LikeLedger(store, cache=cache, clock=clock)
        self.comments = comments or CommentTree(store, cache=cache, clock=clock)

    def get_password_hash(self, password: str) -> str:
        """Hash a password"""
        return pwd_context.hash(password)

    def verify_password(self, plain_password: str, password_hash: str) -> bool:
        """Verify a password against its hash"""
        return pwd_context.verify(plain_password, password_hash)

    async def register_user(self, user_data: Union[UserCreate, Mapping[str, Any]]) -> User:
        """Create a new user.

        Raises ValidationError for malformed input and ConflictError when
        the username or email is already taken.
        """
        user_data = UserCreate.parse(user_data)
        now = self.clock()

        record = {
            "username": user_data.username,
            "email": str(user_data.email),
            "password_hash": self.get_password_hash(user_data.password),
            "first_name": user_data.first_name,
            "last_name": user_data.last_name,
            "bio": user_data.bio,
            "avatar_url": user_data.avatar_url,
            "is_active": True,
            "created_at": now,
            "updated_at": now,
        }
        user_id = await self.store.insert(EntityKind.USER, record)

        logger.info(f"Created user {user_id}: {user_data.username}")
        return User(id=user_id, **record)

    async def get_user(self, user_id: int) -> User:
        return await require_user(self.store, user_id)

    async def get_by_username(self, username: str) -> Optional[User]:
        rows = await self.store.query(EntityKind.USER, {"username": username}, limit=1)
        return User.model_validate(rows[0]) if rows else None

    async def authenticate_user(self, username: str, password: str) -> Optional[User]:
        """Return the active user matching the credentials, or None"""
        user = await self.get_by_username(username)
        if not user or not user.is_active or not self.verify_password(password, user.password_hash):
            return None
        return user

    async def update_profile(self, user_id: int, user_update: Union[UserUpdate, Mapping[str, Any]]) -> User:
        """Update mutable profile fields.

        Posts keep the author name they were created with in the document
        store; only the relational store reflects renames.
        """
        user_update = UserUpdate.parse(user_update)
        user = await require_user(self.store, user_id)

        changes: Dict[str, Any] = user_update.model_dump(exclude_unset=True)
        if not changes:
            return user

        changes["updated_at"] = self.clock()
        await self.store.update_fields(EntityKind.USER, user_id, changes)

        logger.info(f"Updated profile of user {user_id}: {sorted(changes)}")
        return user.model_copy(update=changes)

    async def deactivate_user(self, user_id: int) -> User:
        """Soft-deactivate: the user and everything they wrote stays stored"""
        user = await require_user(self.store, user_id)
        if not user.is_active:
            return user

        changes = {"is_active": False, "updated_at": self.clock()}
        await self.store.update_fields(EntityKind.USER, user_id, changes)

        logger.info(f"Deactivated user {user_id}")
        return user.model_copy(update=changes)

    async def delete_user(self, user_id: int) -> None:
        """Delete a user with everything they own, then repair counters.

        Surviving posts the user liked or commented on lose those records,
        so their like and comment counters are recounted afterwards.
        """
        await require_user(self.store, user_id)

        own_posts = await self.store.query(EntityKind.POST, {"user_id": user_id})
        own_post_ids = {row["id"] for row in own_posts}

        touched: Set[int] = set()
        for kind in (EntityKind.LIKE, EntityKind.COMMENT):
            for row in await self.store.query(kind, {"user_id": user_id}):
                touched.add(row["post_id"])
        # Replies to the user's comments sit on the same posts, so they are covered
        touched -= own_post_ids

        await self.store.delete(EntityKind.USER, user_id, cascade=True)

        for post_id in sorted(touched):
            await self.likes.reconcile(post_id)
            await self.comments.reconcile(post_id)

        if self.cache is not None:
            for post_id in sorted(touched | own_post_ids):
                await self.cache.invalidate(self.cache.key(EntityKind.POST.value, post_id))
                await self.cache.invalidate(self.cache.key("post_comments", post_id))

        if self.board is not None:
            for post_id in sorted(own_post_ids):
                await self.board.remove(post_id)

        logger.info(f"Deleted user {user_id}, {len(own_post_ids)} posts removed, {len(touched)} posts recounted")

    async def activity(self, user_id: int) -> UserActivity:
        """Posts created, likes given and live comments made by a user"""
        user = await require_user(self.store, user_id)
        return UserActivity(
            user_id=user.id,
            username=user.username,
            full_name=user.display_name,
            posts_created=await self.store.count(EntityKind.POST, {"user_id": user_id}),
            likes_given=await self.store.count(EntityKind.LIKE, {"user_id": user_id}),
            comments_made=await self.store.count(EntityKind.COMMENT, {"user_id": user_id, "is_deleted": False}),
        )
