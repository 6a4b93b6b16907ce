from datetime import datetime
from typing import Callable, List, Optional
import logging

from bloglab.db.base import utcnow
from bloglab.exceptions import ConflictError
from bloglab.schemas import Like
from bloglab.services.cache_service import CacheAside
from bloglab.services.common import require_active_user, require_post
from bloglab.services.ranking_service import Leaderboard
from bloglab.stores.base import BackingStore, EntityKind

logger = logging.getLogger(__name__)

class LikeLedger:
    """Append-only like records with a counter kept on the post.

    A user likes a post at most once. The post's ``like_count`` is changed
    in the same transaction as the like record, so it always equals the
    number of like records for the post.
    """

    def __init__(
        self,
        store: BackingStore,
        cache: Optional[CacheAside] = None,
        clock: Callable[[], datetime] = utcnow,
        board: Optional[Leaderboard] = None
    ):
        self.store = store
        self.cache = cache
        self.clock = clock
        self.board = board

    async def add_like(self, post_id: int, user_id: int) -> bool:
        """Like a post.

        Returns True when a like was recorded and False when the user had
        already liked the post, including when a concurrent duplicate wins
        the race on the unique constraint.
        """
        await require_post(self.store, post_id)
        await require_active_user(self.store, user_id)

        if await self.has_liked(post_id, user_id):
            logger.info(f"User {user_id} already liked post {post_id}")
            return False

        record = {"user_id": user_id, "post_id": post_id, "created_at": self.clock()}
        try:
            async with self.store.transaction():
                like_id = await self.store.insert(EntityKind.LIKE, record)
                await self.store.update_fields(EntityKind.POST, post_id, increments={"like_count": 1})
        except ConflictError:
            logger.info(f"Duplicate like from user {user_id} on post {post_id} resolved as already liked")
            return False

        await self._post_changed(post_id)

        logger.info(f"Created like {like_id}: user={user_id}, post={post_id}")
        return True

    async def has_liked(self, post_id: int, user_id: int) -> bool:
        """Check if user has liked a post"""
        return await self.store.count(EntityKind.LIKE, {"post_id": post_id, "user_id": user_id}) > 0

    async def like_count(self, post_id: int) -> int:
        """Number of like records for a post"""
        return await self.store.count(EntityKind.LIKE, {"post_id": post_id})

    async def likes_for_post(self, post_id: int) -> List[Like]:
        await require_post(self.store, post_id)
        rows = await self.store.query(
            EntityKind.LIKE,
            {"post_id": post_id},
            sort=[("created_at", "asc"), ("id", "asc")]
        )
        return [Like.model_validate(row) for row in rows]

    async def reconcile(self, post_id: int) -> int:
        """Reset the post's like counter to the number of like records"""
        async with self.store.transaction():
            count = await self.like_count(post_id)
            await self.store.update_fields(EntityKind.POST, post_id, changes={"like_count": count})
        await self._post_changed(post_id)
        return count

    async def _post_changed(self, post_id: int) -> None:
        if self.cache is not None:
            await self.cache.invalidate(self.cache.key(EntityKind.POST.value, post_id))
        if self.board is not None:
            await self.board.track(post_id)
