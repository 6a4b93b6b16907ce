"""Comment threading.

Comments form a two-level tree: top-level comments and their replies. A
reply always points at a top-level comment of the same post. The tree is
held as an arena of comment records keyed by id, with the parent stored
as an optional id reference.

Soft-deleted comments stay stored but are excluded from listings and from
the post's comment counter. A deleted top-level comment that still has
visible replies is rendered as a placeholder so the replies keep their
context.
"""

from collections import defaultdict
from datetime import datetime
from typing import Callable, Dict, Iterable, List, Optional
import logging

from bloglab.db.base import utcnow
from bloglab.exceptions import InvalidNestingError, NotFoundError
from bloglab.schemas import Comment, CommentCreate, CommentNode
from bloglab.schemas.comment_schema import DELETED_PLACEHOLDER
from bloglab.services.cache_service import CacheAside
from bloglab.services.common import find_comment, require_active_user, require_post
from bloglab.services.ranking_service import Leaderboard
from bloglab.stores.base import BackingStore, EntityKind

logger = logging.getLogger(__name__)

def _order_key(comment: Comment):
    return (comment.created_at, comment.id)

def order_comments(comments: Iterable[Comment]) -> List[Comment]:
    """Top-level comments first, then replies; each level by creation time, then id"""
    comments = list(comments)
    top_level = sorted((c for c in comments if c.is_top_level), key=_order_key)
    replies = sorted((c for c in comments if not c.is_top_level), key=_order_key)
    return top_level + replies

def _render(comment: Comment, replies: List[CommentNode]) -> CommentNode:
    return CommentNode(
        id=comment.id,
        user_id=comment.user_id,
        post_id=comment.post_id,
        content=DELETED_PLACEHOLDER if comment.is_deleted else comment.content,
        parent_comment_id=comment.parent_comment_id,
        is_deleted=comment.is_deleted,
        created_at=comment.created_at,
        replies=replies,
    )

def build_thread(comments: Iterable[Comment]) -> List[CommentNode]:
    """Render comments as top-level nodes with their visible replies"""
    arena: Dict[int, Comment] = {c.id: c for c in comments}
    children: Dict[int, List[Comment]] = defaultdict(list)
    for comment in arena.values():
        if not comment.is_top_level and not comment.is_deleted:
            children[comment.parent_comment_id].append(comment)

    thread = []
    for comment in sorted((c for c in arena.values() if c.is_top_level), key=_order_key):
        replies = [_render(r, []) for r in sorted(children.get(comment.id, []), key=_order_key)]
        if comment.is_deleted and not replies:
            continue
        thread.append(_render(comment, replies))
    return thread

class CommentTree:
    def __init__(
        self,
        store: BackingStore,
        cache: Optional[CacheAside] = None,
        clock: Callable[[], datetime] = utcnow,
        thread_ttl: Optional[int] = None,
        board: Optional[Leaderboard] = None
    ):
        self.store = store
        self.cache = cache
        self.clock = clock
        self.thread_ttl = thread_ttl
        self.board = board

    async def add_comment(
        self,
        post_id: int,
        user_id: int,
        content: str,
        parent_comment_id: Optional[int] = None
    ) -> Comment:
        """Create a comment, or a reply when ``parent_comment_id`` is given.

        Raises:
            ValidationError: content is empty.
            NotFoundError: the post, the user or the parent comment does not
                exist, or the parent is deleted or belongs to another post.
            InvalidNestingError: the parent is itself a reply.
        """
        comment_data = CommentCreate.parse(
            user_id=user_id,
            content=content,
            parent_comment_id=parent_comment_id
        )
        await require_post(self.store, post_id)
        await require_active_user(self.store, user_id)

        if comment_data.parent_comment_id is not None:
            await self._require_reply_target(post_id, comment_data.parent_comment_id)

        now = self.clock()
        record = {
            "user_id": user_id,
            "post_id": post_id,
            "content": comment_data.content,
            "parent_comment_id": comment_data.parent_comment_id,
            "is_deleted": False,
            "created_at": now,
            "updated_at": now,
        }
        async with self.store.transaction():
            comment_id = await self.store.insert(EntityKind.COMMENT, record)
            await self.store.update_fields(EntityKind.POST, post_id, increments={"comment_count": 1})

        await self._post_changed(post_id)

        logger.info(f"Created comment {comment_id} by user {user_id} on post {post_id}")
        return Comment(id=comment_id, **record)

    async def _require_reply_target(self, post_id: int, parent_comment_id: int) -> Comment:
        parent = await find_comment(self.store, parent_comment_id)
        if parent is None or parent.post_id != post_id or parent.is_deleted:
            raise NotFoundError(
                "Parent comment not found or doesn't belong to this post",
                context={"post_id": post_id, "parent_comment_id": parent_comment_id}
            )
        if not parent.is_top_level:
            raise InvalidNestingError(
                "Replies can only be made to top-level comments",
                context={"parent_comment_id": parent_comment_id}
            )
        return parent

    async def get_comment(self, comment_id: int) -> Comment:
        comment = await find_comment(self.store, comment_id)
        if comment is None:
            raise NotFoundError("Comment not found", context={"comment_id": comment_id})
        return comment

    async def soft_delete_comment(self, comment_id: int) -> bool:
        """Flag a comment as deleted; its replies stay visible.

        Returns False when the comment was already deleted.
        """
        comment = await self.get_comment(comment_id)
        if comment.is_deleted:
            return False

        async with self.store.transaction():
            await self.store.update_fields(
                EntityKind.COMMENT,
                comment_id,
                changes={"is_deleted": True, "updated_at": self.clock()}
            )
            await self.store.update_fields(EntityKind.POST, comment.post_id, increments={"comment_count": -1})

        await self._post_changed(comment.post_id)

        logger.info(f"Soft-deleted comment {comment_id} on post {comment.post_id}")
        return True

    async def _load(self, post_id: int) -> List[Comment]:
        rows = await self.store.query(EntityKind.COMMENT, {"post_id": post_id})
        return [Comment.model_validate(row) for row in rows]

    async def list_comments(self, post_id: int) -> List[Comment]:
        """Visible comments of a post, top-level before replies"""
        await require_post(self.store, post_id)
        return order_comments(c for c in await self._load(post_id) if not c.is_deleted)

    async def comment_thread(self, post_id: int) -> List[CommentNode]:
        """Visible comments of a post as a rendered two-level tree"""
        await require_post(self.store, post_id)

        async def load():
            return [node.model_dump(mode="json") for node in build_thread(await self._load(post_id))]

        if self.cache is None:
            nodes = await load()
        else:
            nodes = await self.cache.get(self.cache.key("post_comments", post_id), load, ttl=self.thread_ttl)
        return [CommentNode.model_validate(node) for node in nodes]

    async def comment_count(self, post_id: int) -> int:
        """Number of comments that are not soft-deleted"""
        return await self.store.count(EntityKind.COMMENT, {"post_id": post_id, "is_deleted": False})

    async def reconcile(self, post_id: int) -> int:
        """Reset the post's comment counter to the number of visible comments"""
        async with self.store.transaction():
            count = await self.comment_count(post_id)
            await self.store.update_fields(EntityKind.POST, post_id, changes={"comment_count": count})
        await self._post_changed(post_id)
        return count

    async def _post_changed(self, post_id: int) -> None:
        if self.cache is not None:
            await self.cache.invalidate(self.cache.key(EntityKind.POST.value, post_id))
            await self.cache.invalidate(self.cache.key("post_comments", post_id))
        if self.board is not None:
            await self.board.track(post_id)
