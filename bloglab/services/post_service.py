from datetime import datetime
from typing import Any, Callable, Dict, List, Mapping, Optional, Union
import logging
import re

from bloglab.db.base import utcnow
from bloglab.exceptions import NotFoundError, ValidationError
from bloglab.schemas import Post, PostCreate, PostDetails, PostUpdate, UserStats
from bloglab.services.cache_service import CacheAside
from bloglab.services.common import require_active_user, require_post, require_user
from bloglab.services.ranking_service import Leaderboard, engagement_score
from bloglab.stores.base import BackingStore, Contains, EntityKind

logger = logging.getLogger(__name__)

NEWEST_FIRST = [("created_at", "desc"), ("id", "desc")]
MOST_LIKED_FIRST = [("like_count", "desc"), ("created_at", "desc"), ("id", "desc")]

def slugify(title: str) -> str:
    """'Getting Started with Database Design' -> 'getting-started-with-database-design'"""
    slug = re.sub(r"[^a-z0-9]+", "-", title.lower()).strip("-")
    if not slug:
        raise ValidationError("Cannot derive a slug from the title", context={"title": title})
    return slug[:250]

class PostService:
    def __init__(
        self,
        store: BackingStore,
        cache: Optional[CacheAside] = None,
        clock: Callable[[], datetime] = utcnow,
        cache_ttl: Optional[int] = None,
        board: Optional[Leaderboard] = None
    ):
        self.store = store
        self.cache = cache
        self.clock = clock
        self.cache_ttl = cache_ttl
        self.board = board

    def _cache_key(self, post_id: int) -> str:
        return self.cache.key(EntityKind.POST.value, post_id)

    async def create_post(self, user_id: int, post_data: Union[PostCreate, Mapping[str, Any]]) -> Post:
        """Create a new post.

        The author's display data is attached to the returned post; the
        document store keeps that copy, the relational store resolves it
        from the user on each read.
        """
        post_data = PostCreate.parse(post_data)
        author = await require_active_user(self.store, user_id)
        now = self.clock()

        record = {
            "user_id": user_id,
            "title": post_data.title,
            "body": post_data.body,
            "image_url": post_data.image_url,
            "slug": post_data.slug or slugify(post_data.title),
            "is_published": post_data.is_published,
            "created_at": now,
            "updated_at": now,
            "like_count": 0,
            "comment_count": 0,
            "view_count": 0,
        }
        post_id = await self.store.insert(EntityKind.POST, record)

        logger.info(f"Created post {post_id} by user {user_id}: {post_data.title}")
        return Post(
            id=post_id,
            author_username=author.username,
            author_display_name=author.display_name,
            **record
        )

    async def get_post(self, post_id: int) -> Post:
        """Get a post by ID straight from the store"""
        return await require_post(self.store, post_id)

    async def _details(self, post: Post) -> PostDetails:
        updates: Dict[str, Any] = {}
        if post.author_display_name is None:
            author = await self.store.find_by_id(EntityKind.USER, post.user_id)
            if author is not None:
                updates["author_username"] = author["username"]
                updates["author_display_name"] = f"{author['first_name']} {author['last_name']}"

        data = {**post.model_dump(), **updates}
        data["engagement_score"] = engagement_score(post.like_count, post.comment_count, post.view_count)
        return PostDetails(**data)

    async def get_post_details(self, post_id: int) -> PostDetails:
        """Post with author name and score, served through the cache"""
        async def load():
            record = await self.store.find_by_id(EntityKind.POST, post_id)
            if record is None:
                return None
            details = await self._details(Post.model_validate(record))
            return details.model_dump(mode="json")

        if self.cache is None:
            data = await load()
        else:
            data = await self.cache.get(self._cache_key(post_id), load, ttl=self.cache_ttl)

        if data is None:
            raise NotFoundError("Post not found", context={"post_id": post_id})
        return PostDetails.model_validate(data)

    async def record_view(self, post_id: int) -> PostDetails:
        """Count one view of a post and return its details.

        The view is written through: the store counter is incremented and
        the cached details are replaced with the counted copy, so a cached
        post is not reloaded from the store on every view.
        """
        details = await self.get_post_details(post_id)
        view_count = details.view_count + 1
        viewed = details.model_copy(update={
            "view_count": view_count,
            "engagement_score": engagement_score(details.like_count, details.comment_count, view_count),
        })

        async def write(_value):
            if not await self.store.update_fields(EntityKind.POST, post_id, increments={"view_count": 1}):
                raise NotFoundError("Post not found", context={"post_id": post_id})

        if self.cache is None:
            await write(None)
        else:
            await self.cache.set(self._cache_key(post_id), viewed.model_dump(mode="json"), write, ttl=self.cache_ttl)

        if self.board is not None:
            await self.board.update(viewed)
        return viewed

    async def update_post(self, post_id: int, post_update: Union[PostUpdate, Mapping[str, Any]]) -> Post:
        """Update a post, writing through to the cache"""
        post_update = PostUpdate.parse(post_update)
        post = await require_post(self.store, post_id)

        changes: Dict[str, Any] = post_update.model_dump(exclude_unset=True)
        if not changes:
            return post
        changes["updated_at"] = self.clock()
        updated = post.model_copy(update=changes)

        async def write(_value):
            if not await self.store.update_fields(EntityKind.POST, post_id, changes):
                raise NotFoundError("Post not found", context={"post_id": post_id})

        if self.cache is None:
            await write(None)
        else:
            details = await self._details(updated)
            await self.cache.set(self._cache_key(post_id), details.model_dump(mode="json"), write, ttl=self.cache_ttl)

        if self.board is not None:
            await self.board.update(updated)

        logger.info(f"Updated post {post_id}: {sorted(changes)}")
        return updated

    async def set_published(self, post_id: int, published: bool) -> Post:
        return await self.update_post(post_id, PostUpdate(is_published=published))

    async def list_published(self, limit: Optional[int] = None) -> List[Post]:
        """All published posts, newest first"""
        rows = await self.store.query(EntityKind.POST, {"is_published": True}, sort=NEWEST_FIRST, limit=limit)
        return [Post.model_validate(row) for row in rows]

    async def most_liked(self, limit: int = 5) -> List[Post]:
        """Published posts with the most likes; newer posts first on equal counts"""
        rows = await self.store.query(EntityKind.POST, {"is_published": True}, sort=MOST_LIKED_FIRST, limit=limit)
        return [Post.model_validate(row) for row in rows]

    async def posts_by_user(self, user_id: int, include_unpublished: bool = True) -> List[Post]:
        """Posts by a specific user, newest first, drafts included unless asked otherwise"""
        await require_user(self.store, user_id)
        filters: Dict[str, Any] = {"user_id": user_id}
        if not include_unpublished:
            filters["is_published"] = True
        rows = await self.store.query(EntityKind.POST, filters, sort=NEWEST_FIRST)
        return [Post.model_validate(row) for row in rows]

    async def search_posts(self, query: str, limit: Optional[int] = None) -> List[Post]:
        """Published posts whose title contains ``query``, ignoring case"""
        query = (query or "").strip()
        if not query:
            raise ValidationError("Search query must not be empty")
        rows = await self.store.query(
            EntityKind.POST,
            {"title": Contains(query), "is_published": True},
            sort=NEWEST_FIRST,
            limit=limit
        )
        return [Post.model_validate(row) for row in rows]

    async def user_stats(self, user_id: int) -> UserStats:
        """Totals across every post the user authored"""
        await require_user(self.store, user_id)
        rows = await self.store.query(EntityKind.POST, {"user_id": user_id})
        return UserStats(
            user_id=user_id,
            total_posts=len(rows),
            total_likes=sum(row["like_count"] for row in rows),
            total_comments=sum(row["comment_count"] for row in rows),
            total_views=sum(row["view_count"] for row in rows),
        )

    async def delete_post(self, post_id: int) -> None:
        """Delete a post together with its likes and comments"""
        if not await self.store.delete(EntityKind.POST, post_id, cascade=True):
            raise NotFoundError("Post not found", context={"post_id": post_id})
        await self.invalidate(post_id)
        if self.cache is not None:
            await self.cache.invalidate(self.cache.key("post_comments", post_id))
        if self.board is not None:
            await self.board.remove(post_id)
        logger.info(f"Deleted post {post_id}")

    async def invalidate(self, post_id: int) -> None:
        if self.cache is not None:
            await self.cache.invalidate(self._cache_key(post_id))
