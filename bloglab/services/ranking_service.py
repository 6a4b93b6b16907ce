"""Engagement scoring and trending posts.

score = 2 * likes + 3 * comments + 0.1 * views

Only published posts are ranked. Ties on score go to the newer post, then
to the lower id, so the order is total.
"""

from collections import Counter
from datetime import datetime
from typing import Callable, Iterable, List, Optional, Tuple
import logging

from bloglab.exceptions import StoreUnavailableError, ValidationError
from bloglab.schemas import Post, RankedPost
from bloglab.services.cache_service import CacheAside
from bloglab.stores.base import AtLeast, BackingStore, CacheStore, EntityKind, OneOf
from bloglab.utils.cache import DEFAULT_PREFIX, cache_key

logger = logging.getLogger(__name__)

LIKE_WEIGHT = 2
COMMENT_WEIGHT = 3
VIEW_WEIGHT = 0.1

# Leaderboard reads this many candidates per requested post before filtering
CANDIDATE_FACTOR = 2

# Rounding keeps float noise (0.1 * views) from splitting real ties
SCORE_PRECISION = 6

def engagement_score(like_count: float, comment_count: float, view_count: float) -> float:
    """Weighted engagement: 2*likes + 3*comments + 0.1*views"""
    if min(like_count, comment_count, view_count) < 0:
        raise ValidationError(
            "Engagement counts must not be negative",
            context={"likes": like_count, "comments": comment_count, "views": view_count}
        )
    score = LIKE_WEIGHT * like_count + COMMENT_WEIGHT * comment_count + VIEW_WEIGHT * view_count
    return round(score, SCORE_PRECISION)

def post_score(post: Post) -> float:
    return engagement_score(post.like_count, post.comment_count, post.view_count)

def rank_posts(
    posts: Iterable[Post],
    limit: Optional[int] = None,
    score: Callable[[Post], float] = post_score
) -> List[RankedPost]:
    """Rank published posts by score, newest first on ties, then by id"""
    scored = [(score(post), post) for post in posts if post.is_published]
    scored.sort(key=lambda item: (-item[0], -item[1].created_at.timestamp(), item[1].id))
    if limit is not None:
        scored = scored[:limit]
    return [RankedPost(rank=i, score=s, post=post) for i, (s, post) in enumerate(scored, start=1)]

def leaderboard_key(prefix: str = DEFAULT_PREFIX) -> str:
    return cache_key("leaderboard", "trending", prefix=prefix)

class Leaderboard:
    """Post scores mirrored into a cache sorted set.

    Only published posts are members. Whoever changes a post's counters or
    visibility reports it here. Cache failures are logged and never reach
    the caller.
    """

    def __init__(self, store: BackingStore, cache_store: CacheStore, key: str):
        self.store = store
        self.cache_store = cache_store
        self.key = key

    async def update(self, post: Post) -> None:
        """Score a post whose current counters are known"""
        try:
            if post.is_published:
                await self.cache_store.zset_add(self.key, str(post.id), post_score(post))
            else:
                await self.cache_store.zset_remove(self.key, str(post.id))
        except StoreUnavailableError as e:
            logger.warning(f"Could not update leaderboard for post {post.id}: {e}")

    async def track(self, post_id: int) -> None:
        """Re-score a post from the store, dropping it once it is gone"""
        record = await self.store.find_by_id(EntityKind.POST, post_id)
        if record is None:
            await self.remove(post_id)
        else:
            await self.update(Post.model_validate(record))

    async def publish(self, posts: Iterable[Post]) -> None:
        """Score every published post after a full ranking"""
        try:
            for post in posts:
                if post.is_published:
                    await self.cache_store.zset_add(self.key, str(post.id), post_score(post))
        except StoreUnavailableError as e:
            logger.warning(f"Could not update trending leaderboard: {e}")

    async def remove(self, post_id: int) -> None:
        try:
            await self.cache_store.zset_remove(self.key, str(post_id))
        except StoreUnavailableError as e:
            logger.warning(f"Could not remove post {post_id} from leaderboard: {e}")

    async def top(self, n: int) -> List[Tuple[str, float]]:
        """Highest-scored members; raises StoreUnavailableError"""
        return await self.cache_store.zset_top_n(self.key, n)

class RankingService:
    def __init__(
        self,
        store: BackingStore,
        cache_store: Optional[CacheStore] = None,
        cache: Optional[CacheAside] = None,
        default_limit: int = 5,
        cache_ttl: Optional[int] = None
    ):
        self.store = store
        self.cache = cache
        self.default_limit = default_limit
        self.cache_ttl = cache_ttl
        self.board: Optional[Leaderboard] = None
        if cache_store is not None:
            prefix = cache.key_prefix if cache is not None else DEFAULT_PREFIX
            self.board = Leaderboard(store, cache_store, leaderboard_key(prefix))

    @property
    def leaderboard_key(self) -> Optional[str]:
        return self.board.key if self.board is not None else None

    async def _published(self) -> List[Post]:
        rows = await self.store.query(EntityKind.POST, {"is_published": True})
        return [Post.model_validate(row) for row in rows]

    async def trending(self, limit: Optional[int] = None) -> List[RankedPost]:
        """Top published posts by lifetime engagement.

        Every score is also pushed to the cache leaderboard.
        """
        posts = await self._published()
        ranked = rank_posts(posts, limit or self.default_limit)
        if self.board is not None:
            await self.board.publish(posts)
        return ranked

    async def trending_since(self, since: datetime, limit: Optional[int] = None) -> List[RankedPost]:
        """Top published posts by likes and comments received since ``since``.

        Views carry no timestamp, so they do not count here.
        """
        limit = limit or self.default_limit

        async def load():
            ranked = await self._rank_window(since, limit)
            return [entry.model_dump(mode="json") for entry in ranked]

        if self.cache is None:
            entries = await load()
        else:
            key = self.cache.key("trending", "window", {"since": since.isoformat(), "limit": limit})
            entries = await self.cache.get(key, load, ttl=self.cache_ttl)
        return [RankedPost.model_validate(entry) for entry in entries]

    async def _rank_window(self, since: datetime, limit: int) -> List[RankedPost]:
        posts = await self._published()
        if not posts:
            return []

        in_window = {"post_id": OneOf(post.id for post in posts), "created_at": AtLeast(since)}
        likes = Counter(row["post_id"] for row in await self.store.query(EntityKind.LIKE, in_window))
        comments = Counter(
            row["post_id"]
            for row in await self.store.query(EntityKind.COMMENT, {**in_window, "is_deleted": False})
        )

        def window_score(post: Post) -> float:
            return engagement_score(likes[post.id], comments[post.id], 0)

        active = [post for post in posts if likes[post.id] or comments[post.id]]
        return rank_posts(active, limit, score=window_score)

    async def leaderboard(self, n: Optional[int] = None) -> List[RankedPost]:
        """Top posts read from the cache leaderboard.

        Candidates are re-ranked from current counters with the full
        tie-break; members that were deleted or unpublished are dropped from
        the set. When the leaderboard cannot fill ``n`` places, or the cache
        is unreachable, the ranking comes from ``trending`` instead.
        """
        n = n or self.default_limit
        if self.board is None:
            return await self.trending(n)

        try:
            top = await self.board.top(n * CANDIDATE_FACTOR)
        except StoreUnavailableError as e:
            logger.warning(f"Leaderboard unavailable, ranking from store: {e}")
            return await self.trending(n)

        posts = []
        for member, _score in top:
            record = await self.store.find_by_id(EntityKind.POST, int(member))
            post = Post.model_validate(record) if record is not None else None
            if post is None or not post.is_published:
                await self.board.remove(int(member))
            else:
                posts.append(post)

        ranked = rank_posts(posts, n)
        if len(ranked) < n:
            logger.debug(f"Leaderboard holds {len(ranked)} of {n} posts, ranking from store")
            return await self.trending(n)
        return ranked
