from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from bloglab.config import Settings, get_settings
from bloglab.db.base import utcnow
from bloglab.services.cache_service import CacheAside
from bloglab.services.comment_service import CommentTree
from bloglab.services.like_service import LikeLedger
from bloglab.services.post_service import PostService
from bloglab.services.ranking_service import Leaderboard, RankingService
from bloglab.services.user_service import UserService
from bloglab.stores.base import BackingStore, CacheStore

@dataclass
class Services:
    """Every service wired to the same store and cache handles"""
    store: BackingStore
    cache: Optional[CacheAside]
    users: UserService
    posts: PostService
    likes: LikeLedger
    comments: CommentTree
    ranking: RankingService

def build_services(
    store: BackingStore,
    cache_store: Optional[CacheStore] = None,
    settings: Optional[Settings] = None,
    clock: Callable[[], datetime] = utcnow
) -> Services:
    settings = settings or get_settings()
    cache = None
    if cache_store is not None:
        cache = CacheAside(
            cache_store,
            default_ttl=settings.POST_CACHE_TTL,
            key_prefix=settings.CACHE_KEY_PREFIX
        )

    ranking = RankingService(
        store,
        cache_store=cache_store,
        cache=cache,
        default_limit=settings.TRENDING_LIMIT,
        cache_ttl=settings.TRENDING_CACHE_TTL
    )
    # Every writer keeps the cached leaderboard current
    board = ranking.board

    likes = LikeLedger(store, cache=cache, clock=clock, board=board)
    comments = CommentTree(store, cache=cache, clock=clock, thread_ttl=settings.COMMENTS_CACHE_TTL, board=board)
    return Services(
        store=store,
        cache=cache,
        users=UserService(store, likes=likes, comments=comments, cache=cache, clock=clock, board=board),
        posts=PostService(store, cache=cache, clock=clock, cache_ttl=settings.POST_CACHE_TTL, board=board),
        likes=likes,
        comments=comments,
        ranking=ranking,
    )

__all__ = [
    'CacheAside',
    'CommentTree',
    'Leaderboard',
    'LikeLedger',
    'PostService',
    'RankingService',
    'Services',
    'UserService',
    'build_services',
]
