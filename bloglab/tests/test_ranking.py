import pytest
from datetime import datetime, timedelta

from bloglab.exceptions import ValidationError
from bloglab.schemas import Post
from bloglab.services import build_services
from bloglab.services.ranking_service import engagement_score, rank_posts
from bloglab.stores.base import EntityKind
from bloglab.tests.conftest import BrokenCacheStore, create_post, create_user

def _post(post_id, likes=0, comments=0, views=0, created_at=datetime(2024, 1, 1), published=True):
    return Post(
        id=post_id,
        user_id=1,
        title=f"Post {post_id}",
        body="...",
        slug=f"post-{post_id}",
        is_published=published,
        created_at=created_at,
        updated_at=created_at,
        like_count=likes,
        comment_count=comments,
        view_count=views,
    )

def test_score_weights():
    assert engagement_score(5, 8, 150) == 49.0
    assert engagement_score(0, 0, 0) == 0.0
    assert engagement_score(0, 0, 3) == 0.3

def test_score_rejects_negative_counts():
    with pytest.raises(ValidationError):
        engagement_score(-1, 0, 0)

def test_rank_orders_by_score():
    posts = [_post(1, 20, 12, 52), _post(2, 20, 10, 91), _post(3, 40, 15, 32)]

    ranked = rank_posts(posts)
    assert [r.score for r in ranked] == [128.2, 81.2, 79.1]
    assert [r.post.id for r in ranked] == [3, 1, 2]
    assert [r.rank for r in ranked] == [1, 2, 3]

def test_rank_ties_prefer_newer_then_lower_id():
    older = datetime(2024, 1, 1)
    newer = datetime(2024, 2, 1)
    posts = [_post(5, likes=1, created_at=older), _post(4, likes=1, created_at=older), _post(9, likes=1, created_at=newer)]

    assert [r.post.id for r in rank_posts(posts)] == [9, 4, 5]

def test_unpublished_posts_are_excluded_before_limit():
    posts = [_post(1, likes=100, published=False), _post(2, likes=1), _post(3, likes=2)]

    ranked = rank_posts(posts, limit=2)
    assert [r.post.id for r in ranked] == [3, 2]

async def _seed(services):
    author = await create_user(services, "author")
    fans = [await create_user(services, f"fan{i}") for i in range(3)]
    quiet = await create_post(services, author.id, "Quiet")
    loud = await create_post(services, author.id, "Loud")
    hidden = await create_post(services, author.id, "Hidden", is_published=False)
    for fan in fans:
        await services.likes.add_like(loud.id, fan.id)
        await services.likes.add_like(hidden.id, fan.id)
    await services.comments.add_comment(quiet.id, fans[0].id, "Nice")
    return quiet, loud, hidden, fans

async def test_trending_ranks_published_posts(services):
    quiet, loud, hidden, _ = await _seed(services)

    ranked = await services.ranking.trending(limit=10)

    assert [r.post.id for r in ranked] == [loud.id, quiet.id]
    assert ranked[0].score == 6.0
    assert ranked[1].score == 3.0

async def test_views_count_towards_trending(services):
    quiet, loud, _, _ = await _seed(services)
    for _ in range(40):
        await services.posts.record_view(quiet.id)

    ranked = await services.ranking.trending(limit=2)
    assert ranked[0].post.id == quiet.id
    assert ranked[0].score == 7.0

async def test_leaderboard_reads_published_scores(services, cache_store):
    quiet, loud, hidden, _ = await _seed(services)

    await services.ranking.trending()
    top = await cache_store.zset_top_n(services.ranking.leaderboard_key, 5)
    assert [member for member, _ in top] == [str(loud.id), str(quiet.id)]

    board = await services.ranking.leaderboard(5)
    assert [r.post.id for r in board] == [loud.id, quiet.id]

async def test_leaderboard_follows_engagement_without_trending(services, cache_store):
    quiet, loud, hidden, _ = await _seed(services)

    top = await cache_store.zset_top_n(services.ranking.leaderboard_key, 5)
    assert top == [(str(loud.id), 6.0), (str(quiet.id), 3.0)]

    board = await services.ranking.leaderboard(1)
    assert [r.post.id for r in board] == [loud.id]

async def test_leaderboard_falls_back_when_empty(store, cache_store, settings, clock):
    author_services = build_services(store, None, settings, clock=clock)
    author = await create_user(author_services, "author")
    first = await create_post(author_services, author.id, "First")

    services = build_services(store, cache_store, settings, clock=clock)
    assert await cache_store.zset_top_n(services.ranking.leaderboard_key, 5) == []

    board = await services.ranking.leaderboard(1)
    assert [r.post.id for r in board] == [first.id]

async def test_leaderboard_drops_unpublished_posts(services, cache_store):
    author = await create_user(services, "author")
    fan = await create_user(services, "fan")
    liked = await create_post(services, author.id, "Liked")
    other = await create_post(services, author.id, "Other")
    await services.likes.add_like(liked.id, fan.id)
    await services.ranking.trending()

    await services.posts.set_published(liked.id, False)

    board = await services.ranking.leaderboard(1)
    assert [r.post.id for r in board] == [other.id]
    members = await cache_store.zset_top_n(services.ranking.leaderboard_key, 5)
    assert [member for member, _ in members] == [str(other.id)]

async def test_leaderboard_drops_deleted_posts(services, cache_store):
    author = await create_user(services, "author")
    fan = await create_user(services, "fan")
    doomed = await create_post(services, author.id, "Doomed")
    other = await create_post(services, author.id, "Other")
    await services.likes.add_like(doomed.id, fan.id)
    await services.ranking.trending()

    await services.posts.delete_post(doomed.id)

    assert [r.post.id for r in await services.ranking.leaderboard(1)] == [other.id]

async def test_leaderboard_sees_likes_after_trending(services):
    author = await create_user(services, "author")
    fans = [await create_user(services, f"fan{i}") for i in range(3)]
    early = await create_post(services, author.id, "Early favourite")
    late = await create_post(services, author.id, "Late bloomer")
    await services.likes.add_like(early.id, fans[0].id)
    await services.ranking.trending()

    for fan in fans:
        await services.likes.add_like(late.id, fan.id)
    await services.comments.add_comment(early.id, fans[0].id, "Still good")

    board = await services.ranking.leaderboard(2)
    assert [(r.post.id, r.score) for r in board] == [(late.id, 6.0), (early.id, 5.0)]
    assert [r.post.id for r in await services.ranking.trending(2)] == [late.id, early.id]

async def test_views_move_posts_on_the_leaderboard(services, cache_store):
    author = await create_user(services, "author")
    post = await create_post(services, author.id, "Watched")

    for _ in range(3):
        await services.posts.record_view(post.id)

    top = await cache_store.zset_top_n(services.ranking.leaderboard_key, 1)
    assert top == [(str(post.id), pytest.approx(0.3))]

async def test_leaderboard_falls_back_when_cache_down(store, settings, clock):
    services = build_services(store, BrokenCacheStore(), settings, clock=clock)
    quiet, loud, _, _ = await _seed(services)

    board = await services.ranking.leaderboard(2)
    assert [r.post.id for r in board] == [loud.id, quiet.id]

async def test_trending_since_counts_recent_engagement_only(services, clock):
    quiet, loud, _, fans = await _seed(services)
    clock.advance(days=40)
    since = clock.now - timedelta(days=1)

    await services.comments.add_comment(quiet.id, fans[1].id, "Still great")
    await services.comments.add_comment(quiet.id, fans[2].id, "Agreed")
    for _ in range(100):
        await services.store.update_fields(EntityKind.POST, loud.id, increments={"view_count": 1})

    ranked = await services.ranking.trending_since(since, limit=5)

    assert [r.post.id for r in ranked] == [quiet.id]
    assert ranked[0].score == 6.0
