import pytest

from bloglab.exceptions import ValidationError
from bloglab.stores.base import EntityKind
from bloglab.tests.conftest import create_post, create_user

LONG_URL = "https://example.com/" + "a" * 250

async def test_updates_reject_nulls_for_required_fields(services):
    author = await create_user(services, "author")
    post = await create_post(services, author.id, "Keep me", image_url="https://example.com/a.jpg")

    with pytest.raises(ValidationError):
        await services.posts.update_post(post.id, {"title": None})
    with pytest.raises(ValidationError):
        await services.posts.update_post(post.id, {"body": None})
    with pytest.raises(ValidationError):
        await services.posts.update_post(post.id, {"is_published": None})
    with pytest.raises(ValidationError):
        await services.users.update_profile(author.id, {"last_name": None})

    # Nothing was written, so every read still validates
    assert [p.title for p in await services.posts.list_published()] == ["Keep me"]
    assert (await services.posts.get_post_details(post.id)).title == "Keep me"
    assert (await services.users.get_user(author.id)).last_name == "Tester"

    # Optional columns can still be cleared
    cleared = await services.posts.update_post(post.id, {"image_url": None})
    assert cleared.image_url is None
    assert (await services.posts.get_post(post.id)).image_url is None

async def test_values_wider_than_their_columns_are_rejected(services):
    with pytest.raises(ValidationError):
        await create_user(services, "u" * 51)
    with pytest.raises(ValidationError):
        await create_user(services, "wide", first_name="x" * 51)
    with pytest.raises(ValidationError):
        await create_user(services, "mail", email="user@" + "a" * 60 + "." + "b" * 40 + ".com")

    user = await create_user(services, "u" * 50)
    with pytest.raises(ValidationError):
        await services.users.update_profile(user.id, {"avatar_url": LONG_URL})
    with pytest.raises(ValidationError):
        await create_post(services, user.id, "Pictured", image_url=LONG_URL)
    with pytest.raises(ValidationError):
        await create_post(services, user.id, "t" * 201)

async def test_views_are_written_through_the_cache(services, monkeypatch):
    author = await create_user(services, "author")
    post = await create_post(services, author.id, "Popular")

    reads = []
    find_by_id = services.store.find_by_id

    async def counting_find_by_id(kind, record_id):
        reads.append((kind, record_id))
        return await find_by_id(kind, record_id)

    monkeypatch.setattr(services.store, "find_by_id", counting_find_by_id)

    first = await services.posts.record_view(post.id)
    reads_after_first = len(reads)
    second = await services.posts.record_view(post.id)
    third = await services.posts.get_post_details(post.id)

    assert reads_after_first > 0
    assert len(reads) == reads_after_first
    assert (first.view_count, second.view_count, third.view_count) == (1, 2, 2)
    assert third.engagement_score == 0.2

    monkeypatch.undo()
    assert (await services.store.find_by_id(EntityKind.POST, post.id))["view_count"] == 2

async def test_views_without_cache_reach_the_store(services):
    services.posts.cache = None
    author = await create_user(services, "author")
    post = await create_post(services, author.id, "Uncached")

    for _ in range(3):
        details = await services.posts.record_view(post.id)

    assert details.view_count == 3
    assert (await services.posts.get_post(post.id)).view_count == 3

async def test_most_liked_posts(services):
    author = await create_user(services, "author")
    fans = [await create_user(services, f"fan{i}") for i in range(3)]
    modest = await create_post(services, author.id, "Modest")
    hit = await create_post(services, author.id, "Hit")
    draft = await create_post(services, author.id, "Draft", is_published=False)
    newer = await create_post(services, author.id, "Newer")

    for fan in fans:
        await services.likes.add_like(hit.id, fan.id)
        await services.likes.add_like(draft.id, fan.id)
    await services.likes.add_like(modest.id, fans[0].id)
    await services.likes.add_like(newer.id, fans[1].id)

    ranked = await services.posts.most_liked()
    assert [p.id for p in ranked] == [hit.id, newer.id, modest.id]
    assert [p.id for p in await services.posts.most_liked(limit=1)] == [hit.id]
