import pytest
from datetime import datetime

from bloglab.exceptions import InvalidNestingError, NotFoundError, ValidationError
from bloglab.schemas import Comment
from bloglab.services.comment_service import build_thread, order_comments
from bloglab.tests.conftest import create_post, create_user

@pytest.fixture
async def thread(services):
    author = await create_user(services, "author")
    alice = await create_user(services, "alice")
    bob = await create_user(services, "bob")
    post = await create_post(services, author.id, "Discuss")
    return post, alice, bob

async def test_reply_nests_one_level(services, thread):
    post, alice, bob = thread
    top = await services.comments.add_comment(post.id, alice.id, "First!")
    reply = await services.comments.add_comment(post.id, bob.id, "Reply", parent_comment_id=top.id)

    assert top.is_top_level
    assert reply.parent_comment_id == top.id
    assert (await services.posts.get_post(post.id)).comment_count == 2

    nodes = await services.comments.comment_thread(post.id)
    assert [n.id for n in nodes] == [top.id]
    assert [r.id for r in nodes[0].replies] == [reply.id]

async def test_reply_to_reply_is_rejected(services, thread):
    post, alice, bob = thread
    top = await services.comments.add_comment(post.id, alice.id, "Top")
    reply = await services.comments.add_comment(post.id, bob.id, "Reply", parent_comment_id=top.id)

    with pytest.raises(InvalidNestingError):
        await services.comments.add_comment(post.id, alice.id, "Too deep", parent_comment_id=reply.id)
    assert await services.comments.comment_count(post.id) == 2
    assert (await services.posts.get_post(post.id)).comment_count == 2

async def test_reply_target_must_exist_on_same_post(services, thread):
    post, alice, bob = thread
    other = await create_post(services, alice.id, "Elsewhere")
    foreign = await services.comments.add_comment(other.id, bob.id, "Over here")

    with pytest.raises(NotFoundError):
        await services.comments.add_comment(post.id, alice.id, "Lost", parent_comment_id=999)
    with pytest.raises(NotFoundError):
        await services.comments.add_comment(post.id, alice.id, "Wrong post", parent_comment_id=foreign.id)
    with pytest.raises(NotFoundError):
        await services.comments.add_comment(999, alice.id, "No post")

async def test_reply_to_deleted_comment_is_rejected(services, thread):
    post, alice, bob = thread
    top = await services.comments.add_comment(post.id, alice.id, "Soon gone")
    await services.comments.soft_delete_comment(top.id)

    with pytest.raises(NotFoundError):
        await services.comments.add_comment(post.id, bob.id, "Hello?", parent_comment_id=top.id)

async def test_empty_content_is_rejected(services, thread):
    post, alice, _ = thread
    with pytest.raises(ValidationError):
        await services.comments.add_comment(post.id, alice.id, "   ")

async def test_soft_delete_keeps_replies_visible(services, thread):
    post, alice, bob = thread
    top = await services.comments.add_comment(post.id, alice.id, "Top")
    reply = await services.comments.add_comment(post.id, bob.id, "Reply", parent_comment_id=top.id)

    assert await services.comments.soft_delete_comment(top.id) is True
    assert await services.comments.soft_delete_comment(top.id) is False

    assert await services.comments.comment_count(post.id) == 1
    assert (await services.posts.get_post(post.id)).comment_count == 1
    assert [c.id for c in await services.comments.list_comments(post.id)] == [reply.id]

    nodes = await services.comments.comment_thread(post.id)
    assert len(nodes) == 1
    assert nodes[0].content == "[deleted]"
    assert nodes[0].is_deleted
    assert [r.content for r in nodes[0].replies] == ["Reply"]

    # Still stored
    assert (await services.comments.get_comment(top.id)).content == "Top"

async def test_deleted_comment_without_replies_is_hidden(services, thread):
    post, alice, _ = thread
    top = await services.comments.add_comment(post.id, alice.id, "Oops")
    await services.comments.soft_delete_comment(top.id)

    assert await services.comments.comment_thread(post.id) == []
    assert await services.comments.list_comments(post.id) == []

async def test_soft_delete_unknown_comment(services):
    with pytest.raises(NotFoundError):
        await services.comments.soft_delete_comment(999)

async def test_listing_puts_top_level_before_replies(services, thread):
    post, alice, bob = thread
    first = await services.comments.add_comment(post.id, alice.id, "First")
    reply = await services.comments.add_comment(post.id, bob.id, "Reply to first", parent_comment_id=first.id)
    second = await services.comments.add_comment(post.id, bob.id, "Second")

    listed = await services.comments.list_comments(post.id)
    assert [c.id for c in listed] == [first.id, second.id, reply.id]

async def test_thread_cache_is_refreshed_after_new_comment(services, thread):
    post, alice, bob = thread
    await services.comments.add_comment(post.id, alice.id, "One")
    assert len(await services.comments.comment_thread(post.id)) == 1

    await services.comments.add_comment(post.id, bob.id, "Two")
    assert len(await services.comments.comment_thread(post.id)) == 2

def _comment(comment_id, created_at, parent=None, deleted=False):
    return Comment(
        id=comment_id,
        user_id=1,
        post_id=1,
        content=f"c{comment_id}",
        parent_comment_id=parent,
        is_deleted=deleted,
        created_at=created_at,
        updated_at=created_at,
    )

def test_ordering_breaks_timestamp_ties_by_id():
    same = datetime(2024, 1, 1)
    comments = [_comment(3, same), _comment(1, same), _comment(2, same, parent=1), _comment(4, datetime(2023, 1, 1))]

    assert [c.id for c in order_comments(comments)] == [4, 1, 3, 2]

def test_thread_skips_deleted_replies():
    now = datetime(2024, 1, 1)
    nodes = build_thread([_comment(1, now), _comment(2, now, parent=1, deleted=True), _comment(3, now, parent=1)])

    assert [r.id for r in nodes[0].replies] == [3]
