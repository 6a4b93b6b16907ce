from bloglab.tests.conftest import create_user

async def test_blog_walkthrough(services):
    """A post gets two likes, a comment and a reply to it"""
    john = await create_user(services, "johndoe", first_name="John", last_name="Doe")
    jane = await create_user(services, "janedoe", first_name="Jane", last_name="Doe")
    mike = await create_user(services, "mikejohnson", first_name="Mike", last_name="Johnson")

    post = await services.posts.create_post(john.id, {
        "title": "Getting Started with Database Design",
        "body": "A comprehensive guide to designing efficient databases for modern applications.",
    })
    assert post.author_display_name == "John Doe"

    assert await services.likes.add_like(post.id, jane.id) is True
    assert await services.likes.add_like(post.id, mike.id) is True
    assert (await services.posts.get_post(post.id)).like_count == 2

    comment = await services.comments.add_comment(post.id, jane.id, "Great article!")
    reply = await services.comments.add_comment(
        post.id, mike.id, "Could you cover indexing next?", parent_comment_id=comment.id
    )
    assert (await services.posts.get_post(post.id)).comment_count == 2

    listed = await services.comments.list_comments(post.id)
    assert [c.id for c in listed] == [comment.id, reply.id]

    details = await services.posts.get_post_details(post.id)
    assert details.author_display_name == "John Doe"
    assert details.engagement_score == 2 * 2 + 3 * 2

    assert [p.id for p in await services.posts.search_posts("database")] == [post.id]
    ranked = await services.ranking.trending()
    assert ranked[0].post.id == post.id
