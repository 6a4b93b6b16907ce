#!/usr/bin/env python3
"""
Seed the sample blog and print the demo report
"""
import asyncio
import sys
from pathlib import Path
from datetime import datetime, timedelta
from itertools import count

# Add the project root to the Python path
current_dir = Path(__file__).parent
root_dir = current_dir.parent
sys.path.insert(0, str(root_dir))

USERS = [
    {"username": "johndoe", "email": "john@example.com", "first_name": "John", "last_name": "Doe",
     "bio": "Tech enthusiast and blogger"},
    {"username": "janedoe", "email": "jane@example.com", "first_name": "Jane", "last_name": "Doe",
     "bio": "Travel blogger and photographer"},
    {"username": "mikejohnson", "email": "mike@example.com", "first_name": "Mike", "last_name": "Johnson",
     "bio": "Food lover and recipe writer"},
    {"username": "sarahwilson", "email": "sarah@example.com", "first_name": "Sarah", "last_name": "Wilson",
     "bio": "Digital marketing specialist"},
]

# (author index, title, body, slug, image)
POSTS = [
    (0, "Getting Started with Database Design",
     "A comprehensive guide to designing efficient databases for modern applications. "
     "This post covers normalization, relationships, and best practices.",
     "getting-started-database-design", "https://example.com/images/database-design.jpg"),
    (1, "My Journey Through Southeast Asia",
     "Amazing experiences and hidden gems discovered during my 3-month backpacking trip "
     "through Thailand, Vietnam, and Cambodia.",
     "journey-southeast-asia", "https://example.com/images/southeast-asia.jpg"),
    (2, "The Perfect Chocolate Chip Cookie Recipe",
     "After 50 attempts, I finally found the secret to the perfect cookie. "
     "Here is my foolproof recipe with tips and tricks.",
     "perfect-chocolate-chip-cookie", "https://example.com/images/cookies.jpg"),
    (3, "10 Digital Marketing Trends for 2024",
     "Stay ahead of the curve with these emerging digital marketing trends that will shape the industry in 2024.",
     "digital-marketing-trends-2024", "https://example.com/images/marketing-trends.jpg"),
]

# (user index, post index)
LIKES = [(1, 0), (2, 0), (3, 0), (0, 1), (2, 1), (3, 1), (0, 2), (1, 2), (0, 3), (1, 3)]

# (user index, post index, content)
COMMENTS = [
    (1, 0, "Great article! Really helped me understand normalization better."),
    (2, 0, "Thanks for sharing. Could you do a follow-up on indexing strategies?"),
    (3, 0, "This is exactly what I needed for my database project!"),
    (0, 1, "Your photos are incredible! Southeast Asia is definitely on my bucket list now."),
    (2, 1, "Did you try the street food in Bangkok? It was amazing when I visited!"),
    (0, 2, "Just tried this recipe and it worked perfectly! Thanks for sharing."),
    (1, 2, "The secret ingredient tip was genius. My cookies turned out amazing!"),
    (1, 3, "Really insightful predictions! Social commerce is definitely trending."),
]

# (user index, post index, parent comment index, content)
REPLIES = [
    (0, 0, 1, "Thanks! An indexing guide is definitely on my todo list."),
    (2, 0, 1, "Looking forward to it! Your tutorials are always top-notch."),
    (1, 1, 4, "Yes! The street food was incredible. Pad Thai at every corner!"),
    (2, 2, 5, "Glad it worked for you! The key is using room temperature ingredients."),
]

def seed_clock(start: datetime):
    """One minute further on every call, so creation order is stable"""
    ticks = count()
    return lambda: start + timedelta(minutes=next(ticks))

async def open_store(backend: str, clean: bool):
    from bloglab.config import get_settings
    from bloglab.stores import DocumentStore, SqlStore

    if backend == "document":
        print("📄 Using the in-memory document store")
        return DocumentStore()

    settings = get_settings()
    print(f"🗄️  Using the relational store: {settings.database_url}")
    store = await SqlStore.from_url(settings.database_url, settings)
    if clean:
        print("🧹 Clearing all data...")
        await store.reset_schema()
    return store

async def seed(services) -> None:
    """Load the sample users, posts, likes, comments and replies"""
    print(f"👥 Seeding {len(USERS)} users...")
    users = []
    for data in USERS:
        users.append(await services.users.register_user({**data, "password": "Password123!"}))

    print(f"📝 Seeding {len(POSTS)} posts...")
    posts = []
    for author, title, body, slug, image_url in POSTS:
        posts.append(await services.posts.create_post(
            users[author].id,
            {"title": title, "body": body, "slug": slug, "image_url": image_url}
        ))

    print(f"❤️  Seeding {len(LIKES)} likes...")
    for user, post in LIKES:
        await services.likes.add_like(posts[post].id, users[user].id)

    print(f"💬 Seeding {len(COMMENTS)} comments and {len(REPLIES)} replies...")
    comments = []
    for user, post, content in COMMENTS:
        comments.append(await services.comments.add_comment(posts[post].id, users[user].id, content))
    for user, post, parent, content in REPLIES:
        await services.comments.add_comment(posts[post].id, users[user].id, content, comments[parent].id)

    print("✅ Sample data seeded")

async def report(services) -> None:
    """Print the demo queries"""
    print("\n📚 All published posts:")
    for post in await services.posts.list_published():
        details = await services.posts.get_post_details(post.id)
        print(f"  [{post.id}] {post.title} by {details.author_display_name} "
              f"({post.like_count} likes, {post.comment_count} comments)")

    print("\n❤️  Most liked posts:")
    for post in await services.posts.most_liked():
        print(f"  [{post.id}] {post.title} ({post.like_count} likes)")

    print("\n🔥 Trending posts:")
    for entry in await services.ranking.trending():
        print(f"  #{entry.rank} {entry.post.title} (score {entry.score})")

    john = await services.users.get_by_username("johndoe")
    if john is not None:
        stats = await services.posts.user_stats(john.id)
        print(f"\n📊 Statistics for {john.display_name}:")
        print(f"  posts={stats.total_posts} likes={stats.total_likes} "
              f"comments={stats.total_comments} views={stats.total_views}")

    print("\n🔎 Search results for 'database':")
    for post in await services.posts.search_posts("database"):
        print(f"  [{post.id}] {post.title}")

async def run(backend: str, clean: bool) -> None:
    from bloglab.db.base import utcnow
    from bloglab.services import build_services

    store = await open_store(backend, clean)
    try:
        services = build_services(store, clock=seed_clock(utcnow() - timedelta(days=7)))
        print("🌱 Starting database seeding...")
        await seed(services)
        await report(services)
        print("\n🎉 Done!")
    except Exception as e:
        print(f"❌ Seeding failed: {e}")
        sys.exit(1)
    finally:
        await store.close()

def main() -> None:
    """Main entry point"""
    import argparse

    parser = argparse.ArgumentParser(description="Database Seeding")
    parser.add_argument("--clean", action="store_true", help="Drop and recreate tables first")
    parser.add_argument(
        "--backend",
        choices=["relational", "document"],
        default="relational",
        help="Store to seed"
    )
    args = parser.parse_args()

    asyncio.run(run(args.backend, args.clean))

if __name__ == "__main__":
    main()
