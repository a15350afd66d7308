"""Database seeder: creates the tables and fills them with users, posts and likes."""
import asyncio
import argparse
import random
import time

from sqlalchemy import insert

from socialfeed.database import engine, async_session, Base
from socialfeed.models import Post, User, user_likes_post
from socialfeed.security import hash_password, new_id

TOPICS = ["python", "asyncio", "postgresql", "sqlalchemy", "fastapi", "testing",
          "performance", "caching", "batching", "graphql"]

async def seed(small: bool = False):
    num_users = 10 if small else 50
    num_posts = 100 if small else 10000
    max_likes_per_post = 3 if small else 10

    print(f"Seeding: {num_users} users, {num_posts} posts, up to {max_likes_per_post} likes per post")
    start = time.perf_counter()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    # Every seeded user shares one password; hashing per user would dominate the run.
    hashed = await hash_password("password")

    async with async_session() as session:
        async with session.begin():
            user_ids = [new_id() for _ in range(num_users)]
            await session.execute(
                insert(User),
                [
                    {"id": user_id, "username": f"user_{i:04d}", "password": hashed, "name": f"User {i}"}
                    for i, user_id in enumerate(user_ids)
                ],
            )
            print(f"  Created {len(user_ids)} users")

            batch_size = 500
            total_likes = 0
            for batch_start in range(0, num_posts, batch_size):
                batch_end = min(batch_start + batch_size, num_posts)
                posts = [
                    {
                        "id": new_id(),
                        "author_id": random.choice(user_ids),
                        "content": f"Post {i}: notes on {random.choice(TOPICS)}",
                    }
                    for i in range(batch_start, batch_end)
                ]
                await session.execute(insert(Post), posts)

                likes = []
                for post in posts:
                    k = random.randint(0, max_likes_per_post)
                    for user_id in random.sample(user_ids, k=min(k, len(user_ids))):
                        likes.append({"user_id": user_id, "post_id": post["id"]})
                if likes:
                    await session.execute(insert(user_likes_post), likes)
                total_likes += len(likes)

                print(f"  Batch {batch_start}-{batch_end}: posts created")

    elapsed = time.perf_counter() - start
    print(f"\nSeeding complete in {elapsed:.1f}s")
    print(f"  Users: {num_users} (password: 'password')")
    print(f"  Posts: {num_posts}")
    print(f"  Likes: {total_likes}")


def main():
    parser = argparse.ArgumentParser(description="Seed the social feed database")
    parser.add_argument("--small", action="store_true", help="Use small dataset (100 posts)")
    args = parser.parse_args()
    asyncio.run(seed(small=args.small))


if __name__ == "__main__":
    main()
