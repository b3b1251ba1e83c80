"""Database seeder for local development: an admin, members, posts, comments and upvotes."""
import asyncio
import argparse
import random
import time
from datetime import date

from rebbit.config import Settings
from rebbit.database import Base, build_engine, build_session_factory
from rebbit.models import Post
from rebbit.schemas import CommentCreate, PostCreate, RegisterRequest
from rebbit.security import CredentialService
from rebbit.services import comment_service, post_service, upvote_service, user_service

TAGS = ["python", "fastapi", "postgresql", "docker", "devops", "testing",
        "security", "gaming", "music", "books", "travel", "cooking",
        "photography", "science", "movies", "sports"]

STATES = ["published"] * 8 + ["draft", "archived"]

ADMIN_EMAIL = "admin@rebbit.local"
DEFAULT_PASSWORD = "password123"


async def seed(small: bool = False):
    settings = Settings()
    num_users = 5 if small else 40
    num_posts = 20 if small else 500
    max_comments = 2 if small else 6

    print(f"Seeding: 1 admin, {num_users} users, {num_posts} posts, up to {max_comments} comments each")
    start = time.perf_counter()

    engine = build_engine(settings)
    session_factory = build_session_factory(engine)
    credentials = CredentialService(settings)
    password_hash = credentials.hash_password(DEFAULT_PASSWORD)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    async with session_factory() as session:
        admin = await user_service.create_user(
            session,
            RegisterRequest(pseudo="admin", email=ADMIN_EMAIL, password=DEFAULT_PASSWORD,
                            birthdate=date(1985, 1, 1)),
            password_hash,
        )
        await user_service.update_user(session, admin, role="admin")

        users = [admin]
        for i in range(num_users):
            user = await user_service.create_user(
                session,
                RegisterRequest(
                    pseudo=f"user_{i:04d}",
                    name="User",
                    surname=f"{i}",
                    email=f"user_{i:04d}@example.com",
                    password=DEFAULT_PASSWORD,
                    birthdate=date(1970 + i % 35, 1 + i % 12, 1 + i % 28),
                ),
                password_hash,
            )
            users.append(user)
        print(f"  Created {len(users)} users (admin: {ADMIN_EMAIL} / {DEFAULT_PASSWORD})")

        total_comments = 0
        for i in range(num_posts):
            author = random.choice(users)
            topic = random.choice(TAGS)
            post = await post_service.create_post(
                session,
                author.id,
                PostCreate(
                    title=f"Post {i}: thoughts on {topic}",
                    content=f"Some words about {topic}. " * 10,
                    tags=random.sample(TAGS, k=random.randint(1, 4)),
                    state=random.choice(STATES),
                ),
            )
            for _ in range(random.randint(0, max_comments)):
                await comment_service.add_comment(
                    session,
                    random.choice(users).id,
                    CommentCreate(post=post["id"], content=f"Comment on post {i}."),
                )
                total_comments += 1
            for voter in random.sample(users, k=random.randint(0, min(5, len(users)))):
                await upvote_service.add_upvote(session, Post, post["id"], voter.id)

            if (i + 1) % 100 == 0:
                print(f"  {i + 1} posts created")

        await session.commit()

    await engine.dispose()

    elapsed = time.perf_counter() - start
    print(f"\nSeeding complete in {elapsed:.1f}s")
    print(f"  Users: {len(users)}")
    print(f"  Posts: {num_posts}")
    print(f"  Comments: {total_comments}")


def main():
    parser = argparse.ArgumentParser(description="Seed the Rebbit database")
    parser.add_argument("--small", action="store_true", help="Use a small dataset (20 posts)")
    args = parser.parse_args()
    asyncio.run(seed(small=args.small))


if __name__ == "__main__":
    main()
