"""Seed demo users (with photos, interests and prompts) for local testing.

Usage: python -m scripts.seed_demo [--count 16] [--out demo_users.json]

Writes the seeded ids to ``--out`` so ``scripts.swipe_race_test`` can drive
the API as those users.
"""
import argparse
import asyncio
import json
import random
import sys
import uuid
from datetime import date
sys.path.insert(0, ".")

from duomatch.database import Base, build_session_factory, dispose_engine, get_engine
from duomatch.models.user import User


FIRST_NAMES = [
    "Alex", "Blake", "Casey", "Drew", "Eli", "Frankie", "Gray", "Harper",
    "Ira", "Jules", "Kai", "Logan", "Morgan", "Noor", "Oakley", "Parker",
]

UNIVERSITIES = ["State University", "City College", "Tech Institute", "Lakeside University"]

INTERESTS = [
    {"name": "Hiking", "emoji": "🥾"},
    {"name": "Board games", "emoji": "🎲"},
    {"name": "Live music", "emoji": "🎸"},
    {"name": "Cooking", "emoji": "🍳"},
    {"name": "Climbing", "emoji": "🧗"},
    {"name": "Film", "emoji": "🎬"},
]

PROMPTS = [
    {"prompt": "Perfect double date", "answer": "Karaoke, then late-night tacos."},
    {"prompt": "We're known for", "answer": "Winning every pub quiz we enter."},
    {"prompt": "Our hidden talent", "answer": "Synchronized finger guns."},
]


def demo_user(index: int) -> User:
    name = FIRST_NAMES[index % len(FIRST_NAMES)]
    user_id = uuid.uuid4()
    return User(
        id=user_id,
        email=f"demo_{index}_{user_id.hex[:8]}@example.edu",
        first_name=name,
        birthday=date(random.randint(1998, 2005), random.randint(1, 12), random.randint(1, 28)),
        bio=f"{name} is here for good company and better snacks.",
        university=random.choice(UNIVERSITIES),
        photos=[f"https://cdn.example.com/demo/{user_id}/{n}.jpg" for n in range(3)],
        interests=random.sample(INTERESTS, 3),
        prompts=random.sample(PROMPTS, 2),
    )


async def seed(count: int, out_path: str) -> None:
    engine = get_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = build_session_factory(engine)
    seeded = []
    async with session_factory.begin() as session:
        for i in range(count):
            user = demo_user(i)
            session.add(user)
            seeded.append({"id": str(user.id), "first_name": user.first_name})
            print(f"  Seeded user {i}: {user.first_name} ({user.id})")

    with open(out_path, "w", encoding="utf-8") as f:
        json.dump(seeded, f, indent=2)
    await dispose_engine()
    print(f"Done seeding {count} users -> {out_path}")


def main():
    parser = argparse.ArgumentParser(description="Seed DuoMatch demo users")
    parser.add_argument("--count", type=int, default=16, help="Number of users to create")
    parser.add_argument("--out", type=str, default="demo_users.json", help="Where to write user ids")
    args = parser.parse_args()
    asyncio.run(seed(args.count, args.out))


if __name__ == "__main__":
    main()
