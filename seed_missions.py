"""
Seed Sample Missions
Run this script to insert a few missions covering every reward shape
(plain, badge, loot box, inactive) for local testing of the moderation flow.

Usage:
    python seed_missions.py
"""
import asyncio
from datetime import datetime, timedelta
from motor.motor_asyncio import AsyncIOMotorClient

from premiads.core.config import MONGODB_URL, DATABASE_NAME
from premiads.database import create_indexes

ADVERTISER_ID = "advertiser-demo"

MISSIONS = [
    {
        "title": "Follow us on Instagram",
        "rifas": 10,
        "cashback_reward": 0.0,
        "has_badge": False,
        "has_lootbox": False,
        "selected_lootbox_rewards": [],
        "is_active": True,
        "status": "active",
    },
    {
        "title": "Review our new product",
        "rifas": 25,
        "cashback_reward": 5.0,
        "has_badge": True,
        "badge_name": "Product Reviewer",
        "badge_image_url": None,
        "has_lootbox": False,
        "selected_lootbox_rewards": [],
        "is_active": True,
        "status": "active",
    },
    {
        "title": "Share the campaign video",
        "rifas": 15,
        "cashback_reward": 2.5,
        "has_badge": False,
        "has_lootbox": True,
        # Weighted pool: raffle tickets are three times as likely as a credit bonus
        "selected_lootbox_rewards": [
            {"type": "raffle_ticket", "amount": 3, "weight": 3},
            {"type": "credit_bonus", "amount": 10, "weight": 1},
            {"type": "random_badge", "amount": 1, "weight": 1, "label": "Mystery badge"},
        ],
        "is_active": True,
        "status": "active",
    },
    {
        "title": "Summer campaign (ended)",
        "rifas": 50,
        "cashback_reward": 0.0,
        "has_badge": False,
        "has_lootbox": True,
        "selected_lootbox_rewards": ["daily_streak_bonus", "multiplier"],
        "is_active": False,
        "status": "finished",
    },
]


async def seed_missions():
    """Seed sample missions into MongoDB"""
    print("=" * 60)
    print("Mission Seeder")
    print("=" * 60)

    # Connect to MongoDB
    client = AsyncIOMotorClient(MONGODB_URL)
    db = client[DATABASE_NAME]

    try:
        print("\n[1] Creating indexes...")
        await create_indexes(db)

        print("\n[2] Seeding missions...")
        now = datetime.utcnow()
        for mission in MISSIONS:
            doc = {
                **mission,
                "advertiser_id": ADVERTISER_ID,
                "start_date": now - timedelta(days=1),
                "end_date": now + timedelta(days=30) if mission["is_active"] else now - timedelta(hours=1),
                "created_at": now,
                "updated_at": now,
            }
            result = await db.missions.update_one(
                {"title": mission["title"], "advertiser_id": ADVERTISER_ID},
                {"$set": doc},
                upsert=True
            )
            action = "Created" if result.upserted_id else "Updated"
            print(f"    [OK] {action}: {mission['title']}")

        print("\n[3] Missions in database:")
        print("-" * 40)
        async for mission in db.missions.find({"advertiser_id": ADVERTISER_ID}):
            print(
                f"    {mission['_id']}  {mission['title']:<32} "
                f"rifas={mission.get('rifas', 0):>3} cashback={mission.get('cashback_reward', 0):>5} "
                f"{'active' if mission.get('is_active') else 'inactive'}"
            )

        print("\n" + "=" * 60)
        print("Seeding complete!")
        print("=" * 60)

    finally:
        client.close()


if __name__ == "__main__":
    asyncio.run(seed_missions())
