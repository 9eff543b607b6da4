import logging
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from typing import Optional
from pymongo import ASCENDING, DESCENDING

from premiads.core.config import MONGODB_URL, DATABASE_NAME

logger = logging.getLogger(__name__)


class Database:
    client: Optional[AsyncIOMotorClient] = None

    @classmethod
    async def connect_db(cls):
        """Connect to MongoDB"""
        cls.client = AsyncIOMotorClient(MONGODB_URL)
        logger.info("Connected to MongoDB at %s", MONGODB_URL)

        # Create indexes
        await create_indexes(cls.get_db())

    @classmethod
    async def close_db(cls):
        """Close MongoDB connection"""
        if cls.client:
            cls.client.close()
            logger.info("Disconnected from MongoDB")

    @classmethod
    def get_db(cls) -> AsyncIOMotorDatabase:
        """Get database instance"""
        return cls.client[DATABASE_NAME]


async def create_indexes(db: AsyncIOMotorDatabase):
    """Create database indexes"""

    # Submission indexes
    # dedupe_key is only present while a submission blocks resubmission
    try:
        await db.mission_submissions.create_index(
            [("dedupe_key", ASCENDING)],
            unique=True,
            sparse=True
        )
        await db.mission_submissions.create_index(
            [("status", ASCENDING), ("review_stage", ASCENDING), ("submitted_at", ASCENDING)]
        )
        await db.mission_submissions.create_index([("user_id", ASCENDING), ("mission_id", ASCENDING)])
        await db.mission_submissions.create_index([("mission_id", ASCENDING), ("status", ASCENDING)])
        logger.info("Created indexes on mission_submissions")
    except Exception as e:
        logger.warning("Indexes on mission_submissions may already exist: %s", e)

    # Reward grant indexes
    try:
        await db.mission_rewards.create_index([("submission_id", ASCENDING)], unique=True)
        await db.mission_rewards.create_index([("user_id", ASCENDING), ("rewarded_at", DESCENDING)])
        logger.info("Created indexes on mission_rewards")
    except Exception as e:
        logger.warning("Indexes on mission_rewards may already exist: %s", e)

    # Wallet indexes
    try:
        await db.wallets.create_index([("user_id", ASCENDING)], unique=True)
        logger.info("Created unique index on wallets.user_id")
    except Exception as e:
        logger.warning("Index on wallets.user_id may already exist: %s", e)

    # Ledger indexes
    try:
        await db.reward_transactions.create_index(
            [("idempotency_key", ASCENDING)],
            unique=True,
            sparse=True
        )
        await db.reward_transactions.create_index([("user_id", ASCENDING), ("created_at", DESCENDING)])
        await db.reward_transactions.create_index([("grant_id", ASCENDING)])
        logger.info("Created indexes on reward_transactions")
    except Exception as e:
        logger.warning("Indexes on reward_transactions may already exist: %s", e)

    # Badge and loot box indexes
    try:
        await db.user_badges.create_index([("user_id", ASCENDING), ("mission_id", ASCENDING)], unique=True)
        await db.loot_box_rewards.create_index([("grant_id", ASCENDING)], unique=True)
        await db.loot_box_rewards.create_index([("user_id", ASCENDING), ("is_claimed", ASCENDING)])
        logger.info("Created indexes on user_badges and loot_box_rewards")
    except Exception as e:
        logger.warning("Indexes on user_badges/loot_box_rewards may already exist: %s", e)

    # Audit indexes
    try:
        await db.mission_audit_log.create_index([("submission_id", ASCENDING), ("timestamp", ASCENDING)])
        logger.info("Created indexes on mission_audit_log")
    except Exception as e:
        logger.warning("Indexes on mission_audit_log may already exist: %s", e)
