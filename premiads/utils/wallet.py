"""
Wallet Utilities
Rifas/cashback balance operations.
Balances only ever move through $inc, and every increment is keyed so that
applying it twice is a no-op.
"""
import uuid
from datetime import datetime
from typing import Optional, Dict, Any

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

from premiads.core.config import WALLET_APPLIED_KEYS_LIMIT
from premiads.models.missions.reward import RewardKind
from premiads.utils.mongo import guarded


class WalletUtils:
    """
    Utility class for wallet operations.
    All operations are designed to be atomic and safe.
    """

    def __init__(
        self,
        db: AsyncIOMotorDatabase,
        timeout: Optional[float] = None,
        applied_keys_limit: Optional[int] = None
    ):
        self.db = db
        self.wallets = db.wallets
        self.transactions = db.reward_transactions
        self.timeout = timeout
        self.applied_keys_limit = applied_keys_limit or WALLET_APPLIED_KEYS_LIMIT

    @staticmethod
    def generate_transaction_id() -> str:
        """Generate unique transaction ID"""
        return f"TXN_{uuid.uuid4().hex[:16].upper()}"

    async def get_or_create_wallet(self, user_id: str) -> Dict[str, Any]:
        """
        Get user's wallet or create if not exists.
        Safe under concurrency using upsert.
        """
        now = datetime.utcnow()
        try:
            return await guarded(
                self.wallets.find_one_and_update(
                    {"user_id": user_id},
                    {
                        "$setOnInsert": {
                            "user_id": user_id,
                            "rifas": 0,
                            "cashback_balance": 0.0,
                            "total_rifas_earned": 0,
                            "total_cashback_earned": 0.0,
                            "applied_grants": [],
                            "created_at": now
                        }
                    },
                    upsert=True,
                    return_document=ReturnDocument.AFTER
                ),
                self.timeout
            )
        except DuplicateKeyError:
            # Lost the upsert race; the other request created it
            return await self.get_wallet(user_id)

    async def get_wallet(self, user_id: str) -> Optional[Dict[str, Any]]:
        """Get user's wallet"""
        return await guarded(self.wallets.find_one({"user_id": user_id}), self.timeout)

    async def apply_increment(
        self,
        user_id: str,
        key: str,
        rifas: int = 0,
        cashback: float = 0.0
    ) -> bool:
        """
        Atomically add rifas/cashback to the wallet once per ``key``.

        The filter and the $push of the key happen in one single-document
        update, so concurrent or retried calls cannot double-apply.
        Only the newest ``applied_keys_limit`` keys are kept; a key is only
        needed while its grant is still being issued.
        Returns False when the key was already applied.
        """
        await self.get_or_create_wallet(user_id)

        result = await guarded(
            self.wallets.update_one(
                {"user_id": user_id, "applied_grants": {"$ne": key}},
                {
                    "$inc": {
                        "rifas": rifas,
                        "cashback_balance": cashback,
                        "total_rifas_earned": rifas,
                        "total_cashback_earned": cashback
                    },
                    "$push": {"applied_grants": {"$each": [key], "$slice": -self.applied_keys_limit}},
                    "$set": {"updated_at": datetime.utcnow()}
                }
            ),
            self.timeout
        )
        return result.modified_count == 1

    async def reverse_increment(
        self,
        user_id: str,
        key: str,
        rifas: int = 0,
        cashback: float = 0.0
    ) -> bool:
        """Undo an applied increment (compensation). No-op if ``key`` was never applied."""
        result = await guarded(
            self.wallets.update_one(
                {"user_id": user_id, "applied_grants": key},
                {
                    "$inc": {
                        "rifas": -rifas,
                        "cashback_balance": -cashback,
                        "total_rifas_earned": -rifas,
                        "total_cashback_earned": -cashback
                    },
                    "$pull": {"applied_grants": key},
                    "$set": {"updated_at": datetime.utcnow()}
                }
            ),
            self.timeout
        )
        return result.modified_count == 1

    async def record_transaction(
        self,
        user_id: str,
        kind: RewardKind,
        amount: float,
        idempotency_key: str,
        grant_id: Optional[str] = None,
        mission_id: Optional[str] = None,
        submission_id: Optional[str] = None,
        description: str = "",
        metadata: Optional[Dict[str, Any]] = None
    ) -> None:
        """Write a ledger row once per idempotency key"""
        now = datetime.utcnow()
        try:
            await self._upsert_transaction(idempotency_key, {
                "transaction_id": self.generate_transaction_id(),
                "idempotency_key": idempotency_key,
                "user_id": user_id,
                "kind": kind.value,
                "transaction_type": "earned",
                "amount": amount,
                "grant_id": grant_id,
                "mission_id": mission_id,
                "submission_id": submission_id,
                "description": description or f"{kind.value} +{amount}",
                "metadata": metadata or {},
                "created_at": now
            })
        except DuplicateKeyError:
            # Concurrent writer recorded the same row
            pass

    async def _upsert_transaction(self, idempotency_key: str, row: Dict[str, Any]) -> None:
        await guarded(
            self.transactions.update_one(
                {"idempotency_key": idempotency_key},
                {"$setOnInsert": row},
                upsert=True
            ),
            self.timeout
        )

    async def delete_transactions(self, grant_id: str) -> None:
        await guarded(self.transactions.delete_many({"grant_id": grant_id}), self.timeout)
