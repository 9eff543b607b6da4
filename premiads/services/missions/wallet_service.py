"""
Wallet Service
Participant-facing reward reads and loot box claiming
"""
import logging
from datetime import datetime
from typing import Optional, List, Dict, Any

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import DESCENDING, ReturnDocument

from premiads.core.exceptions import (
    Unauthenticated,
    LootBoxNotFound,
    LootBoxAlreadyClaimed,
    StoreUnavailable,
)
from premiads.models.auth.user import Caller
from premiads.models.missions.audit import AuditAction
from premiads.models.missions.mission import LootBoxRewardType
from premiads.models.missions.reward import (
    WalletResponse,
    RewardGrant,
    LootBoxRecord,
    UserRewardsResponse,
)
from premiads.services.missions.audit import AuditService
from premiads.utils.mongo import guarded, to_object_id
from premiads.utils.wallet import WalletUtils

logger = logging.getLogger(__name__)


class WalletService:
    """
    Service for participant balances, grants, badges and loot boxes.
    """

    def __init__(self, db: AsyncIOMotorDatabase, timeout: Optional[float] = None):
        self.db = db
        self.wallet_utils = WalletUtils(db, timeout=timeout)
        self.grants = db.mission_rewards
        self.badges = db.user_badges
        self.loot_boxes = db.loot_box_rewards
        self.audit_service = AuditService(db, timeout=timeout)
        self.timeout = timeout

    async def get_wallet(self, user_id: str) -> WalletResponse:
        wallet = await self.wallet_utils.get_wallet(user_id)
        if not wallet:
            return WalletResponse(user_id=user_id)
        return WalletResponse(**{k: v for k, v in wallet.items() if k in WalletResponse.model_fields})

    async def list_user_grants(self, user_id: str) -> List[RewardGrant]:
        cursor = self.grants.find({"user_id": user_id}).sort("rewarded_at", DESCENDING)
        docs = await guarded(cursor.to_list(length=None), self.timeout)
        return [RewardGrant.from_document(doc) for doc in docs]

    async def list_user_rewards(self, user_id: str) -> UserRewardsResponse:
        return UserRewardsResponse(
            wallet=await self.get_wallet(user_id),
            grants=await self.list_user_grants(user_id)
        )

    async def list_user_badges(self, user_id: str) -> List[Dict[str, Any]]:
        cursor = self.badges.find({"user_id": user_id}, {"_id": 0}).sort("earned_at", DESCENDING)
        return await guarded(cursor.to_list(length=None), self.timeout)

    async def list_loot_boxes(self, user_id: str, claimed: Optional[bool] = None) -> List[LootBoxRecord]:
        query: Dict[str, Any] = {"user_id": user_id}
        if claimed is not None:
            query["is_claimed"] = claimed
        cursor = self.loot_boxes.find(query).sort("awarded_at", DESCENDING)
        docs = await guarded(cursor.to_list(length=None), self.timeout)
        return [LootBoxRecord.from_document(doc) for doc in docs]

    async def claim_loot_box(self, caller: Optional[Caller], loot_box_id: str) -> LootBoxRecord:
        """
        Open a granted loot box.

        raffle_ticket adds rifas, credit_bonus adds cashback; other reward
        types are only marked as claimed. The claim flag flips with a
        conditional update, so a box is claimed at most once.
        """
        if caller is None or not caller.user_id:
            raise Unauthenticated()

        oid = to_object_id(loot_box_id)
        if oid is None:
            raise LootBoxNotFound()

        doc = await guarded(
            self.loot_boxes.find_one_and_update(
                {"_id": oid, "user_id": caller.user_id, "is_claimed": False},
                {"$set": {"is_claimed": True, "claimed_at": datetime.utcnow()}},
                return_document=ReturnDocument.AFTER
            ),
            self.timeout
        )

        if doc is None:
            existing = await guarded(
                self.loot_boxes.find_one({"_id": oid, "user_id": caller.user_id}),
                self.timeout
            )
            if existing is None:
                raise LootBoxNotFound()
            raise LootBoxAlreadyClaimed()

        reward_type = LootBoxRewardType(doc["reward_type"])
        amount = doc["reward_amount"]
        key = f"lootbox:{doc['_id']}"

        try:
            if reward_type == LootBoxRewardType.RAFFLE_TICKET:
                await self.wallet_utils.apply_increment(caller.user_id, key, rifas=int(amount))
            elif reward_type == LootBoxRewardType.CREDIT_BONUS:
                await self.wallet_utils.apply_increment(caller.user_id, key, cashback=float(amount))
        except StoreUnavailable:
            # Undo the claim so the participant can open it again
            await guarded(
                self.loot_boxes.update_one(
                    {"_id": oid, "is_claimed": True},
                    {"$set": {"is_claimed": False, "claimed_at": None}}
                ),
                self.timeout
            )
            raise

        logger.info("Loot box %s claimed by %s (%s x%s)", loot_box_id, caller.user_id, reward_type.value, amount)

        try:
            await self.audit_service.log_action(
                action=AuditAction.LOOT_BOX_CLAIMED,
                actor_id=caller.user_id,
                submission_id=doc.get("submission_id"),
                mission_id=doc.get("mission_id"),
                metadata={"reward_type": reward_type.value, "amount": amount}
            )
        except StoreUnavailable:
            logger.exception("Audit entry for loot box %s not written", loot_box_id)

        return LootBoxRecord.from_document(doc)
