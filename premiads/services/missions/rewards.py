"""
Reward Issuer

Grants rifas, cashback, badge and loot box for an approved submission,
exactly once per submission.

Flow:
1. Return the grant if one is already fully issued for the submission
2. Insert the grant (unique on submission_id); a concurrent insert is resumed
3. Apply the rifas/cashback increment to the wallet, keyed by grant id
4. Write ledger rows, badge and loot box, each keyed so retries are no-ops
5. Mark the grant issued

A failure in 3-5 revokes whatever this grant already applied and re-raises,
so the caller can roll the approval back. When the revoke fails too, the
grant is left issuing and RewardRevocationFailed is raised instead; the
approval must then stay in place so a retry can finish the grant.
"""
import logging
import random
from typing import Optional, Dict, Any

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError
from datetime import datetime

from premiads.core.exceptions import RewardRevocationFailed
from premiads.models.missions.mission import Mission
from premiads.models.missions.reward import RewardGrant, GrantStatus, RewardKind
from premiads.models.missions.submission import Submission
from premiads.services.missions.lootbox import select_reward, RandomSource
from premiads.utils.mongo import guarded
from premiads.utils.wallet import WalletUtils

logger = logging.getLogger(__name__)


class RewardIssuer:
    """Issues the rewards tied to an approved submission"""

    def __init__(
        self,
        db: AsyncIOMotorDatabase,
        rng: Optional[RandomSource] = None,
        timeout: Optional[float] = None
    ):
        self.db = db
        self.grants = db.mission_rewards
        self.badges = db.user_badges
        self.loot_boxes = db.loot_box_rewards
        self.wallet_utils = WalletUtils(db, timeout=timeout)
        self.rng = rng or random.Random()
        self.timeout = timeout

    async def get_grant(self, submission_id: str) -> Optional[Dict[str, Any]]:
        return await guarded(self.grants.find_one({"submission_id": submission_id}), self.timeout)

    async def issue_rewards(self, submission: Submission, mission: Mission) -> RewardGrant:
        """Grant rewards for ``submission``; returns the existing grant on retries"""
        doc = await self.get_grant(submission.id)

        if doc is None:
            doc = self._build_grant(submission, mission)
            try:
                await guarded(self.grants.insert_one(doc), self.timeout)
            except DuplicateKeyError:
                logger.info("Grant for submission %s created concurrently, resuming it", submission.id)
                doc = await self.get_grant(submission.id)
                if doc is None:
                    # The concurrent issuer failed and revoked its grant
                    return await self.issue_rewards(submission, mission)

        if doc["status"] == GrantStatus.ISSUED.value:
            return RewardGrant.from_document(doc)

        try:
            doc = await self._apply(doc)
        except Exception as exc:
            logger.exception("Reward issuance failed for submission %s, revoking grant %s", submission.id, doc["_id"])
            try:
                await self.revoke(doc)
            except Exception:
                logger.exception("Grant %s could not be revoked and stays issuing", doc["_id"])
                raise RewardRevocationFailed() from exc
            raise

        grant = RewardGrant.from_document(doc)
        logger.info(
            "Rewards issued for submission %s: rifas=%s cashback=%s badge=%s loot_box=%s",
            submission.id, grant.points_earned, grant.cashback_earned,
            grant.badge_earned, grant.loot_box_reward.type.value if grant.loot_box_reward else None
        )
        return grant

    def _build_grant(self, submission: Submission, mission: Mission) -> Dict[str, Any]:
        loot_box = None
        if mission.has_lootbox:
            drawn = select_reward(mission.selected_lootbox_rewards, self.rng)
            loot_box = drawn.model_dump(mode="json") if drawn else None

        return {
            "_id": ObjectId(),
            "submission_id": submission.id,
            "mission_id": mission.id,
            "user_id": submission.user_id,
            "points_earned": int(mission.rifas or 0),
            "cashback_earned": float(mission.cashback_reward or 0),
            "badge_earned": bool(mission.has_badge),
            "badge_name": mission.badge_label if mission.has_badge else None,
            "badge_image_url": mission.badge_image_url if mission.has_badge else None,
            "loot_box_reward": loot_box,
            "status": GrantStatus.ISSUING.value,
            "balance_applied": False,
            "created_at": datetime.utcnow(),
            "rewarded_at": None,
        }

    async def _apply(self, doc: Dict[str, Any]) -> Dict[str, Any]:
        grant_id = str(doc["_id"])
        user_id = doc["user_id"]
        points = doc["points_earned"]
        cashback = doc["cashback_earned"]

        if points or cashback:
            await self.wallet_utils.apply_increment(user_id, grant_id, rifas=points, cashback=cashback)
        await guarded(
            self.grants.update_one({"_id": doc["_id"]}, {"$set": {"balance_applied": True}}),
            self.timeout
        )

        ledger_common = {
            "grant_id": grant_id,
            "mission_id": doc["mission_id"],
            "submission_id": doc["submission_id"],
        }
        if points:
            await self.wallet_utils.record_transaction(
                user_id, RewardKind.RIFAS, points,
                idempotency_key=f"{grant_id}:{RewardKind.RIFAS.value}",
                description="Rifas earned for an approved mission",
                **ledger_common
            )
        if cashback:
            await self.wallet_utils.record_transaction(
                user_id, RewardKind.CASHBACK, cashback,
                idempotency_key=f"{grant_id}:{RewardKind.CASHBACK.value}",
                description="Cashback earned for an approved mission",
                **ledger_common
            )

        now = datetime.utcnow()

        if doc.get("badge_earned"):
            await self._grant_badge(doc, now)

        loot_box = doc.get("loot_box_reward")
        if loot_box:
            await guarded(
                self.loot_boxes.update_one(
                    {"grant_id": grant_id},
                    {"$setOnInsert": {
                        "grant_id": grant_id,
                        "user_id": user_id,
                        "mission_id": doc["mission_id"],
                        "submission_id": doc["submission_id"],
                        "reward_type": loot_box["type"],
                        "reward_amount": loot_box["amount"],
                        "display_name": loot_box.get("label"),
                        "is_claimed": False,
                        "awarded_at": now,
                        "claimed_at": None,
                    }},
                    upsert=True
                ),
                self.timeout
            )
            await self.wallet_utils.record_transaction(
                user_id, RewardKind.LOOT_BOX, loot_box["amount"],
                idempotency_key=f"{grant_id}:{RewardKind.LOOT_BOX.value}",
                description=f"Loot box: {loot_box.get('label') or loot_box['type']}",
                metadata={"reward_type": loot_box["type"]},
                **ledger_common
            )

        return await guarded(
            self.grants.find_one_and_update(
                {"_id": doc["_id"]},
                {"$set": {"status": GrantStatus.ISSUED.value, "rewarded_at": now}},
                return_document=ReturnDocument.AFTER
            ),
            self.timeout
        )

    async def _grant_badge(self, doc: Dict[str, Any], now: datetime) -> None:
        try:
            await guarded(
                self.badges.update_one(
                    {"user_id": doc["user_id"], "mission_id": doc["mission_id"]},
                    {"$setOnInsert": {
                        "user_id": doc["user_id"],
                        "mission_id": doc["mission_id"],
                        "grant_id": str(doc["_id"]),
                        "badge_name": doc.get("badge_name"),
                        "badge_image_url": doc.get("badge_image_url"),
                        "earned_at": now,
                    }},
                    upsert=True
                ),
                self.timeout
            )
        except DuplicateKeyError:
            # Badge already held for this mission
            pass

    async def revoke(self, doc: Dict[str, Any]) -> None:
        """
        Undo everything a not-yet-issued grant applied, then delete it.
        Issued grants are immutable and are never revoked.
        """
        grant_id = str(doc["_id"])
        await self.wallet_utils.reverse_increment(
            doc["user_id"], grant_id,
            rifas=doc["points_earned"], cashback=doc["cashback_earned"]
        )
        await self.wallet_utils.delete_transactions(grant_id)
        await guarded(self.badges.delete_one({"grant_id": grant_id}), self.timeout)
        await guarded(self.loot_boxes.delete_one({"grant_id": grant_id, "is_claimed": False}), self.timeout)
        await guarded(
            self.grants.delete_one({"_id": doc["_id"], "status": GrantStatus.ISSUING.value}),
            self.timeout
        )
        logger.warning("Grant %s for submission %s revoked", grant_id, doc["submission_id"])
