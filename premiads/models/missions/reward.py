"""
Reward Models
Reward grants, wallet balances, ledger rows and moderation outcomes
"""
from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime
from enum import Enum

from premiads.models.missions.mission import LootBoxRewardType
from premiads.models.missions.submission import Submission


class GrantStatus(str, Enum):
    """Lifecycle of a reward grant document"""
    ISSUING = "issuing"  # Inserted, balance/badge/loot box not yet confirmed
    ISSUED = "issued"  # Complete and immutable


class RewardKind(str, Enum):
    """Ledger entry kind"""
    RIFAS = "rifas"
    CASHBACK = "cashback"
    LOOT_BOX = "loot_box"


class LootBoxReward(BaseModel):
    """The prize drawn from a mission's loot box"""
    type: LootBoxRewardType
    amount: float
    label: Optional[str] = None


class RewardGrant(BaseModel):
    """Rewards granted for one approved submission (one per submission)"""
    id: str
    submission_id: str
    mission_id: str
    user_id: str
    points_earned: int = 0
    cashback_earned: float = 0.0
    badge_earned: bool = False
    badge_name: Optional[str] = None
    badge_image_url: Optional[str] = None
    loot_box_reward: Optional[LootBoxReward] = None
    status: GrantStatus = GrantStatus.ISSUING
    balance_applied: bool = False
    rewarded_at: Optional[datetime] = None

    @classmethod
    def from_document(cls, doc: dict) -> "RewardGrant":
        data = {k: v for k, v in doc.items() if k != "_id"}
        data["id"] = str(doc["_id"])
        return cls(**data)


class WalletResponse(BaseModel):
    """Participant balances"""
    user_id: str
    rifas: int = 0
    cashback_balance: float = 0.0
    total_rifas_earned: int = 0
    total_cashback_earned: float = 0.0


class LootBoxRecord(BaseModel):
    """A loot box granted to a participant"""
    id: str
    grant_id: str
    user_id: str
    mission_id: str
    submission_id: str
    reward_type: LootBoxRewardType
    reward_amount: float
    display_name: Optional[str] = None
    is_claimed: bool = False
    awarded_at: datetime
    claimed_at: Optional[datetime] = None

    @classmethod
    def from_document(cls, doc: dict) -> "LootBoxRecord":
        data = {k: v for k, v in doc.items() if k != "_id"}
        data["id"] = str(doc["_id"])
        return cls(**data)


class RewardSummary(BaseModel):
    """What the participant received, for user-facing feedback"""
    points_earned: int = 0
    cashback_earned: float = 0.0
    badge_name: Optional[str] = None
    loot_box_reward: Optional[LootBoxReward] = None


class ModerationOutcome(BaseModel):
    """Structured result the presentation layer turns into a toast/sound"""
    success: bool = True
    action: str
    message: str
    rewards: Optional[RewardSummary] = None


class DecisionResult(BaseModel):
    """Result of a moderation decision"""
    submission: Submission
    reward_grant: Optional[RewardGrant] = None
    outcome: ModerationOutcome


class UserRewardsResponse(BaseModel):
    wallet: WalletResponse
    grants: List[RewardGrant] = Field(default_factory=list)
