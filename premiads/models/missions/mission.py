"""
Mission Models
Missions are defined by advertisers elsewhere; the moderation workflow only
reads them to validate submissions and compute rewards.
"""
import logging

from pydantic import BaseModel, Field, field_validator
from typing import Optional, List, Any
from datetime import datetime
from enum import Enum

logger = logging.getLogger(__name__)


class MissionStatus(str, Enum):
    """Mission publication status"""
    DRAFT = "draft"
    ACTIVE = "active"
    PAUSED = "paused"
    FINISHED = "finished"


class LootBoxRewardType(str, Enum):
    """Rewards an advertiser can put in a mission's loot box"""
    CREDIT_BONUS = "credit_bonus"
    RANDOM_BADGE = "random_badge"
    MULTIPLIER = "multiplier"
    LEVEL_UP = "level_up"
    DAILY_STREAK_BONUS = "daily_streak_bonus"
    RAFFLE_TICKET = "raffle_ticket"


class LootBoxRewardOption(BaseModel):
    """One entry of a mission's loot box pool"""
    type: LootBoxRewardType
    amount: float = Field(1, ge=0)
    weight: Optional[float] = Field(None, description="Relative draw weight; uniform when no entry sets one")
    label: Optional[str] = None


class Mission(BaseModel):
    """Read model of a mission"""
    id: str
    title: str = ""
    advertiser_id: Optional[str] = None
    rifas: int = 0
    cashback_reward: float = 0.0
    has_badge: bool = False
    badge_name: Optional[str] = None
    badge_image_url: Optional[str] = None
    has_lootbox: bool = False
    selected_lootbox_rewards: List[LootBoxRewardOption] = []
    is_active: bool = True
    status: MissionStatus = MissionStatus.ACTIVE
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None

    @field_validator("selected_lootbox_rewards", mode="before")
    @classmethod
    def accept_bare_reward_types(cls, value: Any) -> Any:
        # Older missions store the pool as a plain list of type names
        if value is None:
            return []
        known = {reward_type.value for reward_type in LootBoxRewardType}
        pool = []
        for item in value:
            entry = {"type": item} if isinstance(item, str) else item
            if isinstance(entry, dict) and entry.get("type") not in known:
                logger.warning("Skipping unknown loot box reward type %r", entry.get("type"))
                continue
            pool.append(entry)
        return pool

    @field_validator("rifas", "cashback_reward", mode="before")
    @classmethod
    def none_is_zero(cls, value: Any) -> Any:
        return 0 if value is None else value

    def is_open(self, now: Optional[datetime] = None) -> bool:
        """Whether the mission currently accepts submissions"""
        now = now or datetime.utcnow()
        if not self.is_active or self.status != MissionStatus.ACTIVE:
            return False
        if self.start_date and now < self.start_date:
            return False
        if self.end_date and now > self.end_date:
            return False
        return True

    @property
    def badge_label(self) -> str:
        return self.badge_name or f"{self.title or 'Mission'} badge"

    @classmethod
    def from_document(cls, doc: dict) -> "Mission":
        data = {k: v for k, v in doc.items() if k != "_id"}
        data["id"] = str(doc["_id"])
        return cls(**data)
