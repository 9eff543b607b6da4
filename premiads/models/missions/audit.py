from pydantic import BaseModel
from typing import Optional, Dict, Any
from datetime import datetime
from enum import Enum


class AuditAction(str, Enum):
    """Audit action types"""
    SUBMISSION_CREATED = "submission_created"
    SUBMISSION_REVIEWED = "submission_reviewed"
    REWARDS_ISSUED = "rewards_issued"
    REWARDS_ROLLED_BACK = "rewards_rolled_back"
    LOOT_BOX_CLAIMED = "loot_box_claimed"


class AuditEntry(BaseModel):
    """Audit trail entry"""
    action: AuditAction
    actor_id: str
    submission_id: Optional[str] = None
    mission_id: Optional[str] = None
    changes: Optional[Dict[str, Any]] = None  # What changed
    metadata: Optional[Dict[str, Any]] = None  # Additional info
    timestamp: datetime
