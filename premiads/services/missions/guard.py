"""
Duplicate Guard
At most one live submission per (user, mission).
"""
import logging
from typing import Optional

from premiads.core.config import ALLOW_RESUBMIT_AFTER_REJECTION
from premiads.models.missions.submission import SubmissionStatus
from premiads.services.missions.store import SubmissionStore

logger = logging.getLogger(__name__)


class DuplicateGuard:
    """
    Decides whether a user may submit a mission again.

    Non-terminal and approved submissions always block. A rejected
    submission blocks unless ``allow_resubmit_after_rejection`` is on.
    """

    def __init__(self, store: SubmissionStore, allow_resubmit_after_rejection: Optional[bool] = None):
        self.store = store
        self.allow_resubmit_after_rejection = (
            ALLOW_RESUBMIT_AFTER_REJECTION
            if allow_resubmit_after_rejection is None
            else allow_resubmit_after_rejection
        )

    def blocks_resubmission(self, status: SubmissionStatus) -> bool:
        if status == SubmissionStatus.REJECTED:
            return not self.allow_resubmit_after_rejection
        return True

    async def can_submit(self, user_id: str, mission_id: str) -> bool:
        # Store errors propagate as StoreUnavailable
        existing = await self.store.find_for_pair(user_id, mission_id)
        for submission in existing:
            if self.blocks_resubmission(SubmissionStatus(submission["status"])):
                logger.info(
                    "Submission blocked for user=%s mission=%s (existing %s is %s)",
                    user_id, mission_id, submission["_id"], submission["status"]
                )
                return False
        return True
