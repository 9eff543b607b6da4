from motor.motor_asyncio import AsyncIOMotorDatabase
from typing import Optional, List

from premiads.models.missions.submission import Submission, SubmissionStatus, ReviewStage
from premiads.services.missions.store import SubmissionStore


class EscalationService:
    """Admin queue of submissions rejected by advertisers, oldest first"""

    def __init__(self, db: AsyncIOMotorDatabase, store: Optional[SubmissionStore] = None, timeout: Optional[float] = None):
        self.db = db
        self.store = store or SubmissionStore(db, timeout=timeout)

    async def list_pending_second_instance(self) -> List[Submission]:
        docs = await self.store.list_by_status(
            SubmissionStatus.SECOND_INSTANCE_PENDING,
            review_stage=ReviewStage.SECOND_INSTANCE
        )
        return [Submission.from_document(doc) for doc in docs]

    async def count_pending_second_instance(self) -> int:
        return await self.store.count_by_status(
            SubmissionStatus.SECOND_INSTANCE_PENDING,
            review_stage=ReviewStage.SECOND_INSTANCE
        )
