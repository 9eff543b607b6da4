import logging
from motor.motor_asyncio import AsyncIOMotorDatabase
from typing import Optional, List, Dict, Any
from datetime import datetime
from pymongo.errors import DuplicateKeyError

from premiads.core.exceptions import (
    Unauthenticated,
    MissionNotFound,
    MissionInactive,
    DuplicateSubmission,
    SubmissionNotFound,
    StoreUnavailable,
)
from premiads.models.auth.user import Caller
from premiads.models.missions.audit import AuditAction
from premiads.models.missions.mission import Mission
from premiads.models.missions.submission import Submission, SubmissionStatus, ReviewStage
from premiads.services.missions.audit import AuditService
from premiads.services.missions.guard import DuplicateGuard
from premiads.services.missions.store import SubmissionStore, dedupe_key

logger = logging.getLogger(__name__)


class SubmissionService:
    """Service for mission submission intake and lookups"""

    def __init__(
        self,
        db: AsyncIOMotorDatabase,
        store: Optional[SubmissionStore] = None,
        guard: Optional[DuplicateGuard] = None,
        timeout: Optional[float] = None
    ):
        self.db = db
        self.store = store or SubmissionStore(db, timeout=timeout)
        self.guard = guard or DuplicateGuard(self.store)
        self.audit_service = AuditService(db, timeout=timeout)

    async def submit(
        self,
        caller: Optional[Caller],
        mission_id: str,
        submission_data: Optional[Dict[str, Any]] = None
    ) -> Submission:
        """
        Record a participant's claim of having completed a mission.

        Raises Unauthenticated, MissionNotFound, MissionInactive,
        DuplicateSubmission or StoreUnavailable.
        """
        if caller is None or not caller.user_id:
            raise Unauthenticated()
        user_id = caller.user_id

        mission_doc = await self.store.get_mission(mission_id)
        if not mission_doc:
            raise MissionNotFound()

        mission = Mission.from_document(mission_doc)
        if not mission.is_open():
            raise MissionInactive()

        if not await self.guard.can_submit(user_id, mission.id):
            logger.warning("Duplicate submission attempt: user=%s mission=%s", user_id, mission.id)
            raise DuplicateSubmission()

        now = datetime.utcnow()
        document = {
            "mission_id": mission.id,
            "user_id": user_id,
            "submission_data": submission_data or {},
            "status": SubmissionStatus.PENDING.value,
            "review_stage": ReviewStage.FIRST_REVIEW.value,
            "submitted_at": now,
            "updated_at": now,
            "validated_by": None,
            "admin_validated": False,
            "second_instance_status": None,
            "feedback": None,
            "second_instance_feedback": None,
            "reviewed_at": None,
            "dedupe_key": dedupe_key(user_id, mission.id),
        }

        try:
            document = await self.store.insert(document)
        except DuplicateKeyError:
            # A concurrent submission for the same pair got past the guard first
            logger.warning("Unique index rejected submission: user=%s mission=%s", user_id, mission.id)
            raise DuplicateSubmission()

        submission = Submission.from_document(document)
        logger.info("Submission %s created: user=%s mission=%s", submission.id, user_id, mission.id)

        await self._audit(
            action=AuditAction.SUBMISSION_CREATED,
            actor_id=user_id,
            submission_id=submission.id,
            mission_id=mission.id,
            metadata={"has_data": bool(submission.submission_data)}
        )

        return submission

    async def get_submission(self, submission_id: str) -> Submission:
        doc = await self.store.get(submission_id)
        if not doc:
            raise SubmissionNotFound()
        return Submission.from_document(doc)

    async def get_mission(self, mission_id: str) -> Mission:
        doc = await self.store.get_mission(mission_id)
        if not doc:
            raise MissionNotFound()
        return Mission.from_document(doc)

    async def list_user_submissions(
        self,
        user_id: str,
        status: Optional[SubmissionStatus] = None
    ) -> List[Submission]:
        docs = await self.store.list_for(user_id=user_id, status=status)
        return [Submission.from_document(doc) for doc in docs]

    async def list_mission_submissions(
        self,
        mission_id: str,
        status: Optional[SubmissionStatus] = None
    ) -> List[Submission]:
        """Advertiser review queue for one mission"""
        docs = await self.store.list_for(mission_id=mission_id, status=status)
        return [Submission.from_document(doc) for doc in docs]

    async def _audit(self, **entry) -> None:
        # The submission is already committed; a lost audit row is logged, not reported as a failed submit
        try:
            await self.audit_service.log_action(**entry)
        except StoreUnavailable:
            logger.exception("Audit entry %s for submission %s not written", entry["action"], entry.get("submission_id"))
