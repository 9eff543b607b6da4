"""
Moderation Service
Two-stage review of mission submissions.

Transitions (from status/stage, actor, decision -> to):
- pending|in_progress / first_review, mission advertiser, approve -> approved + rewards
- pending|in_progress / first_review, mission advertiser, reject -> second_instance_pending
- second_instance_pending / second_instance, admin, approve -> approved + rewards
- second_instance_pending / second_instance, admin, reject -> rejected (final)

Every transition is a conditional update on the (status, review_stage) that
was read, so two concurrent decisions on one submission cannot both apply.
"""
import logging
from datetime import datetime
from typing import Optional, Dict, Any, Tuple

from motor.motor_asyncio import AsyncIOMotorDatabase

from premiads.core.exceptions import (
    Unauthenticated,
    PermissionDenied,
    MissionNotFound,
    SubmissionNotFound,
    InvalidTransition,
    StoreUnavailable,
    RewardIssuanceFailed,
    RewardRevocationFailed,
)
from premiads.models.auth.user import Caller
from premiads.models.missions.audit import AuditAction
from premiads.models.missions.mission import Mission
from premiads.models.missions.reward import (
    RewardGrant,
    RewardSummary,
    ModerationOutcome,
    DecisionResult,
)
from premiads.models.missions.submission import (
    Submission,
    SubmissionStatus,
    ReviewStage,
    ModerationDecision,
)
from premiads.services.missions.audit import AuditService
from premiads.services.missions.guard import DuplicateGuard
from premiads.services.missions.rewards import RewardIssuer
from premiads.services.missions.store import SubmissionStore

logger = logging.getLogger(__name__)


ALLOWED_FROM = {
    ReviewStage.FIRST_REVIEW: (SubmissionStatus.PENDING, SubmissionStatus.IN_PROGRESS),
    ReviewStage.SECOND_INSTANCE: (SubmissionStatus.SECOND_INSTANCE_PENDING,),
}

# Fields a decision may overwrite; restored as-is when an approval is rolled back
REVIEW_FIELDS = (
    "status",
    "review_stage",
    "validated_by",
    "admin_validated",
    "second_instance_status",
    "feedback",
    "second_instance_feedback",
    "reviewed_at",
    "updated_at",
)


class ModerationService:
    """Service for advertiser/admin decisions on submissions"""

    def __init__(
        self,
        db: AsyncIOMotorDatabase,
        issuer: Optional[RewardIssuer] = None,
        store: Optional[SubmissionStore] = None,
        guard: Optional[DuplicateGuard] = None,
        timeout: Optional[float] = None
    ):
        self.db = db
        self.store = store or SubmissionStore(db, timeout=timeout)
        self.guard = guard or DuplicateGuard(self.store)
        self.issuer = issuer or RewardIssuer(db, timeout=timeout)
        self.audit_service = AuditService(db, timeout=timeout)

    async def decide(
        self,
        caller: Optional[Caller],
        submission_id: str,
        decision: ModerationDecision,
        stage: ReviewStage,
        feedback: Optional[str] = None
    ) -> DecisionResult:
        """
        Apply an approve/reject decision at ``stage``.

        Raises Unauthenticated, PermissionDenied, SubmissionNotFound,
        InvalidTransition, RewardIssuanceFailed or StoreUnavailable.
        """
        if caller is None or not caller.user_id:
            raise Unauthenticated()

        doc = await self.store.get(submission_id)
        if not doc:
            raise SubmissionNotFound()
        submission = Submission.from_document(doc)

        mission = await self._get_mission(submission.mission_id)
        self._authorize(caller, mission, stage)

        if submission.review_stage != stage or submission.status not in ALLOWED_FROM[stage]:
            logger.warning(
                "Rejected %s at %s on submission %s (currently %s/%s)",
                decision.value, stage.value, submission_id,
                submission.status.value, submission.review_stage.value
            )
            raise InvalidTransition()

        changes, unset = self._changes_for(caller, stage, decision, feedback)
        expected = {"status": submission.status.value, "review_stage": submission.review_stage.value}

        updated = await self.store.transition(submission_id, expected, changes, unset=unset)
        if updated is None:
            # Deleted or decided by someone else since it was read
            if await self.store.get(submission_id) is None:
                raise SubmissionNotFound()
            logger.warning("Concurrent decision on submission %s, %s discarded", submission_id, decision.value)
            raise InvalidTransition()

        reviewed = Submission.from_document(updated)
        logger.info(
            "Submission %s: %s -> %s by %s (%s)",
            submission_id, submission.status.value, reviewed.status.value, caller.user_id, caller.role.value
        )

        await self._audit(
            action=AuditAction.SUBMISSION_REVIEWED,
            actor_id=caller.user_id,
            submission_id=submission_id,
            mission_id=mission.id,
            changes={"status": {"old": submission.status.value, "new": reviewed.status.value}},
            metadata={"decision": decision.value, "stage": stage.value, "feedback": feedback}
        )

        grant = None
        if reviewed.status == SubmissionStatus.APPROVED:
            grant = await self._issue_or_roll_back(caller, doc, reviewed, mission)

        return DecisionResult(
            submission=reviewed,
            reward_grant=grant,
            outcome=self._outcome(stage, decision, grant)
        )

    async def start_review(self, caller: Optional[Caller], submission_id: str) -> Submission:
        """Mark a pending submission as being reviewed by the mission's advertiser"""
        if caller is None or not caller.user_id:
            raise Unauthenticated()

        doc = await self.store.get(submission_id)
        if not doc:
            raise SubmissionNotFound()
        submission = Submission.from_document(doc)

        mission = await self._get_mission(submission.mission_id)
        self._authorize(caller, mission, ReviewStage.FIRST_REVIEW)

        if submission.status == SubmissionStatus.IN_PROGRESS:
            return submission

        updated = await self.store.transition(
            submission_id,
            {"status": SubmissionStatus.PENDING.value, "review_stage": ReviewStage.FIRST_REVIEW.value},
            {"status": SubmissionStatus.IN_PROGRESS.value, "updated_at": datetime.utcnow()}
        )
        if updated is None:
            raise InvalidTransition()
        return Submission.from_document(updated)

    async def retry_rewards(self, caller: Optional[Caller], submission_id: str) -> DecisionResult:
        """
        Re-run reward issuance for an approved submission.

        Used after an issuance whose outcome is unknown (timeout during the
        rollback) or whose grant could not be revoked. Issuance is idempotent,
        so an already issued grant is returned unchanged and a grant left
        issuing is finished without a second increment.
        """
        if caller is None or not caller.user_id:
            raise Unauthenticated()
        if not caller.is_admin:
            raise PermissionDenied("Only admins can retry reward issuance")

        doc = await self.store.get(submission_id)
        if not doc:
            raise SubmissionNotFound()
        submission = Submission.from_document(doc)

        if submission.status != SubmissionStatus.APPROVED:
            raise InvalidTransition("Rewards can only be issued for approved submissions")

        mission = await self._get_mission(submission.mission_id)

        try:
            grant = await self.issuer.issue_rewards(submission, mission)
        except Exception as exc:
            logger.exception("Reward retry failed for submission %s", submission_id)
            raise RewardIssuanceFailed("Rewards could not be issued; please retry later") from exc

        await self._audit(
            action=AuditAction.REWARDS_ISSUED,
            actor_id=caller.user_id,
            submission_id=submission_id,
            mission_id=mission.id,
            metadata={"grant_id": grant.id, "retry": True}
        )

        return DecisionResult(
            submission=submission,
            reward_grant=grant,
            outcome=ModerationOutcome(
                action="rewards_issued",
                message="Rewards issued to the participant.",
                rewards=self._summary(grant)
            )
        )

    def _authorize(self, caller: Caller, mission: Mission, stage: ReviewStage) -> None:
        if caller.is_admin:
            if stage != ReviewStage.SECOND_INSTANCE:
                raise InvalidTransition("Admins review submissions in second instance only")
            return

        if caller.is_advertiser:
            if mission.advertiser_id != caller.user_id:
                raise PermissionDenied("Only the mission's advertiser can review its submissions")
            if stage != ReviewStage.FIRST_REVIEW:
                raise InvalidTransition("Advertisers review submissions in first review only")
            return

        raise PermissionDenied("Participants cannot review submissions")

    def _changes_for(
        self,
        caller: Caller,
        stage: ReviewStage,
        decision: ModerationDecision,
        feedback: Optional[str]
    ) -> Tuple[Dict[str, Any], Tuple[str, ...]]:
        now = datetime.utcnow()
        changes: Dict[str, Any] = {"reviewed_at": now, "updated_at": now}
        unset: Tuple[str, ...] = ()

        if stage == ReviewStage.FIRST_REVIEW:
            changes["validated_by"] = caller.user_id
            if feedback is not None:
                changes["feedback"] = feedback
            if decision == ModerationDecision.APPROVE:
                changes["status"] = SubmissionStatus.APPROVED.value
            else:
                changes["status"] = SubmissionStatus.SECOND_INSTANCE_PENDING.value
                changes["review_stage"] = ReviewStage.SECOND_INSTANCE.value
        else:
            changes["admin_validated"] = True
            if feedback is not None:
                changes["second_instance_feedback"] = feedback
            if decision == ModerationDecision.APPROVE:
                changes["status"] = SubmissionStatus.APPROVED.value
                changes["second_instance_status"] = SubmissionStatus.APPROVED.value
            else:
                changes["status"] = SubmissionStatus.REJECTED.value
                changes["second_instance_status"] = SubmissionStatus.REJECTED.value
                if not self.guard.blocks_resubmission(SubmissionStatus.REJECTED):
                    unset = ("dedupe_key",)

        return changes, unset

    async def _issue_or_roll_back(
        self,
        caller: Caller,
        original: Dict[str, Any],
        reviewed: Submission,
        mission: Mission
    ) -> RewardGrant:
        try:
            grant = await self.issuer.issue_rewards(reviewed, mission)
        except RewardRevocationFailed as exc:
            # Part of the grant may have landed; keep the approval so retry_rewards can finish it
            logger.error("Rewards for submission %s are partially applied, approval kept for recovery", reviewed.id)
            raise RewardIssuanceFailed(
                "Rewards could not be issued and the approval is pending recovery; retry reward issuance"
            ) from exc
        except Exception as exc:
            logger.exception("Reward issuance failed for submission %s, rolling back approval", reviewed.id)
            try:
                await self._roll_back(original, reviewed)
            except StoreUnavailable:
                logger.exception("Approval of submission %s could not be rolled back", reviewed.id)
                raise RewardIssuanceFailed(
                    "Rewards could not be issued and the approval is pending recovery; retry reward issuance"
                ) from exc
            await self._audit(
                action=AuditAction.REWARDS_ROLLED_BACK,
                actor_id=caller.user_id,
                submission_id=reviewed.id,
                mission_id=mission.id,
                metadata={"error": str(exc)}
            )
            raise RewardIssuanceFailed() from exc

        await self._audit(
            action=AuditAction.REWARDS_ISSUED,
            actor_id=caller.user_id,
            submission_id=reviewed.id,
            mission_id=mission.id,
            metadata={
                "grant_id": grant.id,
                "points_earned": grant.points_earned,
                "cashback_earned": grant.cashback_earned,
                "badge_earned": grant.badge_earned,
                "loot_box": grant.loot_box_reward.type.value if grant.loot_box_reward else None,
            }
        )
        return grant

    async def _roll_back(self, original: Dict[str, Any], reviewed: Submission) -> None:
        restore = {field: original.get(field) for field in REVIEW_FIELDS}
        restored = await self.store.transition(
            reviewed.id,
            {"status": SubmissionStatus.APPROVED.value, "review_stage": reviewed.review_stage.value},
            restore
        )
        if restored is None:
            logger.error("Submission %s changed before its approval could be rolled back", reviewed.id)
        else:
            logger.warning("Approval of submission %s rolled back to %s", reviewed.id, restore["status"])

    async def _get_mission(self, mission_id: str) -> Mission:
        mission_doc = await self.store.get_mission(mission_id)
        if not mission_doc:
            raise MissionNotFound()
        return Mission.from_document(mission_doc)

    @staticmethod
    def _summary(grant: Optional[RewardGrant]) -> Optional[RewardSummary]:
        if grant is None:
            return None
        return RewardSummary(
            points_earned=grant.points_earned,
            cashback_earned=grant.cashback_earned,
            badge_name=grant.badge_name,
            loot_box_reward=grant.loot_box_reward
        )

    def _outcome(
        self,
        stage: ReviewStage,
        decision: ModerationDecision,
        grant: Optional[RewardGrant]
    ) -> ModerationOutcome:
        if decision == ModerationDecision.APPROVE:
            by = "advertiser" if stage == ReviewStage.FIRST_REVIEW else "admin"
            return ModerationOutcome(
                action="approved",
                message=f"Submission approved by {by}. Rewards granted to the participant.",
                rewards=self._summary(grant)
            )
        if stage == ReviewStage.FIRST_REVIEW:
            return ModerationOutcome(
                action="sent_to_second_instance",
                message="Submission rejected and sent to second instance review."
            )
        return ModerationOutcome(
            action="rejected",
            message="Submission rejected permanently."
        )

    async def _audit(self, **entry) -> None:
        try:
            await self.audit_service.log_action(**entry)
        except StoreUnavailable:
            logger.exception("Audit entry %s for submission %s not written", entry["action"], entry.get("submission_id"))
