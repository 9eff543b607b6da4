from fastapi import APIRouter, Depends, Query
from typing import Optional

from premiads.core.exceptions import MissionWorkflowError, Unauthenticated, PermissionDenied
from premiads.models.auth.user import Caller
from premiads.models.missions.submission import SubmissionCreate, SubmissionStatus, DecisionRequest
from premiads.routes.auth.dependencies import get_current_caller, get_database
from premiads.services.missions.audit import AuditService
from premiads.services.missions.moderation import ModerationService
from premiads.services.missions.submission import SubmissionService
from premiads.utils.response import success_response, workflow_error_response

# Two routers: one for mission-scoped endpoints, one for operations on a submission
mission_router = APIRouter(prefix="/missions", tags=["Mission Submissions"])
submission_router = APIRouter(prefix="/submissions", tags=["Submissions"])


@mission_router.post("/{mission_id}/submissions")
async def submit_mission(
    mission_id: str,
    payload: SubmissionCreate,
    current_caller: Optional[Caller] = Depends(get_current_caller),
    db=Depends(get_database)
):
    """
    Submit a completed mission for review.

    - Mission must be active
    - One live submission per user and mission
    """
    try:
        service = SubmissionService(db)
        submission = await service.submit(current_caller, mission_id, payload.submission_data)
    except MissionWorkflowError as e:
        return workflow_error_response(e)

    return success_response(
        message="Mission submitted. The advertiser will review it soon.",
        data=submission,
        status_code=201
    )


@mission_router.get("/{mission_id}/submissions")
async def get_mission_submissions(
    mission_id: str,
    status: Optional[SubmissionStatus] = Query(None),
    current_caller: Optional[Caller] = Depends(get_current_caller),
    db=Depends(get_database)
):
    """Review queue of a mission (mission advertiser or admin)"""
    try:
        if current_caller is None:
            raise Unauthenticated()
        service = SubmissionService(db)
        mission = await service.get_mission(mission_id)
        if not current_caller.is_admin and mission.advertiser_id != current_caller.user_id:
            raise PermissionDenied("Only the mission's advertiser can view its submissions")
        submissions = await service.list_mission_submissions(mission_id, status=status)
    except MissionWorkflowError as e:
        return workflow_error_response(e)

    return success_response(
        message="Submissions retrieved successfully",
        data={"submissions": submissions, "total": len(submissions)}
    )


@submission_router.get("/me")
async def get_my_submissions(
    status: Optional[SubmissionStatus] = Query(None),
    current_caller: Optional[Caller] = Depends(get_current_caller),
    db=Depends(get_database)
):
    """Get the current user's submissions, newest first"""
    try:
        if current_caller is None:
            raise Unauthenticated()
        submissions = await SubmissionService(db).list_user_submissions(current_caller.user_id, status=status)
    except MissionWorkflowError as e:
        return workflow_error_response(e)

    return success_response(
        message="Submissions retrieved successfully",
        data={"submissions": submissions, "total": len(submissions)}
    )


@submission_router.get("/{submission_id}")
async def get_submission(
    submission_id: str,
    current_caller: Optional[Caller] = Depends(get_current_caller),
    db=Depends(get_database)
):
    """Get one submission (its author, the mission's advertiser or an admin)"""
    try:
        if current_caller is None:
            raise Unauthenticated()
        service = SubmissionService(db)
        submission = await service.get_submission(submission_id)
        if not current_caller.is_admin and submission.user_id != current_caller.user_id:
            mission = await service.get_mission(submission.mission_id)
            if mission.advertiser_id != current_caller.user_id:
                raise PermissionDenied("You can't view this submission")
    except MissionWorkflowError as e:
        return workflow_error_response(e)

    return success_response(message="Submission retrieved successfully", data=submission)


@submission_router.post("/{submission_id}/start-review")
async def start_review(
    submission_id: str,
    current_caller: Optional[Caller] = Depends(get_current_caller),
    db=Depends(get_database)
):
    """Mark a pending submission as in progress (mission advertiser)"""
    try:
        submission = await ModerationService(db).start_review(current_caller, submission_id)
    except MissionWorkflowError as e:
        return workflow_error_response(e)

    return success_response(message="Review started", data=submission)


@submission_router.post("/{submission_id}/decision")
async def decide_submission(
    submission_id: str,
    payload: DecisionRequest,
    current_caller: Optional[Caller] = Depends(get_current_caller),
    db=Depends(get_database)
):
    """
    Approve or reject a submission.

    - first_review: the mission's advertiser; rejecting sends it to second instance
    - second_instance: admins only; rejecting is final
    - Approving grants the mission rewards
    """
    try:
        result = await ModerationService(db).decide(
            current_caller,
            submission_id,
            payload.decision,
            payload.stage,
            feedback=payload.feedback
        )
    except MissionWorkflowError as e:
        return workflow_error_response(e)

    return success_response(message=result.outcome.message, data=result)


@submission_router.post("/{submission_id}/retry-rewards")
async def retry_rewards(
    submission_id: str,
    current_caller: Optional[Caller] = Depends(get_current_caller),
    db=Depends(get_database)
):
    """Re-run reward issuance for an approved submission (admin)"""
    try:
        result = await ModerationService(db).retry_rewards(current_caller, submission_id)
    except MissionWorkflowError as e:
        return workflow_error_response(e)

    return success_response(message=result.outcome.message, data=result)


@submission_router.get("/{submission_id}/history")
async def get_submission_history(
    submission_id: str,
    current_caller: Optional[Caller] = Depends(get_current_caller),
    db=Depends(get_database)
):
    """Audit trail of a submission (mission advertiser or admin)"""
    try:
        if current_caller is None:
            raise Unauthenticated()
        service = SubmissionService(db)
        submission = await service.get_submission(submission_id)
        if not current_caller.is_admin:
            mission = await service.get_mission(submission.mission_id)
            if mission.advertiser_id != current_caller.user_id:
                raise PermissionDenied("Only the mission's advertiser can view this history")
        history = await AuditService(db).get_submission_history(submission_id)
    except MissionWorkflowError as e:
        return workflow_error_response(e)

    return success_response(message="History retrieved successfully", data={"history": history})
