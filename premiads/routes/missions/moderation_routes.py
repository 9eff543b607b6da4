from fastapi import APIRouter, Depends
from typing import Optional

from premiads.core.exceptions import MissionWorkflowError, Unauthenticated, PermissionDenied
from premiads.models.auth.user import Caller
from premiads.routes.auth.dependencies import get_current_caller, get_database
from premiads.services.missions.escalation import EscalationService
from premiads.utils.response import success_response, workflow_error_response

router = APIRouter(prefix="/moderation", tags=["Moderation"])


@router.get("/second-instance")
async def get_second_instance_queue(
    current_caller: Optional[Caller] = Depends(get_current_caller),
    db=Depends(get_database)
):
    """Submissions rejected by advertisers and waiting for an admin, oldest first"""
    try:
        if current_caller is None:
            raise Unauthenticated()
        if not current_caller.is_admin:
            raise PermissionDenied("Only admins can view the second instance queue")
        submissions = await EscalationService(db).list_pending_second_instance()
    except MissionWorkflowError as e:
        return workflow_error_response(e)

    return success_response(
        message="Second instance queue retrieved successfully",
        data={"submissions": submissions, "total": len(submissions)}
    )
