"""
Mission workflow errors.

Every failure of the submission/moderation/reward workflow is raised as one
of these. Routes map them to the response envelope using ``status_code``;
``retryable`` tells API clients whether a blind retry (with backoff) is safe.
"""
from typing import Optional


class MissionWorkflowError(Exception):
    """Base class for all workflow errors"""

    code = "workflow_error"
    status_code = 400
    retryable = False
    default_message = "Mission workflow error"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class Unauthenticated(MissionWorkflowError):
    code = "unauthenticated"
    status_code = 401
    default_message = "Authentication required. Please sign in."


class PermissionDenied(MissionWorkflowError):
    code = "permission_denied"
    status_code = 403
    default_message = "You don't have permission to perform this action"


class MissionNotFound(MissionWorkflowError):
    code = "mission_not_found"
    status_code = 404
    default_message = "Mission not found"


class MissionInactive(MissionWorkflowError):
    code = "mission_inactive"
    status_code = 400
    default_message = "Mission is not active"


class DuplicateSubmission(MissionWorkflowError):
    code = "duplicate_submission"
    status_code = 409
    default_message = "You have already submitted this mission"


class SubmissionNotFound(MissionWorkflowError):
    code = "submission_not_found"
    status_code = 404
    default_message = "Submission not found"


class InvalidTransition(MissionWorkflowError):
    """Decision does not match the submission's current state. Re-fetch before retrying."""

    code = "invalid_transition"
    status_code = 409
    default_message = "Submission is not in a state that accepts this decision"


class StoreUnavailable(MissionWorkflowError):
    code = "store_unavailable"
    status_code = 503
    retryable = True
    default_message = "Storage is temporarily unavailable. Please try again."


class RewardIssuanceFailed(MissionWorkflowError):
    """Approval was rolled back because rewards could not be granted"""

    code = "reward_issuance_failed"
    status_code = 500
    default_message = "Rewards could not be issued; the approval was rolled back"


class RewardRevocationFailed(MissionWorkflowError):
    """A failed grant could not be undone and is left for a retry to finish"""

    code = "reward_revocation_failed"
    status_code = 500
    default_message = "Rewards were partially issued and could not be revoked"


class LootBoxNotFound(MissionWorkflowError):
    code = "loot_box_not_found"
    status_code = 404
    default_message = "Loot box not found"


class LootBoxAlreadyClaimed(MissionWorkflowError):
    code = "loot_box_already_claimed"
    status_code = 409
    default_message = "Loot box has already been claimed"
