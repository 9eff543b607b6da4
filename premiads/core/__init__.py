"""
Core module for application infrastructure.
"""
from premiads.core.exceptions import (
    MissionWorkflowError,
    Unauthenticated,
    PermissionDenied,
    MissionNotFound,
    MissionInactive,
    DuplicateSubmission,
    SubmissionNotFound,
    InvalidTransition,
    StoreUnavailable,
    RewardIssuanceFailed,
    RewardRevocationFailed,
    LootBoxNotFound,
    LootBoxAlreadyClaimed,
)

__all__ = [
    "MissionWorkflowError",
    "Unauthenticated",
    "PermissionDenied",
    "MissionNotFound",
    "MissionInactive",
    "DuplicateSubmission",
    "SubmissionNotFound",
    "InvalidTransition",
    "StoreUnavailable",
    "RewardIssuanceFailed",
    "RewardRevocationFailed",
    "LootBoxNotFound",
    "LootBoxAlreadyClaimed",
]
