from pydantic import BaseModel, Field
from typing import Optional, Dict, Any
from datetime import datetime
from enum import Enum


class SubmissionStatus(str, Enum):
    """Submission status"""
    PENDING = "pending"  # Waiting for advertiser review
    IN_PROGRESS = "in_progress"  # Advertiser opened it, still first review
    APPROVED = "approved"  # Rewards granted
    REJECTED = "rejected"  # Final rejection by an admin
    SECOND_INSTANCE_PENDING = "second_instance_pending"  # Rejected by advertiser, waiting for admin


class ReviewStage(str, Enum):
    """Who is expected to review the submission next"""
    FIRST_REVIEW = "first_review"
    SECOND_INSTANCE = "second_instance"


class ModerationDecision(str, Enum):
    APPROVE = "approve"
    REJECT = "reject"


class SubmissionCreate(BaseModel):
    """Schema for creating a submission. The payload is opaque to the workflow."""
    submission_data: Dict[str, Any] = Field(default_factory=dict)


class DecisionRequest(BaseModel):
    """Schema for an advertiser/admin decision"""
    decision: ModerationDecision
    stage: ReviewStage
    feedback: Optional[str] = Field(None, max_length=2000)


class Submission(BaseModel):
    """Schema for submission response"""
    id: str
    mission_id: str
    user_id: str
    submission_data: Dict[str, Any] = {}
    status: SubmissionStatus
    review_stage: ReviewStage
    submitted_at: datetime
    updated_at: datetime
    validated_by: Optional[str] = None
    admin_validated: bool = False
    second_instance_status: Optional[SubmissionStatus] = None
    feedback: Optional[str] = None
    second_instance_feedback: Optional[str] = None
    reviewed_at: Optional[datetime] = None

    @classmethod
    def from_document(cls, doc: dict) -> "Submission":
        data = {k: v for k, v in doc.items() if k not in ("_id", "dedupe_key")}
        data["id"] = str(doc["_id"])
        return cls(**data)
