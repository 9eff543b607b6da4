"""
Submission Store
Access to mission_submissions (and read-only missions) with bounded calls
and conditional, status-keyed updates.
"""
from typing import Optional, List, Dict, Any, Iterable

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING, ReturnDocument

from premiads.models.missions.submission import SubmissionStatus, ReviewStage
from premiads.utils.mongo import guarded, to_object_id


def dedupe_key(user_id: str, mission_id: str) -> str:
    """Value of the unique sparse index that blocks a second active submission"""
    return f"{user_id}:{mission_id}"


class SubmissionStore:
    """Persistence for submissions and the mission reader"""

    def __init__(self, db: AsyncIOMotorDatabase, timeout: Optional[float] = None):
        self.db = db
        self.submissions = db.mission_submissions
        self.missions = db.missions
        self.timeout = timeout

    async def get(self, submission_id: str) -> Optional[Dict[str, Any]]:
        oid = to_object_id(submission_id)
        if oid is None:
            return None
        return await guarded(self.submissions.find_one({"_id": oid}), self.timeout)

    async def find_for_pair(self, user_id: str, mission_id: str) -> List[Dict[str, Any]]:
        cursor = self.submissions.find(
            {"user_id": user_id, "mission_id": mission_id}
        ).sort("submitted_at", DESCENDING)
        return await guarded(cursor.to_list(length=None), self.timeout)

    async def insert(self, document: Dict[str, Any]) -> Dict[str, Any]:
        """Insert a new submission. DuplicateKeyError propagates to the caller."""
        result = await guarded(self.submissions.insert_one(document), self.timeout)
        document["_id"] = result.inserted_id
        return document

    async def transition(
        self,
        submission_id: str,
        expected: Dict[str, Any],
        changes: Dict[str, Any],
        unset: Iterable[str] = ()
    ) -> Optional[Dict[str, Any]]:
        """
        Conditional update: applied only while every ``expected`` field still
        holds. Returns the updated document, or None when the submission
        is missing or has moved on (stale read / concurrent decision).
        """
        oid = to_object_id(submission_id)
        if oid is None:
            return None

        update: Dict[str, Any] = {"$set": changes}
        unset = list(unset)
        if unset:
            update["$unset"] = {field: "" for field in unset}

        return await guarded(
            self.submissions.find_one_and_update(
                {"_id": oid, **expected},
                update,
                return_document=ReturnDocument.AFTER
            ),
            self.timeout
        )

    async def list_by_status(
        self,
        status: SubmissionStatus,
        review_stage: Optional[ReviewStage] = None,
        mission_id: Optional[str] = None,
        user_id: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        query: Dict[str, Any] = {"status": status.value}
        if review_stage:
            query["review_stage"] = review_stage.value
        if mission_id:
            query["mission_id"] = mission_id
        if user_id:
            query["user_id"] = user_id

        cursor = self.submissions.find(query).sort("submitted_at", ASCENDING)
        return await guarded(cursor.to_list(length=None), self.timeout)

    async def list_for(
        self,
        mission_id: Optional[str] = None,
        user_id: Optional[str] = None,
        status: Optional[SubmissionStatus] = None
    ) -> List[Dict[str, Any]]:
        query: Dict[str, Any] = {}
        if mission_id:
            query["mission_id"] = mission_id
        if user_id:
            query["user_id"] = user_id
        if status:
            query["status"] = status.value

        cursor = self.submissions.find(query).sort("submitted_at", DESCENDING)
        return await guarded(cursor.to_list(length=None), self.timeout)

    async def count_by_status(
        self,
        status: SubmissionStatus,
        review_stage: Optional[ReviewStage] = None
    ) -> int:
        query: Dict[str, Any] = {"status": status.value}
        if review_stage:
            query["review_stage"] = review_stage.value
        return await guarded(self.submissions.count_documents(query), self.timeout)

    async def get_mission(self, mission_id: str) -> Optional[Dict[str, Any]]:
        oid = to_object_id(mission_id)
        if oid is None:
            return None
        return await guarded(self.missions.find_one({"_id": oid}), self.timeout)
