from motor.motor_asyncio import AsyncIOMotorDatabase
from typing import Optional, Dict, Any, List
from datetime import datetime

from premiads.models.missions.audit import AuditAction, AuditEntry
from premiads.utils.mongo import guarded


class AuditService:
    """Service for audit trail logging"""

    def __init__(self, db: AsyncIOMotorDatabase, timeout: Optional[float] = None):
        self.db = db
        self.audit_log = db.mission_audit_log
        self.timeout = timeout

    async def log_action(
        self,
        action: AuditAction,
        actor_id: str,
        submission_id: Optional[str] = None,
        mission_id: Optional[str] = None,
        changes: Optional[Dict[str, Any]] = None,
        metadata: Optional[Dict[str, Any]] = None
    ) -> AuditEntry:
        """Log an audit trail entry. Store errors propagate."""
        entry = AuditEntry(
            action=action,
            actor_id=actor_id,
            submission_id=submission_id,
            mission_id=mission_id,
            changes=changes,
            metadata=metadata,
            timestamp=datetime.utcnow()
        )

        document = entry.model_dump()
        document["action"] = entry.action.value
        await guarded(self.audit_log.insert_one(document), self.timeout)
        return entry

    async def get_submission_history(self, submission_id: str) -> List[AuditEntry]:
        """Get complete history of a submission, oldest first"""
        cursor = self.audit_log.find({"submission_id": submission_id}).sort("timestamp", 1)
        docs = await guarded(cursor.to_list(length=None), self.timeout)
        return [AuditEntry(**{k: v for k, v in doc.items() if k != "_id"}) for doc in docs]
