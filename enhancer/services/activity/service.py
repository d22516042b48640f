from typing import Any

from sqlalchemy.orm import Session

from enhancer.models.activity_log import ActivityLog


class ActivityService:
    def __init__(self, db: Session) -> None:
        self.db = db

    def log(self, owner_id: str, action: str, message: str, payload: dict[str, Any] | None = None) -> ActivityLog:
        entry = ActivityLog(owner_id=owner_id, action=action, message=message, payload=payload or {})
        self.db.add(entry)
        self.db.flush()
        return entry
