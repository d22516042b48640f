import logging
from typing import Any

from sqlalchemy import case, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from enhancer.core.config import settings
from enhancer.models.alert import Alert

logger = logging.getLogger(__name__)

ALERT_SUCCESS = "success"
ALERT_FAILURE = "failure"


class AlertService:
    """
    Per-owner job outcome alerts.

    `notify` commits on its own and never raises: it runs after the job outcome
    is already committed, and a lost alert must not undo that outcome.
    """

    def __init__(self, db: Session) -> None:
        self.db = db

    def notify(
        self,
        owner_id: str,
        kind: str,
        message: str,
        metadata: dict[str, Any] | None = None,
    ) -> Alert | None:
        alert = Alert(owner_id=owner_id, kind=kind, message=message, extra_data=metadata or {}, read=False)
        try:
            self.db.add(alert)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.exception(
                "alert_write_failed",
                extra={"owner_id": owner_id, "status": kind, "error": str(e)},
            )
            return None
        logger.info("alert_created", extra={"owner_id": owner_id, "status": kind})
        return alert

    def list_for_owner(self, owner_id: str, limit: int | None = None) -> list[Alert]:
        """Unread first, then read; newest first within each group."""
        limit = limit if limit is not None else settings.alerts_list_limit
        unread_first = case((Alert.read.is_(False), 0), else_=1)
        return (
            self.db.query(Alert)
            .filter(Alert.owner_id == owner_id)
            .order_by(unread_first, Alert.created_at.desc())
            .limit(limit)
            .all()
        )

    def mark_all_read(self, owner_id: str) -> int:
        result = self.db.execute(
            update(Alert).where(Alert.owner_id == owner_id, Alert.read.is_(False)).values(read=True)
        )
        self.db.commit()
        return result.rowcount
