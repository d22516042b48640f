from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import CheckConstraint, Column, DateTime, Integer, String, Text

from enhancer.db.base import Base, JSONType


JOB_QUEUED = "queued"
JOB_SUBMITTED = "submitted"
JOB_POLLING = "polling"
JOB_COMPLETED = "completed"
JOB_FAILED = "failed"

# Monotonic order; terminal states share the top rank.
STATUS_RANK = {
    JOB_QUEUED: 0,
    JOB_SUBMITTED: 1,
    JOB_POLLING: 2,
    JOB_COMPLETED: 3,
    JOB_FAILED: 3,
}
TERMINAL_STATUSES = frozenset({JOB_COMPLETED, JOB_FAILED})
ACTIVE_STATUSES = frozenset({JOB_QUEUED, JOB_SUBMITTED, JOB_POLLING})


class RenderJob(Base):
    __tablename__ = "render_jobs"
    __table_args__ = (
        CheckConstraint(
            "(status = 'completed') = (result_asset_ref IS NOT NULL)",
            name="ck_render_jobs_result_iff_completed",
        ),
        CheckConstraint(
            "(status = 'failed') = (error_detail IS NOT NULL)",
            name="ck_render_jobs_error_iff_failed",
        ),
        CheckConstraint(
            "status IN ('queued', 'submitted', 'polling', 'completed', 'failed')",
            name="ck_render_jobs_status",
        ),
    )

    job_id = Column(String, primary_key=True, default=lambda: str(uuid4()))
    owner_id = Column(String, nullable=False, index=True)
    renderer = Column(String, nullable=False)
    source_asset_ref = Column(String, nullable=False)
    parameters = Column(JSONType, nullable=False, default=dict)
    status = Column(String, nullable=False, default=JOB_QUEUED, index=True)
    external_render_id = Column(String, nullable=True)
    result_asset_ref = Column(String, nullable=True)
    error_detail = Column(Text, nullable=True)
    poll_attempts = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES
