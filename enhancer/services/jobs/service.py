from datetime import datetime, timedelta, timezone

from sqlalchemy import update
from sqlalchemy.orm import Session

from enhancer.models.render_job import (
    ACTIVE_STATUSES,
    JOB_COMPLETED,
    JOB_FAILED,
    JOB_POLLING,
    JOB_QUEUED,
    JOB_SUBMITTED,
    STATUS_RANK,
    RenderJob,
)


def allowed_predecessors(status: str) -> tuple[str, ...]:
    """Statuses a job may move to `status` from: strictly lower rank, never terminal."""
    rank = STATUS_RANK[status]
    return tuple(s for s in (JOB_QUEUED, JOB_SUBMITTED, JOB_POLLING) if STATUS_RANK[s] < rank)


class JobService:
    """
    Render job records. Status changes go through `transition`, a conditional
    UPDATE that only matches rows in an allowed predecessor status, so a
    duplicate or late writer becomes a no-op instead of moving a job backwards.
    Methods flush; the caller owns the transaction unless stated otherwise.
    """

    def __init__(self, db: Session):
        self.db = db

    def create_job(
        self,
        owner_id: str,
        renderer: str,
        source_asset_ref: str,
        parameters: dict,
        job_id: str | None = None,
    ) -> RenderJob:
        job_kwargs: dict = {
            "owner_id": owner_id,
            "renderer": renderer,
            "source_asset_ref": source_asset_ref,
            "parameters": parameters,
            "status": JOB_QUEUED,
            "poll_attempts": 0,
        }
        if job_id is not None:
            job_kwargs["job_id"] = job_id
        job = RenderJob(**job_kwargs)
        self.db.add(job)
        self.db.flush()
        return job

    def get(self, job_id: str) -> RenderJob | None:
        return self.db.query(RenderJob).filter(RenderJob.job_id == job_id).one_or_none()

    def get_for_owner(self, job_id: str, owner_id: str) -> RenderJob | None:
        return (
            self.db.query(RenderJob)
            .filter(RenderJob.job_id == job_id, RenderJob.owner_id == owner_id)
            .one_or_none()
        )

    def list_for_owner(self, owner_id: str, status: str | None = None, limit: int = 50) -> list[RenderJob]:
        query = self.db.query(RenderJob).filter(RenderJob.owner_id == owner_id)
        if status:
            query = query.filter(RenderJob.status == status)
        return query.order_by(RenderJob.created_at.desc()).limit(limit).all()

    def transition(self, job_id: str, status: str, **values) -> bool:
        """
        Move job to `status`, setting `values` in the same statement.
        Returns False (and changes nothing) if the stored status does not allow it.
        """
        predecessors = allowed_predecessors(status)
        result = self.db.execute(
            update(RenderJob)
            .where(RenderJob.job_id == job_id, RenderJob.status.in_(predecessors))
            .values(status=status, updated_at=datetime.now(timezone.utc), **values)
        )
        self.db.flush()
        return result.rowcount > 0

    def mark_submitted(self, job_id: str, external_render_id: str) -> bool:
        # only from queued, so the render id is written exactly once
        result = self.db.execute(
            update(RenderJob)
            .where(RenderJob.job_id == job_id, RenderJob.status == JOB_QUEUED)
            .values(
                status=JOB_SUBMITTED,
                external_render_id=external_render_id,
                updated_at=datetime.now(timezone.utc),
            )
        )
        self.db.flush()
        return result.rowcount > 0

    def mark_completed(self, job_id: str, result_asset_ref: str) -> bool:
        return self.transition(job_id, JOB_COMPLETED, result_asset_ref=result_asset_ref)

    def mark_failed(self, job_id: str, error_detail: str) -> bool:
        return self.transition(job_id, JOB_FAILED, error_detail=error_detail or "Processing failed")

    def record_poll_attempt(self, job_id: str, attempt: int) -> bool:
        """Persist attempt count; the first attempt also moves submitted -> polling."""
        now = datetime.now(timezone.utc)
        self.db.execute(
            update(RenderJob)
            .where(RenderJob.job_id == job_id, RenderJob.status == JOB_SUBMITTED)
            .values(status=JOB_POLLING, updated_at=now)
        )
        result = self.db.execute(
            update(RenderJob)
            .where(RenderJob.job_id == job_id, RenderJob.status == JOB_POLLING)
            .values(poll_attempts=attempt, updated_at=now)
        )
        self.db.flush()
        return result.rowcount > 0

    def find_stale(self, queued_older_than: timedelta, active_older_than: timedelta) -> list[RenderJob]:
        """Queued jobs nobody picked up, and submitted/polling jobs nobody has touched."""
        now = datetime.now(timezone.utc)
        queued = (
            self.db.query(RenderJob)
            .filter(RenderJob.status == JOB_QUEUED, RenderJob.updated_at < now - queued_older_than)
            .all()
        )
        active = (
            self.db.query(RenderJob)
            .filter(
                RenderJob.status.in_(sorted(ACTIVE_STATUSES - {JOB_QUEUED})),
                RenderJob.updated_at < now - active_older_than,
            )
            .all()
        )
        return queued + active

    def source_in_use(self, source_asset_ref: str, exclude_job_id: str | None = None) -> bool:
        """True when a job other than exclude_job_id still points at this source."""
        query = self.db.query(RenderJob.job_id).filter(RenderJob.source_asset_ref == source_asset_ref)
        if exclude_job_id:
            query = query.filter(RenderJob.job_id != exclude_job_id)
        return query.first() is not None

    def delete(self, job: RenderJob) -> None:
        self.db.delete(job)
        self.db.flush()
