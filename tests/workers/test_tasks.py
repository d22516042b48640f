"""Tests for the Celery tasks: process wrapper and stale-job watchdog."""
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock, patch

from sqlalchemy import update

from enhancer.models.render_job import RenderJob
from enhancer.services.jobs.service import JobService


def test_process_render_job_runs_orchestrator_and_closes_session():
    db = MagicMock()
    with patch("enhancer.workers.tasks.render_job.SessionLocal", return_value=db), \
            patch("enhancer.workers.tasks.render_job.get_asset_store") as get_store, \
            patch("enhancer.workers.tasks.render_job.RenderJobOrchestrator") as orch_cls:
        orch_cls.return_value.process.return_value = "completed"
        from enhancer.workers.tasks.render_job import process_render_job

        result = process_render_job.run("job-1")

    orch_cls.assert_called_once_with(db, get_store.return_value)
    orch_cls.return_value.process.assert_called_once_with("job-1")
    db.close.assert_called_once()
    assert result == {"ok": True, "job_id": "job-1", "status": "completed"}


def test_process_task_time_limit_covers_poll_budget():
    from enhancer.core.config import settings
    from enhancer.workers.tasks.render_job import process_render_job

    assert process_render_job.time_limit > settings.render_timeout_seconds


def test_watchdog_redispatches_only_stale_jobs(db):
    from enhancer.workers.tasks.watchdog import redispatch

    svc = JobService(db)
    stale = svc.create_job("owner-1", "shotstack", "owner-1/uploads/a.mp4", {})
    fresh = svc.create_job("owner-1", "shotstack", "owner-1/uploads/b.mp4", {})
    db.commit()
    db.execute(
        update(RenderJob)
        .where(RenderJob.job_id == stale.job_id)
        .values(updated_at=datetime.now(timezone.utc) - timedelta(hours=3))
    )
    db.commit()

    sent = []
    assert redispatch(db, dispatch=sent.append) == 1
    assert sent == [stale.job_id]
    assert fresh.job_id not in sent


def test_watchdog_continues_after_dispatch_error(db):
    from enhancer.workers.tasks.watchdog import redispatch

    svc = JobService(db)
    for name in ("a", "b"):
        svc.create_job("owner-1", "shotstack", f"owner-1/uploads/{name}.mp4", {})
    db.commit()
    db.execute(update(RenderJob).values(updated_at=datetime.now(timezone.utc) - timedelta(hours=3)))
    db.commit()

    calls = []

    def flaky(job_id):
        calls.append(job_id)
        if len(calls) == 1:
            raise ConnectionError("broker down")

    assert redispatch(db, dispatch=flaky) == 1
    assert len(calls) == 2


def test_watchdog_task_reports_count():
    db = MagicMock()
    with patch("enhancer.workers.tasks.watchdog.SessionLocal", return_value=db), \
            patch("enhancer.workers.tasks.watchdog.redispatch", return_value=2):
        from enhancer.workers.tasks.watchdog import redispatch_stale_jobs

        assert redispatch_stale_jobs.run() == {"ok": True, "redispatched_count": 2}
    db.close.assert_called_once()
