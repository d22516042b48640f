"""Tests for JobService: conditional transitions and the job invariants."""
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from enhancer.models.render_job import RenderJob
from enhancer.services.jobs.service import JobService, allowed_predecessors


def _job(db, **kwargs):
    svc = JobService(db)
    job = svc.create_job(
        owner_id=kwargs.get("owner_id", "owner-1"),
        renderer="shotstack",
        source_asset_ref="owner-1/uploads/a.mp4",
        parameters={},
    )
    db.commit()
    return svc, job


def test_allowed_predecessors():
    assert allowed_predecessors("submitted") == ("queued",)
    assert allowed_predecessors("polling") == ("queued", "submitted")
    assert allowed_predecessors("completed") == ("queued", "submitted", "polling")
    assert allowed_predecessors("failed") == ("queued", "submitted", "polling")


def test_new_job_is_queued(db):
    _, job = _job(db)
    assert job.status == "queued"
    assert job.poll_attempts == 0
    assert job.external_render_id is None


def test_happy_path_transitions(db):
    svc, job = _job(db)

    assert svc.mark_submitted(job.job_id, "r-1")
    assert svc.record_poll_attempt(job.job_id, 1)
    assert svc.get(job.job_id).status == "polling"
    assert svc.mark_completed(job.job_id, "owner-1/renders/x.mp4")
    db.commit()

    job = svc.get(job.job_id)
    assert job.status == "completed"
    assert job.external_render_id == "r-1"
    assert job.result_asset_ref == "owner-1/renders/x.mp4"
    assert job.error_detail is None
    assert job.poll_attempts == 1


def test_terminal_status_never_changes(db):
    svc, job = _job(db)
    assert svc.mark_failed(job.job_id, "bad input")
    db.commit()

    assert svc.mark_completed(job.job_id, "owner-1/renders/x.mp4") is False
    assert svc.mark_failed(job.job_id, "again") is False
    assert svc.mark_submitted(job.job_id, "r-2") is False
    assert svc.record_poll_attempt(job.job_id, 3) is False

    job = svc.get(job.job_id)
    assert job.status == "failed"
    assert job.error_detail == "bad input"
    assert job.result_asset_ref is None


def test_render_id_is_written_once(db):
    svc, job = _job(db)
    assert svc.mark_submitted(job.job_id, "r-1")
    assert svc.mark_submitted(job.job_id, "r-2") is False
    assert svc.get(job.job_id).external_render_id == "r-1"


def test_no_backwards_transition(db):
    svc, job = _job(db)
    svc.mark_submitted(job.job_id, "r-1")
    svc.record_poll_attempt(job.job_id, 1)
    assert svc.transition(job.job_id, "submitted") is False
    assert svc.get(job.job_id).status == "polling"


def test_completed_requires_result_ref(db):
    svc, job = _job(db)
    with pytest.raises(IntegrityError):
        db.execute(update(RenderJob).where(RenderJob.job_id == job.job_id).values(status="completed"))
        db.flush()
    db.rollback()


def test_failed_requires_error_detail(db):
    svc, job = _job(db)
    with pytest.raises(IntegrityError):
        db.execute(update(RenderJob).where(RenderJob.job_id == job.job_id).values(status="failed"))
        db.flush()
    db.rollback()


def test_list_for_owner_filters_and_orders(db):
    svc = JobService(db)
    now = datetime.now(timezone.utc)
    older = svc.create_job("owner-1", "shotstack", "owner-1/uploads/a.mp4", {})
    newer = svc.create_job("owner-1", "shotstack", "owner-1/uploads/b.mp4", {})
    svc.create_job("owner-2", "shotstack", "owner-2/uploads/c.mp4", {})
    older.created_at = now - timedelta(minutes=5)
    newer.created_at = now
    db.commit()
    svc.mark_failed(older.job_id, "x")
    db.commit()

    jobs = svc.list_for_owner("owner-1")
    assert [j.job_id for j in jobs] == [newer.job_id, older.job_id]
    assert [j.job_id for j in svc.list_for_owner("owner-1", status="failed")] == [older.job_id]
    assert len(svc.list_for_owner("owner-1", limit=1)) == 1


def test_find_stale(db):
    svc = JobService(db)
    old = datetime.now(timezone.utc) - timedelta(hours=2)
    stale_queued = svc.create_job("owner-1", "shotstack", "owner-1/uploads/a.mp4", {})
    stale_polling = svc.create_job("owner-1", "shotstack", "owner-1/uploads/b.mp4", {})
    fresh = svc.create_job("owner-1", "shotstack", "owner-1/uploads/c.mp4", {})
    done = svc.create_job("owner-1", "shotstack", "owner-1/uploads/d.mp4", {})
    db.commit()
    svc.mark_submitted(stale_polling.job_id, "r-1")
    svc.record_poll_attempt(stale_polling.job_id, 1)
    svc.mark_failed(done.job_id, "x")
    db.commit()
    for job in (stale_queued, stale_polling, done):
        db.execute(update(RenderJob).where(RenderJob.job_id == job.job_id).values(updated_at=old))
    db.commit()

    stale = svc.find_stale(timedelta(minutes=10), timedelta(minutes=10))
    ids = {j.job_id for j in stale}
    assert ids == {stale_queued.job_id, stale_polling.job_id}
    assert fresh.job_id not in ids


def test_source_in_use_ignores_the_job_itself(db):
    svc, first = _job(db)
    assert svc.source_in_use("owner-1/uploads/a.mp4", exclude_job_id=first.job_id) is False

    _job(db)
    assert svc.source_in_use("owner-1/uploads/a.mp4", exclude_job_id=first.job_id) is True
    assert svc.source_in_use("owner-1/uploads/other.mp4") is False
