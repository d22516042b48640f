"""
Celery beat task: re-dispatch render jobs nobody is working on.
- queued jobs whose dispatch was lost
- submitted/polling jobs untouched for longer than the poll budget plus grace
Processing is idempotent, so a job that is in fact still running only no-ops.
"""
import logging
from datetime import timedelta

from sqlalchemy.exc import ProgrammingError

from enhancer.core.celery_app import celery_app
from enhancer.core.config import settings
from enhancer.db.session import SessionLocal
from enhancer.services.jobs.service import JobService
from enhancer.services.render_jobs.orchestrator import celery_dispatch

logger = logging.getLogger(__name__)


def redispatch(db, dispatch=celery_dispatch) -> int:
    queued_after = timedelta(minutes=settings.watchdog_queued_stale_minutes)
    active_after = timedelta(seconds=settings.render_timeout_seconds) + timedelta(minutes=settings.watchdog_grace_minutes)
    count = 0
    for job in JobService(db).find_stale(queued_after, active_after):
        try:
            dispatch(job.job_id)
        except Exception as e:
            logger.warning("watchdog_dispatch_failed", extra={"job_id": job.job_id, "error": str(e)})
            continue
        count += 1
        logger.info("watchdog_redispatched", extra={"job_id": job.job_id, "status": job.status})
    return count


@celery_app.task(
    name="enhancer.workers.tasks.watchdog.redispatch_stale_jobs",
    time_limit=60,
    soft_time_limit=55,
)
def redispatch_stale_jobs() -> dict:
    db = SessionLocal()
    try:
        count = redispatch(db)
        if count > 0:
            logger.warning("watchdog_redispatch_stale_jobs", extra={"count": count})
        return {"ok": True, "redispatched_count": count}
    except ProgrammingError as e:
        msg = str(e.orig) if getattr(e, "orig", None) else str(e)
        if "does not exist" in msg or "UndefinedTable" in msg:
            db.rollback()
            return {"ok": True, "skipped": "table_not_found"}
        logger.exception("watchdog_error")
        db.rollback()
        return {"ok": False}
    except Exception:
        logger.exception("watchdog_error")
        db.rollback()
        return {"ok": False}
    finally:
        db.close()
