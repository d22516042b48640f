"""
Celery task: drive one render job to a terminal status.
API calls: send_task("enhancer.workers.tasks.render_job.process_render_job", args=[job_id]).
Delivery is at-least-once (acks_late); re-running a job resumes or no-ops.
"""
import logging

from enhancer.core.celery_app import celery_app
from enhancer.core.config import settings
from enhancer.db.session import SessionLocal
from enhancer.services.render_jobs.orchestrator import RenderJobOrchestrator
from enhancer.storage.local import get_asset_store

logger = logging.getLogger(__name__)

# download + storage + bookkeeping on top of the poll budget
FINALIZE_MARGIN_SECONDS = 300


@celery_app.task(
    bind=True,
    name="enhancer.workers.tasks.render_job.process_render_job",
    time_limit=int(settings.render_timeout_seconds) + FINALIZE_MARGIN_SECONDS,
    soft_time_limit=int(settings.render_timeout_seconds) + FINALIZE_MARGIN_SECONDS - 30,
)
def process_render_job(self, job_id: str) -> dict:
    db = SessionLocal()
    try:
        orchestrator = RenderJobOrchestrator(db, get_asset_store())
        status = orchestrator.process(job_id)
        logger.info("process_render_job_done", extra={"job_id": job_id, "status": status})
        return {"ok": status is not None, "job_id": job_id, "status": status}
    finally:
        db.close()
