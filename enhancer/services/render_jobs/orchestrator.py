"""
Render job orchestrator: admission, background processing and finalization.

Submit runs in the request path and never talks to the renderer; `process`
runs in a Celery worker (at-least-once) and always leaves the job terminal.
Every status change is a conditional transition, so a duplicate or resumed
run can only no-op, never regress a job or charge twice.
"""
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from enhancer.core.config import settings as default_settings
from enhancer.models.render_job import JOB_COMPLETED, JOB_FAILED, JOB_POLLING, JOB_SUBMITTED, RenderJob
from enhancer.services.activity.service import ActivityService
from enhancer.services.alerts.service import ALERT_FAILURE, ALERT_SUCCESS, AlertService
from enhancer.services.credits.service import CreditService
from enhancer.services.jobs.service import JobService
from enhancer.services.render_jobs.errors import (
    AdmissionError,
    InsufficientCredit,
    JobInProgress,
    JobNotFound,
    PersistenceError,
    RenderFailure,
    RenderPipelineError,
    SourceNotFound,
    SubmissionError,
)
from enhancer.services.render_jobs.poller import RenderPoller
from enhancer.services.render_jobs.spec_builder import build_render_spec
from enhancer.services.rendering.base import RenderClient, RenderError
from enhancer.services.rendering.factory import RenderClientFactory
from enhancer.storage.base import AssetStore, is_owned_by, render_result_key
from enhancer.utils.media import probe_duration_seconds
from enhancer.utils.metrics import (
    active_jobs,
    admission_rejected_total,
    job_duration_seconds,
    jobs_completed_total,
    jobs_created_total,
    jobs_failed_total,
)

logger = logging.getLogger(__name__)

PROCESS_TASK_NAME = "enhancer.workers.tasks.render_job.process_render_job"

SUCCESS_MESSAGE = "Your video has been enhanced successfully."
FAILURE_MESSAGE = "Video enhancement failed: {error}"


@dataclass(frozen=True)
class JobHandle:
    job_id: str


@dataclass(frozen=True)
class JobStatus:
    job_id: str
    status: str
    result_url: str | None = None
    error: str | None = None
    progress: float | None = None
    estimated_seconds_remaining: float | None = None


def celery_dispatch(job_id: str) -> None:
    from enhancer.core.celery_app import celery_app

    celery_app.send_task(PROCESS_TASK_NAME, args=[job_id])


def _as_utc(value: datetime | None) -> datetime | None:
    # SQLite hands back naive datetimes
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class RenderJobOrchestrator:
    def __init__(
        self,
        db: Session,
        asset_store: AssetStore,
        client_factory: Callable[[str], RenderClient] | None = None,
        dispatcher: Callable[[str], None] | None = None,
        config=None,
        sleep: Callable[[float], None] = time.sleep,
        probe: Callable[[str], float | None] | None = None,
    ) -> None:
        self.db = db
        self.store = asset_store
        self.settings = config or default_settings
        self.client_factory = client_factory or (
            lambda renderer: RenderClientFactory.create_from_settings(self.settings, renderer)
        )
        self.dispatcher = dispatcher or celery_dispatch
        self.sleep = sleep
        self.probe = probe or (lambda path: probe_duration_seconds(path, self.settings.ffprobe_binary))
        self.jobs = JobService(db)
        self.credits = CreditService(db)
        self.alerts = AlertService(db)
        self.activity = ActivityService(db)

    @property
    def reserve_mode(self) -> bool:
        return self.settings.credit_admission_mode == "reserve"

    # ------------------------------------------------------------------
    # Request path
    # ------------------------------------------------------------------

    def submit(
        self,
        owner_id: str,
        source_asset_ref: str,
        parameters: dict[str, Any] | None = None,
        renderer: str | None = None,
    ) -> JobHandle:
        """
        Admit a render job and hand it to the background worker.

        Raises AccountNotFound, InsufficientCredit or SourceNotFound; in those
        cases no job row exists afterwards.
        """
        cost = self.settings.render_cost_credits
        renderer = (renderer or self.settings.render_provider).strip().lower()
        try:
            if not self.credits.has_credit(owner_id, cost):
                raise InsufficientCredit("Insufficient credits to start a render")
            if not is_owned_by(source_asset_ref, owner_id) or not self.store.exists(source_asset_ref):
                raise SourceNotFound(f"Source asset not found: {source_asset_ref}")

            job = self.jobs.create_job(
                owner_id=owner_id,
                renderer=renderer,
                source_asset_ref=source_asset_ref,
                parameters=parameters or {},
            )
            if self.reserve_mode and not self.credits.hold(owner_id, job.job_id, cost):
                raise InsufficientCredit("Insufficient credits to start a render")
            self.activity.log(
                owner_id,
                "job_submitted",
                f"Submitted video for enhancement: {(parameters or {}).get('title') or 'Untitled Video'}",
                {"job_id": job.job_id},
            )
            self.db.commit()
        except AdmissionError as e:
            self.db.rollback()
            admission_rejected_total.labels(reason=e.code).inc()
            logger.info("render_job_rejected", extra={"owner_id": owner_id, "error": e.code})
            raise

        jobs_created_total.labels(renderer=renderer).inc()
        logger.info("render_job_created", extra={"job_id": job.job_id, "owner_id": owner_id, "renderer": renderer})

        try:
            self.dispatcher(job.job_id)
        except Exception as e:
            # job stays queued; the watchdog re-dispatches it
            logger.warning("render_job_dispatch_failed", extra={"job_id": job.job_id, "error": str(e)})
        return JobHandle(job_id=job.job_id)

    def get_status(self, job_id: str, owner_id: str) -> JobStatus:
        job = self._owned_job(job_id, owner_id)
        if job.status == JOB_COMPLETED:
            url = self.store.signed_get_url(job.result_asset_ref, self.settings.signed_url_ttl_seconds)
            return JobStatus(job_id=job.job_id, status=job.status, result_url=url)
        if job.status == JOB_FAILED:
            return JobStatus(job_id=job.job_id, status=job.status, error=job.error_detail)

        expected = self.settings.render_expected_seconds
        elapsed = max(0.0, (datetime.now(timezone.utc) - _as_utc(job.created_at)).total_seconds())
        return JobStatus(
            job_id=job.job_id,
            status=job.status,
            progress=round(min(elapsed / expected, 0.99), 2),
            estimated_seconds_remaining=max(0.0, expected - elapsed),
        )

    def list_jobs(self, owner_id: str, status: str | None = None, limit: int = 50) -> list[RenderJob]:
        return self.jobs.list_for_owner(owner_id, status=status, limit=limit)

    def delete_job(self, job_id: str, owner_id: str) -> None:
        job = self._owned_job(job_id, owner_id)
        if not job.is_terminal:
            raise JobInProgress("Job is still processing")

        refs = [job.result_asset_ref]
        # uploads can back several jobs; keep the source until the last one goes
        if not self.jobs.source_in_use(job.source_asset_ref, exclude_job_id=job_id):
            refs.append(job.source_asset_ref)
        for ref in refs:
            if ref:
                self.store.delete(ref)
        title = (job.parameters or {}).get("title") or "Untitled Video"
        self.jobs.delete(job)
        self.activity.log(owner_id, "job_deleted", f"Deleted video enhancement: {title}", {"job_id": job_id})
        self.db.commit()
        logger.info("render_job_deleted", extra={"job_id": job_id, "owner_id": owner_id})

    def _owned_job(self, job_id: str, owner_id: str) -> RenderJob:
        job = self.jobs.get_for_owner(job_id, owner_id)
        if job is None:
            raise JobNotFound(f"Job not found: {job_id}")
        return job

    # ------------------------------------------------------------------
    # Worker path
    # ------------------------------------------------------------------

    def process(self, job_id: str) -> str | None:
        """Drive one job to a terminal status. Returns the final status."""
        job = self.jobs.get(job_id)
        if job is None:
            logger.warning("render_job_missing", extra={"job_id": job_id})
            return None
        if job.is_terminal:
            logger.info("render_job_already_terminal", extra={"job_id": job_id, "status": job.status})
            return job.status

        owner_id, renderer = job.owner_id, job.renderer
        started = time.monotonic()
        active_jobs.inc()
        client = None
        try:
            client = self.client_factory(renderer)
            if job.external_render_id and job.status in (JOB_SUBMITTED, JOB_POLLING):
                render_id, attempts_made = job.external_render_id, job.poll_attempts or 0
                logger.info("render_job_resumed", extra={"job_id": job_id, "render_id": render_id, "attempt": attempts_made})
            else:
                submitted = self._submit_render(job, client)
                if submitted is None:
                    return self._current_status(job_id)
                render_id, attempts_made = submitted

            poller = RenderPoller(
                client,
                interval_seconds=self.settings.render_poll_interval_seconds,
                max_attempts=self.settings.render_poll_max_attempts,
                sleep=self.sleep,
                on_attempt=lambda attempt: self._record_attempt(job_id, attempt),
            )
            status = poller.wait(render_id, attempts_made=attempts_made)
            self.finalize(job_id, client, status.result_url)
        except RenderPipelineError as e:
            self._fail(job_id, owner_id, e.message, e.code)
        except Exception as e:
            logger.exception("render_job_unexpected_error", extra={"job_id": job_id})
            self._fail(job_id, owner_id, f"Processing failed: {e}", "unexpected_error")
        finally:
            if client is not None:
                client.close()
            active_jobs.dec()
            job_duration_seconds.labels(renderer=renderer).observe(time.monotonic() - started)
        return self._current_status(job_id)

    def _submit_render(self, job: RenderJob, client: RenderClient) -> tuple[str, int] | None:
        job_id = job.job_id
        source_url = self.store.signed_get_url(job.source_asset_ref, self.settings.signed_url_ttl_seconds)
        spec = build_render_spec(source_url, self._source_duration(job.source_asset_ref), job.parameters or {}, self.settings)
        try:
            render_id = client.submit(spec)
        except RenderError as e:
            raise SubmissionError(str(e)) from e

        if self.jobs.mark_submitted(job_id, render_id):
            self.db.commit()
            logger.info("render_job_submitted", extra={"job_id": job_id, "render_id": render_id, "renderer": client.name})
            return render_id, 0

        # another worker got there first; follow its render
        self.db.rollback()
        self.db.refresh(job)
        logger.warning(
            "render_job_submit_lost_race",
            extra={"job_id": job_id, "render_id": render_id, "status": job.status},
        )
        if job.is_terminal or not job.external_render_id:
            return None
        return job.external_render_id, job.poll_attempts or 0

    def _source_duration(self, source_ref: str) -> float:
        path = self.store.local_path(source_ref)
        duration = self.probe(path) if path else None
        return duration or self.settings.default_source_duration_seconds

    def _record_attempt(self, job_id: str, attempt: int) -> None:
        self.jobs.record_poll_attempt(job_id, attempt)
        self.db.commit()

    def finalize(self, job_id: str, client: RenderClient, result_url: str | None) -> bool:
        """
        Persist a finished render. The artifact is written under a deterministic
        key first; the completed transition and the credit settlement then commit
        together. Returns False when the job was already terminal.
        """
        job = self.jobs.get(job_id)
        if job is None or job.is_terminal:
            return False
        if not result_url:
            raise RenderFailure("Render finished without an output URL")

        owner_id = job.owner_id
        cost = self.settings.render_cost_credits
        try:
            content = client.download(result_url)
        except RenderError as e:
            raise PersistenceError(f"Failed to download render result: {e}") from e
        try:
            result_ref = self.store.put(
                render_result_key(owner_id, job_id, self.settings.output_format),
                content,
                f"video/{self.settings.output_format}",
            )
        except OSError as e:
            raise PersistenceError(f"Failed to store render result: {e}") from e

        try:
            if not self.jobs.mark_completed(job_id, result_ref):
                self.db.rollback()
                logger.info("render_job_finalize_noop", extra={"job_id": job_id})
                return False
            if self.reserve_mode:
                self.credits.capture(owner_id, job_id, cost)
            elif not self.credits.decrement(owner_id, job_id, cost):
                # admission check is not a reservation; concurrent jobs can overdraw
                logger.warning("render_job_completed_uncharged", extra={"job_id": job_id, "owner_id": owner_id})
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise PersistenceError(f"Failed to record render result: {e}") from e

        jobs_completed_total.labels(renderer=job.renderer).inc()
        logger.info("render_job_completed", extra={"job_id": job_id, "owner_id": owner_id, "asset_ref": result_ref})

        self.alerts.notify(owner_id, ALERT_SUCCESS, SUCCESS_MESSAGE, {"job_id": job_id})
        self._log_activity(
            owner_id,
            "job_completed",
            f"Processed video: {(job.parameters or {}).get('title') or 'Untitled Video'}",
            {"job_id": job_id, "render_id": job.external_render_id},
        )
        return True

    def _fail(self, job_id: str, owner_id: str, error: str, code: str) -> None:
        self.db.rollback()
        try:
            changed = self.jobs.mark_failed(job_id, error)
            if changed and self.reserve_mode:
                self.credits.release(owner_id, job_id, self.settings.render_cost_credits)
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception("render_job_fail_write_error", extra={"job_id": job_id})
            raise
        if not changed:
            return

        job = self.jobs.get(job_id)
        jobs_failed_total.labels(renderer=job.renderer if job else "unknown", error_code=code).inc()
        logger.warning("render_job_failed", extra={"job_id": job_id, "owner_id": owner_id, "error": error})
        self.alerts.notify(owner_id, ALERT_FAILURE, FAILURE_MESSAGE.format(error=error), {"job_id": job_id})

    def _log_activity(self, owner_id: str, action: str, message: str, payload: dict) -> None:
        try:
            self.activity.log(owner_id, action, message, payload)
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception("activity_log_failed", extra={"owner_id": owner_id})

    def _current_status(self, job_id: str) -> str | None:
        job = self.jobs.get(job_id)
        return job.status if job else None
