"""
Render job routes: submit, status, list, delete.
"""
import logging

import redis
from fastapi import APIRouter, Depends, Header, HTTPException, Query, status

from enhancer.api.deps import get_idempotency_store, get_orchestrator, get_owner_id
from enhancer.models.render_job import STATUS_RANK
from enhancer.schemas.render_jobs import JobHandleOut, JobStatusOut, RenderJobCreate, RenderJobOut
from enhancer.services.idempotency import PENDING, IdempotencyStore
from enhancer.services.render_jobs.errors import (
    AccountNotFound,
    AdmissionError,
    InsufficientCredit,
    JobInProgress,
    JobNotFound,
    SourceNotFound,
)
from enhancer.services.render_jobs.orchestrator import RenderJobOrchestrator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/render-jobs", tags=["render-jobs"])


def _admission_http_error(e: AdmissionError) -> HTTPException:
    if isinstance(e, InsufficientCredit):
        return HTTPException(status.HTTP_402_PAYMENT_REQUIRED, e.message)
    if isinstance(e, (AccountNotFound, SourceNotFound)):
        return HTTPException(status.HTTP_404_NOT_FOUND, e.message)
    return HTTPException(status.HTTP_400_BAD_REQUEST, e.message)


def _release_idempotency_key(idempotency: IdempotencyStore, key: str | None) -> None:
    if not key:
        return
    try:
        idempotency.forget(key)
    except redis.RedisError as e:
        logger.warning("idempotency_unavailable", extra={"error": str(e)})


@router.post("", response_model=JobHandleOut, status_code=status.HTTP_202_ACCEPTED)
def submit_render_job(
    body: RenderJobCreate,
    owner_id: str = Depends(get_owner_id),
    orchestrator: RenderJobOrchestrator = Depends(get_orchestrator),
    idempotency: IdempotencyStore = Depends(get_idempotency_store),
    idempotency_key: str | None = Header(default=None, alias="Idempotency-Key"),
) -> JobHandleOut:
    key = f"render-submit:{owner_id}:{idempotency_key}" if idempotency_key else None
    if key:
        try:
            if not idempotency.check_and_set(key):
                previous = idempotency.get(key)
                if previous and previous != PENDING:
                    return JobHandleOut(job_id=previous)
                raise HTTPException(status.HTTP_409_CONFLICT, "Request with this Idempotency-Key is in progress")
        except redis.RedisError as e:
            logger.warning("idempotency_unavailable", extra={"owner_id": owner_id, "error": str(e)})
            key = None

    try:
        handle = orchestrator.submit(
            owner_id,
            body.source_asset_ref,
            body.parameters.model_dump(exclude_none=True),
            renderer=body.renderer,
        )
    except AdmissionError as e:
        _release_idempotency_key(idempotency, key)
        raise _admission_http_error(e) from e
    except Exception:
        # a retry with the same key must not be stuck behind a pending marker
        _release_idempotency_key(idempotency, key)
        raise

    if key:
        try:
            idempotency.remember(key, handle.job_id)
        except redis.RedisError as e:
            logger.warning("idempotency_unavailable", extra={"job_id": handle.job_id, "error": str(e)})
    return JobHandleOut(job_id=handle.job_id)


@router.get("", response_model=list[RenderJobOut])
def list_render_jobs(
    status_filter: str | None = Query(default=None, alias="status"),
    limit: int = Query(default=50, ge=1, le=200),
    owner_id: str = Depends(get_owner_id),
    orchestrator: RenderJobOrchestrator = Depends(get_orchestrator),
) -> list[RenderJobOut]:
    if status_filter and status_filter not in STATUS_RANK:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, f"Unknown status: {status_filter}")
    jobs = orchestrator.list_jobs(owner_id, status=status_filter, limit=limit)
    return [RenderJobOut.model_validate(job) for job in jobs]


@router.get("/{job_id}", response_model=JobStatusOut)
def get_render_job(
    job_id: str,
    owner_id: str = Depends(get_owner_id),
    orchestrator: RenderJobOrchestrator = Depends(get_orchestrator),
) -> JobStatusOut:
    try:
        result = orchestrator.get_status(job_id, owner_id)
    except JobNotFound as e:
        raise HTTPException(status.HTTP_404_NOT_FOUND, e.message) from e
    return JobStatusOut(
        job_id=result.job_id,
        status=result.status,
        result_url=result.result_url,
        error=result.error,
        progress=result.progress,
        estimated_seconds_remaining=result.estimated_seconds_remaining,
    )


@router.delete("/{job_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_render_job(
    job_id: str,
    owner_id: str = Depends(get_owner_id),
    orchestrator: RenderJobOrchestrator = Depends(get_orchestrator),
) -> None:
    try:
        orchestrator.delete_job(job_id, owner_id)
    except JobNotFound as e:
        raise HTTPException(status.HTTP_404_NOT_FOUND, e.message) from e
    except JobInProgress as e:
        raise HTTPException(status.HTTP_409_CONFLICT, e.message) from e
