"""
Shared route dependencies. The owner id is supplied by the upstream gateway
in a header; token verification happens before requests reach this service.
"""
from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from enhancer.core.config import settings
from enhancer.db.session import get_db
from enhancer.services.idempotency import IdempotencyStore
from enhancer.services.render_jobs.orchestrator import RenderJobOrchestrator
from enhancer.storage.local import LocalAssetStore, get_asset_store


def get_owner_id(request: Request) -> str:
    owner_id = (request.headers.get(settings.owner_id_header) or "").strip()
    if not owner_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Missing {settings.owner_id_header} header",
        )
    return owner_id


def get_store() -> LocalAssetStore:
    return get_asset_store()


def get_orchestrator(
    db: Session = Depends(get_db),
    store: LocalAssetStore = Depends(get_store),
) -> RenderJobOrchestrator:
    return RenderJobOrchestrator(db, store)


def get_idempotency_store() -> IdempotencyStore:
    return IdempotencyStore()
