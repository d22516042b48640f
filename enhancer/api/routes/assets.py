"""
Raw video uploads and signed asset downloads.
"""
import logging
import os
from uuid import uuid4

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile, status
from fastapi.responses import FileResponse

from enhancer.api.deps import get_owner_id, get_store
from enhancer.core.config import settings
from enhancer.schemas.render_jobs import UploadOut
from enhancer.storage.base import upload_key
from enhancer.storage.local import InvalidAssetRef, LocalAssetStore, SignedURLError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/assets", tags=["assets"])


@router.post("/uploads", response_model=UploadOut, status_code=status.HTTP_201_CREATED)
def upload_asset(
    file: UploadFile = File(...),
    owner_id: str = Depends(get_owner_id),
    store: LocalAssetStore = Depends(get_store),
) -> UploadOut:
    ext = os.path.splitext(file.filename or "")[1].lower()
    if ext not in settings.allowed_extensions_set:
        allowed = ", ".join(sorted(settings.allowed_extensions_set))
        raise HTTPException(status.HTTP_400_BAD_REQUEST, f"Unsupported file type. Allowed: {allowed}")
    max_bytes = settings.max_upload_size_mb * 1024 * 1024
    content = file.file.read(max_bytes + 1)
    if not content:
        raise HTTPException(status.HTTP_400_BAD_REQUEST, "Video file is required")
    if len(content) > max_bytes:
        raise HTTPException(
            status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            f"File too large (max {settings.max_upload_size_mb} MB)",
        )
    content_type = file.content_type or "application/octet-stream"
    ref = store.put(upload_key(owner_id, str(uuid4()), ext), content, content_type)
    logger.info("asset_uploaded", extra={"owner_id": owner_id, "asset_ref": ref})
    return UploadOut(asset_ref=ref, size=len(content), content_type=content_type)


@router.get("/signed/{token}")
def download_signed_asset(token: str, store: LocalAssetStore = Depends(get_store)) -> FileResponse:
    try:
        ref = store.verify_token(token)
        path = store.local_path(ref)
    except SignedURLError as e:
        raise HTTPException(status.HTTP_403_FORBIDDEN, str(e)) from e
    except InvalidAssetRef as e:
        raise HTTPException(status.HTTP_404_NOT_FOUND, "Asset not found") from e
    if path is None:
        raise HTTPException(status.HTTP_404_NOT_FOUND, "Asset not found")
    return FileResponse(path, media_type=store.content_type(ref), filename=os.path.basename(path))
