from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from enhancer.api.deps import get_owner_id
from enhancer.db.session import get_db
from enhancer.schemas.alerts import AlertOut, MarkReadOut
from enhancer.services.alerts.service import AlertService


router = APIRouter(prefix="/alerts", tags=["alerts"])


@router.get("", response_model=list[AlertOut])
def list_alerts(owner_id: str = Depends(get_owner_id), db: Session = Depends(get_db)) -> list[AlertOut]:
    alerts = AlertService(db).list_for_owner(owner_id)
    return [
        AlertOut(
            id=alert.id,
            kind=alert.kind,
            message=alert.message,
            metadata=alert.extra_data or {},
            read=alert.read,
            created_at=alert.created_at,
        )
        for alert in alerts
    ]


@router.patch("/mark-read", response_model=MarkReadOut)
def mark_alerts_read(owner_id: str = Depends(get_owner_id), db: Session = Depends(get_db)) -> MarkReadOut:
    return MarkReadOut(updated=AlertService(db).mark_all_read(owner_id))
