from datetime import datetime

from pydantic import BaseModel


class AlertOut(BaseModel):
    id: str
    kind: str
    message: str
    metadata: dict
    read: bool
    created_at: datetime


class MarkReadOut(BaseModel):
    updated: int
