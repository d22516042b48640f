from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import Column, DateTime, Integer, String, UniqueConstraint

from enhancer.db.base import Base


class CreditLedger(Base):
    __tablename__ = "credit_ledger"
    __table_args__ = (UniqueConstraint("owner_id", "job_id", "operation", name="uq_credit_ledger_idempotency"),)

    id = Column(String, primary_key=True, default=lambda: str(uuid4()))
    owner_id = Column(String, nullable=False, index=True)
    job_id = Column(String, nullable=False, index=True)
    operation = Column(String, nullable=False)  # DEBIT, HOLD, CAPTURE, RELEASE
    amount = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
