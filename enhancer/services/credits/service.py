import logging

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from enhancer.models.account import Account
from enhancer.models.credit_ledger import CreditLedger
from enhancer.services.render_jobs.errors import AccountNotFound
from enhancer.utils.metrics import credit_operations_total

logger = logging.getLogger(__name__)

OP_DEBIT = "DEBIT"
OP_HOLD = "HOLD"
OP_CAPTURE = "CAPTURE"
OP_RELEASE = "RELEASE"


class CreditService:
    """
    Per-account render credits. Balance changes are conditional UPDATEs with a
    floor at zero; every change writes a ledger row, unique per (owner, job, op).
    Methods flush; the caller commits.
    """

    def __init__(self, db: Session):
        self.db = db

    def get_account(self, owner_id: str) -> Account | None:
        return self.db.query(Account).filter(Account.owner_id == owner_id).one_or_none()

    def get_balance(self, owner_id: str) -> int:
        account = self.get_account(owner_id)
        if account is None:
            raise AccountNotFound(f"No account for owner {owner_id}")
        return account.credit_balance

    def has_credit(self, owner_id: str, amount: int = 1) -> bool:
        """Point-in-time check; reserves nothing."""
        return self.get_balance(owner_id) >= amount

    def grant(self, owner_id: str, amount: int) -> Account:
        """Create the account if needed and add credits."""
        if amount < 0:
            raise ValueError("grant amount must be non-negative")
        account = self.get_account(owner_id)
        if account is None:
            account = Account(owner_id=owner_id, credit_balance=amount)
            self.db.add(account)
        else:
            account.credit_balance = (account.credit_balance or 0) + amount
            self.db.add(account)
        self.db.flush()
        return account

    def decrement(self, owner_id: str, job_id: str, amount: int = 1) -> bool:
        """
        Debit credits for a finished job. Raises AccountNotFound.
        Returns False when the balance cannot cover it (the admission check
        is not a reservation, so concurrent jobs can get here with too little).
        """
        if self._ledger_exists(owner_id, job_id, OP_DEBIT):
            return True
        if self.get_account(owner_id) is None:
            raise AccountNotFound(f"No account for owner {owner_id}")
        if not self._conditional_debit(owner_id, amount):
            logger.warning(
                "credit_debit_insufficient_balance",
                extra={"owner_id": owner_id, "job_id": job_id, "amount": amount},
            )
            return False
        self._add_ledger(owner_id, job_id, OP_DEBIT, amount)
        return True

    def hold(self, owner_id: str, job_id: str, amount: int = 1) -> bool:
        """Reserve credits at admission. False if the balance is too low."""
        if self._ledger_exists(owner_id, job_id, OP_HOLD):
            return True
        if self.get_account(owner_id) is None:
            raise AccountNotFound(f"No account for owner {owner_id}")
        if not self._conditional_debit(owner_id, amount):
            return False
        self._add_ledger(owner_id, job_id, OP_HOLD, amount)
        return True

    def capture(self, owner_id: str, job_id: str, amount: int = 1) -> bool:
        """Make a hold final. No balance change."""
        if not self._hold_open(owner_id, job_id):
            return False
        self._add_ledger(owner_id, job_id, OP_CAPTURE, amount)
        return True

    def release(self, owner_id: str, job_id: str, amount: int = 1) -> bool:
        """Refund a hold."""
        if not self._hold_open(owner_id, job_id):
            return False
        self.db.execute(
            update(Account)
            .where(Account.owner_id == owner_id)
            .values(credit_balance=Account.credit_balance + amount)
        )
        self._add_ledger(owner_id, job_id, OP_RELEASE, amount)
        return True

    def _conditional_debit(self, owner_id: str, amount: int) -> bool:
        result = self.db.execute(
            update(Account)
            .where(Account.owner_id == owner_id, Account.credit_balance >= amount)
            .values(credit_balance=Account.credit_balance - amount)
        )
        self.db.flush()
        return result.rowcount > 0

    def _hold_open(self, owner_id: str, job_id: str) -> bool:
        return (
            self._ledger_exists(owner_id, job_id, OP_HOLD)
            and not self._ledger_exists(owner_id, job_id, OP_CAPTURE)
            and not self._ledger_exists(owner_id, job_id, OP_RELEASE)
        )

    def _add_ledger(self, owner_id: str, job_id: str, operation: str, amount: int) -> None:
        self.db.add(CreditLedger(owner_id=owner_id, job_id=job_id, operation=operation, amount=amount))
        self.db.flush()
        credit_operations_total.labels(operation=operation).inc()
        logger.info("credit_ledger_entry", extra={"owner_id": owner_id, "job_id": job_id, "status": operation, "amount": amount})

    def _ledger_exists(self, owner_id: str, job_id: str, operation: str) -> bool:
        stmt = (
            select(CreditLedger.id)
            .where(
                CreditLedger.owner_id == owner_id,
                CreditLedger.job_id == job_id,
                CreditLedger.operation == operation,
            )
            .exists()
        )
        return self.db.query(stmt).scalar() or False
