"""
Create tables for all models. Production schemas are expected to be managed
out of band; this covers local development, SQLite and tests.
"""
from enhancer.db.base import Base
from enhancer.db.session import engine
from enhancer.models import account, activity_log, alert, credit_ledger, render_job  # noqa: F401


def init_db(bind=None) -> None:
    Base.metadata.create_all(bind=bind or engine)
