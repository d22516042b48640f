"""
Shared fixtures. Environment is set before any enhancer module is imported,
since settings, the engine and Celery are configured at import time.
"""
import os
import tempfile

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("CB_STORAGE", "memory")
os.environ.setdefault("CELERY_TASK_ALWAYS_EAGER", "true")
os.environ.setdefault("STORAGE_BASE_PATH", tempfile.mkdtemp(prefix="enhancer-assets-"))
os.environ.setdefault("ASSET_URL_SECRET", "test-secret")
os.environ.setdefault("PUBLIC_BASE_URL", "http://testserver")

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from enhancer.db.base import Base
from enhancer.models import account, activity_log, alert, credit_ledger, render_job  # noqa: F401
from enhancer.services import circuit_breaker
from enhancer.services.rendering.base import RenderClient, RenderState, RenderStatus
from enhancer.storage.local import LocalAssetStore


@pytest.fixture(autouse=True)
def _reset_circuit_breakers():
    circuit_breaker._breakers.clear()
    yield
    circuit_breaker._breakers.clear()


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db(engine):
    session = sessionmaker(bind=engine, autocommit=False, autoflush=False)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def store(tmp_path):
    return LocalAssetStore(str(tmp_path / "assets"), "http://testserver", "test-secret")


class FakeRenderClient(RenderClient):
    """Scripted renderer: `statuses` are returned by successive get_status calls."""

    name = "fake"

    def __init__(self, statuses=None, submit_error=None, content=b"rendered-video"):
        super().__init__({})
        self.statuses = list(statuses or [RenderStatus(RenderState.DONE, result_url="https://cdn.test/out.mp4")])
        self.submit_error = submit_error
        self.content = content
        self.submitted = []
        self.polled = 0
        self.downloaded = []

    def is_available(self) -> bool:
        return True

    def submit(self, spec) -> str:
        if self.submit_error is not None:
            raise self.submit_error
        self.submitted.append(spec)
        return f"render-{len(self.submitted)}"

    def get_status(self, render_id: str) -> RenderStatus:
        self.polled += 1
        item = self.statuses.pop(0) if len(self.statuses) > 1 else self.statuses[0]
        if isinstance(item, Exception):
            raise item
        return item

    def download(self, url: str) -> bytes:
        self.downloaded.append(url)
        return self.content


@pytest.fixture
def fake_client():
    return FakeRenderClient()


@pytest.fixture
def make_client():
    return FakeRenderClient
