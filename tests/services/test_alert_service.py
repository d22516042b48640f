"""Tests for AlertService: ordering, limit, mark-read, best-effort writes."""
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

from sqlalchemy.exc import OperationalError

from enhancer.models.alert import Alert
from enhancer.services.alerts.service import AlertService


def _alert(db, message, read=False, minutes_ago=0, owner_id="owner-1"):
    alert = Alert(
        owner_id=owner_id,
        kind="success",
        message=message,
        extra_data={},
        read=read,
        created_at=datetime.now(timezone.utc) - timedelta(minutes=minutes_ago),
    )
    db.add(alert)
    db.commit()
    return alert


def test_notify_persists_unread_alert(db):
    alert = AlertService(db).notify("owner-1", "failure", "Video enhancement failed: bad input", {"job_id": "j1"})

    stored = db.query(Alert).filter(Alert.id == alert.id).one()
    assert stored.read is False
    assert stored.kind == "failure"
    assert stored.extra_data == {"job_id": "j1"}


def test_notify_swallows_database_errors():
    db = MagicMock()
    db.commit.side_effect = OperationalError("INSERT", {}, Exception("db down"))

    assert AlertService(db).notify("owner-1", "success", "ok") is None
    db.rollback.assert_called_once()


def test_unread_first_then_recent_read(db):
    _alert(db, "read-new", read=True, minutes_ago=1)
    _alert(db, "unread-old", minutes_ago=30)
    _alert(db, "read-old", read=True, minutes_ago=60)
    _alert(db, "unread-new", minutes_ago=2)
    _alert(db, "someone-else", owner_id="owner-2")

    messages = [a.message for a in AlertService(db).list_for_owner("owner-1")]
    assert messages == ["unread-new", "unread-old", "read-new", "read-old"]


def test_list_is_capped(db):
    for i in range(12):
        _alert(db, f"a{i}", minutes_ago=i)
    assert len(AlertService(db).list_for_owner("owner-1")) == 10


def test_mark_all_read(db):
    _alert(db, "one")
    _alert(db, "two")
    _alert(db, "other", owner_id="owner-2")

    assert AlertService(db).mark_all_read("owner-1") == 2
    assert all(a.read for a in db.query(Alert).filter(Alert.owner_id == "owner-1"))
    assert db.query(Alert).filter(Alert.owner_id == "owner-2").one().read is False
