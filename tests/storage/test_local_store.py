"""Tests for LocalAssetStore: keys, path guard, signed URLs."""
from unittest.mock import patch

import pytest
from itsdangerous import URLSafeTimedSerializer

from enhancer.storage.base import is_owned_by, render_result_key, upload_key
from enhancer.storage.local import SIGNED_URL_SALT, InvalidAssetRef, SignedURLError


def test_keys_are_owner_scoped():
    assert upload_key("owner-1", "abc", ".mp4") == "owner-1/uploads/abc.mp4"
    assert render_result_key("owner-1", "job-9") == "owner-1/renders/job-9.mp4"
    assert is_owned_by("owner-1/uploads/abc.mp4", "owner-1")
    assert not is_owned_by("owner-2/uploads/abc.mp4", "owner-1")


def test_put_read_exists_delete(store):
    ref = store.put("owner-1/uploads/a.mp4", b"video", "video/mp4")

    assert store.exists(ref)
    assert store.read(ref) == b"video"
    assert store.content_type(ref) == "video/mp4"
    assert store.local_path(ref).endswith("a.mp4")

    store.delete(ref)
    assert not store.exists(ref)
    assert store.local_path(ref) is None
    # idempotent
    store.delete(ref)


def test_put_overwrites_same_key(store):
    store.put("owner-1/renders/j.mp4", b"first", "video/mp4")
    store.put("owner-1/renders/j.mp4", b"second", "video/mp4")
    assert store.read("owner-1/renders/j.mp4") == b"second"


@pytest.mark.parametrize("ref", ["../etc/passwd", "/abs/path", "owner/../../x", ""])
def test_refs_cannot_escape_root(store, ref):
    with pytest.raises(InvalidAssetRef):
        store.put(ref, b"x", "video/mp4")
    assert store.exists(ref) is False


def test_signed_url_round_trip(store):
    ref = store.put("owner-1/renders/j.mp4", b"x", "video/mp4")
    url = store.signed_get_url(ref, 900)

    assert url.startswith("http://testserver/assets/signed/")
    token = url.rsplit("/", 1)[1]
    assert store.verify_token(token) == ref


def test_tampered_token_is_rejected(store):
    url = store.signed_get_url("owner-1/renders/j.mp4", 900)
    token = url.rsplit("/", 1)[1]
    with pytest.raises(SignedURLError):
        store.verify_token(token[:-2] + "xx")


def test_token_signed_with_other_secret_is_rejected(store):
    token = URLSafeTimedSerializer("other-secret", salt=SIGNED_URL_SALT).dumps({"ref": "owner-1/a.mp4", "ttl": 900})
    with pytest.raises(SignedURLError, match="Invalid"):
        store.verify_token(token)


def test_expired_token_is_rejected(store):
    with patch("itsdangerous.timed.time.time", return_value=1_000_000):
        token = store.signed_get_url("owner-1/renders/j.mp4", 60).rsplit("/", 1)[1]
    with patch("itsdangerous.timed.time.time", return_value=1_000_000 + 61):
        with pytest.raises(SignedURLError, match="expired"):
            store.verify_token(token)
