"""
Local filesystem asset store with itsdangerous-signed, time-limited download URLs.
Files live under settings.storage_base_path; refs are relative POSIX keys.
"""
import json
import logging
import os

from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

from enhancer.core.config import settings
from enhancer.storage.base import AssetStore

logger = logging.getLogger(__name__)

SIGNED_URL_SALT = "asset-download"


class InvalidAssetRef(ValueError):
    pass


class SignedURLError(Exception):
    """Token is malformed, tampered with, or expired."""


class LocalAssetStore(AssetStore):
    def __init__(self, base_path: str, public_base_url: str, secret: str) -> None:
        self.base_path = os.path.abspath(base_path)
        self.public_base_url = public_base_url.rstrip("/")
        self.serializer = URLSafeTimedSerializer(secret, salt=SIGNED_URL_SALT)

    def _resolve(self, ref: str) -> str:
        if not ref or ref.startswith("/") or "\\" in ref:
            raise InvalidAssetRef(f"Invalid asset ref: {ref!r}")
        path = os.path.abspath(os.path.join(self.base_path, ref))
        if os.path.commonpath([self.base_path, path]) != self.base_path:
            raise InvalidAssetRef(f"Asset ref escapes storage root: {ref!r}")
        return path

    def put(self, key: str, content: bytes, content_type: str) -> str:
        path = self._resolve(key)
        os.makedirs(os.path.dirname(path), exist_ok=True)
        tmp_path = f"{path}.part"
        with open(tmp_path, "wb") as f:
            f.write(content)
        os.replace(tmp_path, path)
        with open(f"{path}.meta", "w", encoding="utf-8") as f:
            json.dump({"content_type": content_type, "size": len(content)}, f)
        logger.info("asset_stored", extra={"asset_ref": key})
        return key

    def signed_get_url(self, ref: str, ttl_seconds: int) -> str:
        self._resolve(ref)
        token = self.serializer.dumps({"ref": ref, "ttl": int(ttl_seconds)})
        return f"{self.public_base_url}/assets/signed/{token}"

    def verify_token(self, token: str) -> str:
        """Return the ref inside a signed URL token. Raises SignedURLError."""
        try:
            data = self.serializer.loads(token)
            # expiry is the ttl the URL was issued with
            self.serializer.loads(token, max_age=int(data["ttl"]))
        except SignatureExpired as e:
            raise SignedURLError("Signed URL expired") from e
        except (BadSignature, KeyError, TypeError, ValueError) as e:
            raise SignedURLError("Invalid signed URL") from e
        return data["ref"]

    def delete(self, ref: str) -> None:
        path = self._resolve(ref)
        for candidate in (path, f"{path}.meta"):
            try:
                os.remove(candidate)
            except FileNotFoundError:
                continue
        logger.info("asset_deleted", extra={"asset_ref": ref})

    def exists(self, ref: str) -> bool:
        try:
            return os.path.isfile(self._resolve(ref))
        except InvalidAssetRef:
            return False

    def read(self, ref: str) -> bytes:
        with open(self._resolve(ref), "rb") as f:
            return f.read()

    def local_path(self, ref: str) -> str | None:
        path = self._resolve(ref)
        return path if os.path.isfile(path) else None

    def content_type(self, ref: str) -> str:
        try:
            with open(f"{self._resolve(ref)}.meta", encoding="utf-8") as f:
                return json.load(f).get("content_type") or "application/octet-stream"
        except (OSError, ValueError):
            return "application/octet-stream"


def get_asset_store() -> LocalAssetStore:
    return LocalAssetStore(
        base_path=settings.storage_base_path,
        public_base_url=settings.public_base_url,
        secret=settings.asset_url_secret,
    )
