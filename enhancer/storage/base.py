from abc import ABC, abstractmethod


class AssetStore(ABC):
    """Durable blob storage addressed by opaque keys ("refs")."""

    @abstractmethod
    def put(self, key: str, content: bytes, content_type: str) -> str:
        """Write content under key (overwriting); returns the asset ref."""
        raise NotImplementedError

    @abstractmethod
    def signed_get_url(self, ref: str, ttl_seconds: int) -> str:
        """Short-lived read URL for ref."""
        raise NotImplementedError

    @abstractmethod
    def delete(self, ref: str) -> None:
        """Remove ref. Deleting an absent object is not an error."""
        raise NotImplementedError

    @abstractmethod
    def exists(self, ref: str) -> bool:
        raise NotImplementedError

    @abstractmethod
    def read(self, ref: str) -> bytes:
        """Full content of ref. Raises FileNotFoundError when absent."""
        raise NotImplementedError

    @abstractmethod
    def local_path(self, ref: str) -> str | None:
        """Filesystem path of ref when the backend has one (for probing/streaming)."""
        raise NotImplementedError


def owner_scope(owner_id: str) -> str:
    return owner_id.strip().replace("/", "_")


def upload_key(owner_id: str, asset_id: str, ext: str) -> str:
    return f"{owner_scope(owner_id)}/uploads/{asset_id}{ext}"


def render_result_key(owner_id: str, job_id: str, output_format: str = "mp4") -> str:
    """Deterministic, so a re-run finalize overwrites instead of duplicating."""
    return f"{owner_scope(owner_id)}/renders/{job_id}.{output_format}"


def is_owned_by(ref: str, owner_id: str) -> bool:
    return ref.startswith(f"{owner_scope(owner_id)}/")
