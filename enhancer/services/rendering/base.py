"""
Base classes and types for render providers.
Used by the factory, the poller and all providers (shotstack, creatomate).
"""
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any

import httpx
import pybreaker

from enhancer.services.circuit_breaker import get_circuit_breaker
from enhancer.utils.metrics import render_request_duration_seconds, render_requests_total

logger = logging.getLogger(__name__)


class RenderState(str, Enum):
    """Provider-neutral render state."""

    QUEUED = "queued"
    RENDERING = "rendering"
    DONE = "done"
    FAILED = "failed"


@dataclass(frozen=True)
class RenderSpec:
    """What to render: resolved source URL plus sanitized job parameters."""
    source_url: str
    clip_length: float
    transition: str
    caption_text: str
    music_url: str
    width: int
    height: int
    output_format: str = "mp4"
    title: str | None = None


@dataclass(frozen=True)
class RenderStatus:
    """One poll result."""
    state: RenderState
    result_url: str | None = None
    error: str | None = None
    raw: dict[str, Any] | None = None


class RenderError(Exception):
    """Base for render provider failures; detail holds provider fields for logging."""
    def __init__(self, message: str, detail: dict[str, Any] | None = None):
        super().__init__(message)
        self.detail = detail or {}


class RenderRejected(RenderError):
    """Provider refused the render request (bad payload, auth, quota)."""


class RenderUnavailable(RenderError):
    """Transport-level failure talking to the provider; caller decides whether to retry."""


class RenderClient(ABC):
    """Base class for render providers."""

    name: str = ""

    def __init__(self, config: dict) -> None:
        self.config = config
        self.download_timeout = config.get("download_timeout", 120.0)
        self._transport: httpx.BaseTransport | None = config.get("transport")

    @abstractmethod
    def is_available(self) -> bool:
        """Check if provider is configured."""
        pass

    @abstractmethod
    def submit(self, spec: RenderSpec) -> str:
        """Start a render. Returns the provider render id. Raises RenderRejected or RenderUnavailable."""
        pass

    @abstractmethod
    def get_status(self, render_id: str) -> RenderStatus:
        """Fetch current render state. Raises RenderUnavailable on transport errors."""
        pass

    def close(self) -> None:
        """Release connections held by the client."""

    def download(self, url: str) -> bytes:
        """Fetch the finished artifact."""
        try:
            with httpx.Client(
                timeout=self.download_timeout, follow_redirects=True, transport=self._transport
            ) as client:
                response = client.get(url)
                response.raise_for_status()
                return response.content
        except httpx.HTTPError as e:
            raise RenderUnavailable(f"Failed to download render output: {e}", {"url": url}) from e


class HttpRenderClient(RenderClient):
    """
    Shared HTTP plumbing for JSON render APIs: lazy httpx client, circuit breaker,
    request metrics and transport-error normalization.
    """

    def __init__(self, config: dict) -> None:
        super().__init__(config)
        self.api_key = config.get("api_key") or ""
        self.api_url = (config.get("api_url") or "").rstrip("/")
        self.timeout = config.get("timeout", 30.0)
        self._client: httpx.Client | None = None

    def is_available(self) -> bool:
        return bool(self.api_key)

    @property
    def client(self) -> httpx.Client:
        """Lazy initialization of httpx client."""
        if self._client is None:
            self._client = httpx.Client(timeout=self.timeout, transport=self._transport)
        return self._client

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None

    @abstractmethod
    def auth_headers(self) -> dict[str, str]:
        pass

    def _send(self, method: str, path: str, json: dict | None = None) -> httpx.Response:
        start = time.time()
        status = "error"
        try:
            response = self.client.request(
                method,
                f"{self.api_url}{path}",
                json=json,
                headers={"Content-Type": "application/json", **self.auth_headers()},
            )
            status = str(response.status_code)
            if response.status_code >= 500 or response.status_code == 429:
                raise RenderUnavailable(
                    f"{self.name} returned HTTP {response.status_code}",
                    {"http_status": response.status_code, "body": response.text[:500]},
                )
            return response
        except httpx.HTTPError as e:
            raise RenderUnavailable(f"{self.name} transport error: {e}") from e
        finally:
            render_requests_total.labels(renderer=self.name, method=method, status=status).inc()
            render_request_duration_seconds.labels(renderer=self.name, method=method).observe(time.time() - start)

    def _request(self, method: str, path: str, json: dict | None = None) -> httpx.Response:
        """Send through the provider's circuit breaker; an open breaker counts as unavailable."""
        breaker = get_circuit_breaker(f"render:{self.name}")
        try:
            return breaker.call(self._send, method, path, json)
        except pybreaker.CircuitBreakerError as e:
            raise RenderUnavailable(f"{self.name} circuit open: {e}") from e

    @staticmethod
    def _json(response: httpx.Response) -> dict[str, Any]:
        try:
            data = response.json()
        except ValueError:
            return {}
        return data if isinstance(data, dict) else {"items": data}
