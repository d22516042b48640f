"""
Creatomate provider: template renders with the source video injected as a modification.
"""
import logging

from enhancer.services.rendering.base import (
    HttpRenderClient,
    RenderRejected,
    RenderSpec,
    RenderState,
    RenderStatus,
    RenderUnavailable,
)

logger = logging.getLogger(__name__)

STATE_MAP = {
    "planned": RenderState.QUEUED,
    "waiting": RenderState.QUEUED,
    "transcribing": RenderState.RENDERING,
    "rendering": RenderState.RENDERING,
    "succeeded": RenderState.DONE,
    "failed": RenderState.FAILED,
}


class CreatomateClient(HttpRenderClient):
    """Creatomate render API client (Bearer token)."""

    name = "creatomate"

    def __init__(self, config: dict) -> None:
        super().__init__(config)
        self.template_id = config.get("template_id") or ""
        self.source_element = config.get("source_element") or "Video"

    def is_available(self) -> bool:
        return bool(self.api_key and self.template_id)

    def auth_headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.api_key}", "Cache-Control": "no-cache"}

    def build_payload(self, spec: RenderSpec) -> dict:
        modifications = {
            f"{self.source_element}.source": spec.source_url,
            f"{self.source_element}.duration": spec.clip_length,
            "Caption.text": spec.caption_text,
            "Music.source": spec.music_url,
        }
        return {
            "template_id": self.template_id,
            "modifications": modifications,
            "output_format": spec.output_format,
            "width": spec.width,
            "height": spec.height,
        }

    def submit(self, spec: RenderSpec) -> str:
        if not self.is_available():
            raise RenderRejected("Creatomate provider not configured: API key or template id missing")

        response = self._request("POST", "/renders", self.build_payload(spec))
        data = self._json(response)
        if response.status_code >= 400:
            message = data.get("message") or data.get("error") or f"HTTP {response.status_code}"
            raise RenderRejected(f"Creatomate rejected render: {message}", {"http_status": response.status_code})

        # API answers with a list of renders; one template => one render
        items = data.get("items")
        render = items[0] if isinstance(items, list) and items else data
        render_id = render.get("id") if isinstance(render, dict) else None
        if not render_id:
            raise RenderRejected("Creatomate response has no render id")
        logger.info("creatomate_render_submitted", extra={"render_id": render_id})
        return render_id

    def get_status(self, render_id: str) -> RenderStatus:
        response = self._request("GET", f"/renders/{render_id}")
        data = self._json(response)
        if response.status_code >= 400:
            message = data.get("message") or data.get("error") or f"HTTP {response.status_code}"
            return RenderStatus(state=RenderState.FAILED, error=f"Creatomate status request rejected: {message}", raw=data)
        raw_status = (data.get("status") or "").lower()
        state = STATE_MAP.get(raw_status)
        if state is None:
            raise RenderUnavailable(f"Unexpected Creatomate status: {raw_status!r}")
        if state is RenderState.FAILED:
            return RenderStatus(state=state, error=data.get("error_message") or "Unknown error", raw=data)
        if state is RenderState.DONE:
            url = data.get("url")
            if not url:
                return RenderStatus(state=RenderState.FAILED, error="Creatomate render finished without an output URL", raw=data)
            return RenderStatus(state=state, result_url=url, raw=data)
        return RenderStatus(state=state, raw=data)
