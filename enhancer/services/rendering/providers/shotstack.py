"""
Shotstack Edit API provider.
Builds a timeline (video, music, title tracks) from a RenderSpec and polls render status.
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

TITLE_SECONDS = 5

STATE_MAP = {
    "queued": RenderState.QUEUED,
    "fetching": RenderState.RENDERING,
    "rendering": RenderState.RENDERING,
    "saving": RenderState.RENDERING,
    "done": RenderState.DONE,
    "failed": RenderState.FAILED,
}


def build_timeline(spec: RenderSpec) -> dict:
    """Shotstack edit payload: source clip muted under a music bed, caption title up front."""
    return {
        "timeline": {
            "tracks": [
                {
                    "clips": [
                        {
                            "asset": {"type": "video", "src": spec.source_url, "trim": 0, "volume": 0},
                            "start": 0,
                            "length": spec.clip_length,
                            "transition": {"in": spec.transition},
                        },
                    ],
                },
                {
                    "clips": [
                        {
                            "asset": {"type": "audio", "src": spec.music_url},
                            "start": 0,
                            "length": spec.clip_length,
                        },
                    ],
                },
                {
                    "clips": [
                        {
                            "asset": {
                                "type": "title",
                                "text": spec.caption_text,
                                "style": "minimal",
                                "size": "large",
                                "position": "center",
                                "color": "#ffffff",
                                "background": "#000000",
                            },
                            "start": 0,
                            "length": min(TITLE_SECONDS, spec.clip_length),
                            "transition": {"in": spec.transition},
                        },
                    ],
                },
            ],
        },
        "output": {
            "format": spec.output_format,
            "size": {"width": spec.width, "height": spec.height},
        },
    }


class ShotstackClient(HttpRenderClient):
    """Shotstack render API client (x-api-key header)."""

    name = "shotstack"

    def auth_headers(self) -> dict[str, str]:
        return {"x-api-key": self.api_key}

    def submit(self, spec: RenderSpec) -> str:
        if not self.is_available():
            raise RenderRejected("Shotstack provider not configured: SHOTSTACK_API_KEY is not set")

        response = self._request("POST", "/render", build_timeline(spec))
        data = self._json(response)
        body = data.get("response") or {}
        if response.status_code >= 400 or not data.get("success"):
            message = data.get("message") or body.get("message") or f"HTTP {response.status_code}"
            raise RenderRejected(
                f"Shotstack API failed to initiate render: {message}",
                {"http_status": response.status_code},
            )

        render_id = body.get("id")
        if not render_id:
            raise RenderRejected("Shotstack API response has no render id")
        logger.info("shotstack_render_submitted", extra={"render_id": render_id})
        return render_id

    def get_status(self, render_id: str) -> RenderStatus:
        response = self._request("GET", f"/render/{render_id}")
        data = self._json(response)
        if response.status_code >= 400:
            # 5xx/429 never get here; a 4xx is a definitive answer about this render
            message = data.get("message") or f"HTTP {response.status_code}"
            return RenderStatus(state=RenderState.FAILED, error=f"Shotstack status request rejected: {message}", raw=data)
        body = data.get("response") or {}
        raw_status = (body.get("status") or "").lower()
        state = STATE_MAP.get(raw_status)
        if state is None:
            raise RenderUnavailable(f"Unexpected Shotstack status: {raw_status!r}")
        if state is RenderState.FAILED:
            return RenderStatus(state=state, error=body.get("error") or "Unknown error", raw=body)
        if state is RenderState.DONE:
            url = body.get("url")
            if not url:
                return RenderStatus(state=RenderState.FAILED, error="Shotstack render finished without an output URL", raw=body)
            return RenderStatus(state=state, result_url=url, raw=body)
        return RenderStatus(state=state, raw=body)
