"""
Turn stored job parameters plus a resolved source URL into a RenderSpec.
"""
import logging
from typing import Any

from enhancer.services.rendering.base import RenderSpec

logger = logging.getLogger(__name__)


def parse_resolution(value: str | None, fallback: str) -> tuple[int, int]:
    """'1080x1920' -> (1080, 1920). Malformed values fall back."""
    for candidate in (value, fallback):
        if not candidate:
            continue
        try:
            width, height = candidate.lower().split("x", 1)
            w, h = int(width), int(height)
        except ValueError:
            logger.warning("render_resolution_invalid", extra={"error": candidate})
            continue
        if w > 0 and h > 0:
            return w, h
    return 1080, 1920


def sanitize_music_url(music_url: str | None, rejected: set[str], default: str) -> str:
    url = (music_url or "").strip()
    if not url or url in rejected:
        return default
    return url


def clip_length(source_duration: float, desired_length: float | None, default_length: float, max_length: float) -> float:
    desired = desired_length if desired_length and desired_length > 0 else default_length
    return max(0.0, min(float(source_duration), float(desired), float(max_length)))


def build_render_spec(
    source_url: str,
    source_duration: float,
    parameters: dict[str, Any],
    settings,
) -> RenderSpec:
    width, height = parse_resolution(parameters.get("output_resolution"), settings.default_output_resolution)
    return RenderSpec(
        source_url=source_url,
        clip_length=clip_length(
            source_duration,
            parameters.get("desired_length"),
            settings.default_clip_length_seconds,
            settings.max_clip_length_seconds,
        ),
        transition=parameters.get("transition") or settings.default_transition,
        caption_text=parameters.get("caption_text") or settings.default_caption_text,
        music_url=sanitize_music_url(
            parameters.get("music_url"),
            settings.rejected_music_urls_set,
            settings.default_music_url,
        ),
        width=width,
        height=height,
        output_format=settings.output_format,
        title=parameters.get("title") or None,
    )
